"""
Tests for the inventory watcher

Trigger rules, the single-flight lock, escalation to the fallback network,
and the bookkeeping the watcher does after each workflow.

Fun fact: Walmart's Retail Link, launched in 1991, was one of the first
systems to let suppliers watch a retailer's shelf levels directly. This
watcher does the same job from the other side of the counter.
"""

import threading
from datetime import datetime

import httpx
import pytest

from agentic_restock.agent.models import OrderState, RestockRecommendation, RestockStatus
from agentic_restock.agent.protocol import OrderProtocolClient
from agentic_restock.agent.settlement import SimulatedSettlement
from agentic_restock.fallback.gateway import FallbackGateway
from agentic_restock.kernel.errors import ItemNotFound
from agentic_restock.kernel.settings import AgentSettings
from agentic_restock.kernel.time import TestTimeProvider
from agentic_restock.supplier.service import SupplierService
from tests.helpers import (
    BlockingSettlement,
    StubAdvisor,
    build_watcher,
    make_item,
    metric_value,
)


class ExplodingSettlement:
    address = "0x000000000000000000000000000000000000dEaD"

    def pay(self, amount, destination) -> str:
        raise RuntimeError("wallet driver crashed")


# =============================================================================
# Inventory operations
# =============================================================================


class TestInventory:
    """Stock bookkeeping independent of restocking"""

    def test_items_are_copies(self, protocol_client: OrderProtocolClient) -> None:
        watcher = build_watcher(protocol_client, make_item(stock=30))
        snapshot = watcher.items()[0]
        snapshot.stock = 0

        assert watcher.get_item("item-1").stock == 30

    def test_unknown_item(self, protocol_client: OrderProtocolClient) -> None:
        watcher = build_watcher(protocol_client)
        with pytest.raises(ItemNotFound):
            watcher.get_item("nope")
        with pytest.raises(ItemNotFound):
            watcher.sell("nope")

    def test_sell_decrements_stock(self, protocol_client: OrderProtocolClient) -> None:
        watcher = build_watcher(protocol_client, make_item(stock=30))
        assert watcher.sell("item-1") is None
        assert watcher.get_item("item-1").stock == 29

    def test_sell_at_zero_is_noop(self, protocol_client: OrderProtocolClient) -> None:
        watcher = build_watcher(protocol_client, make_item(stock=0, threshold=0))
        assert watcher.sell("item-1") is None
        assert watcher.get_item("item-1").stock == 0

    def test_recent_activity_window(
        self, protocol_client: OrderProtocolClient, test_time: TestTimeProvider
    ) -> None:
        watcher = build_watcher(
            protocol_client,
            make_item(stock=30),
            settings=AgentSettings(activity_window_seconds=600),
            time_provider=test_time,
        )
        watcher.sell("item-1")
        test_time.advance_seconds(300)
        watcher.sell("item-1")
        test_time.advance_seconds(400)

        recent = watcher.recent_activity("item-1")

        assert len(recent) == 1
        assert isinstance(recent[0], datetime)

    def test_add_item_below_threshold_triggers_restock(
        self, protocol_client: OrderProtocolClient
    ) -> None:
        watcher = build_watcher(protocol_client)
        item = watcher.add_item("Dairy Milk", threshold=15, capacity=100, unit="bar", stock=5)

        assert item.item_id.startswith("ITEM-")
        assert item.stock == 25
        assert watcher.activity_log.snapshot()[-1].message.startswith("Added Dairy Milk")


# =============================================================================
# Trigger and decision
# =============================================================================


class TestTrigger:
    """Workflows start only on a low observation"""

    def test_healthy_stock_runs_no_workflow(
        self, protocol_client: OrderProtocolClient, settlement: SimulatedSettlement
    ) -> None:
        watcher = build_watcher(protocol_client, make_item(stock=10, threshold=10))

        assert watcher.observe("item-1") is None
        assert settlement.payments == []

    def test_crossing_runs_primary_workflow(
        self,
        protocol_client: OrderProtocolClient,
        settlement: SimulatedSettlement,
        supplier_service: SupplierService,
    ) -> None:
        before = metric_value("restock_workflows_total", {"outcome": "FULFILLED"})
        watcher = build_watcher(protocol_client, make_item(stock=10, threshold=10))

        outcome = watcher.sell("item-1")

        assert outcome.status == RestockStatus.FULFILLED
        assert outcome.quantity == 20
        assert outcome.stock_after == 29
        assert outcome.recommendation.source == "fallback"
        assert outcome.attempt.state == OrderState.FULFILLED
        assert watcher.get_item("item-1").stock == 29
        assert len(settlement.payments) == 1
        assert len(supplier_service.ledger) == 1
        assert metric_value("restock_workflows_total", {"outcome": "FULFILLED"}) == before + 1

    def test_declined_recommendation_leaves_stock(
        self, protocol_client: OrderProtocolClient, settlement: SimulatedSettlement
    ) -> None:
        advisor = StubAdvisor(
            recommendation=RestockRecommendation(
                should_restock=False,
                recommended_quantity=1,
                reason="slow mover",
                urgency_score=1,
            )
        )
        watcher = build_watcher(protocol_client, make_item(stock=8), advisor=advisor)

        outcome = watcher.observe("item-1")

        assert outcome.status == RestockStatus.DECLINED
        assert outcome.stock_after == 8
        assert settlement.payments == []

    def test_advisory_quantity_is_ordered(
        self, protocol_client: OrderProtocolClient, supplier_service: SupplierService
    ) -> None:
        advisor = StubAdvisor(
            recommendation=RestockRecommendation(
                should_restock=True,
                recommended_quantity=35,
                reason="weekend",
                urgency_score=8,
            )
        )
        watcher = build_watcher(protocol_client, make_item(stock=8), advisor=advisor)

        outcome = watcher.observe("item-1")

        assert outcome.quantity == 35
        assert outcome.stock_after == 43
        assert supplier_service.ledger.list_orders()[0].quantity == 35

    def test_advisory_failure_falls_back_to_threshold_rule(
        self, protocol_client: OrderProtocolClient
    ) -> None:
        watcher = build_watcher(
            protocol_client, make_item(stock=8), advisor=StubAdvisor(error="timeout")
        )

        outcome = watcher.observe("item-1")

        assert outcome.status == RestockStatus.FULFILLED
        assert outcome.recommendation.source == "fallback"
        assert outcome.quantity == 20

    def test_manual_restock_skips_decision(self, protocol_client: OrderProtocolClient) -> None:
        advisor = StubAdvisor(error="should not be consulted")
        watcher = build_watcher(protocol_client, make_item(stock=40), advisor=advisor)

        outcome = watcher.restock("item-1", 5)

        assert outcome.status == RestockStatus.FULFILLED
        assert outcome.recommendation is None
        assert outcome.stock_after == 45
        assert advisor.calls == []

    def test_manual_restock_rejects_non_positive_quantity(
        self, protocol_client: OrderProtocolClient
    ) -> None:
        watcher = build_watcher(protocol_client, make_item())
        with pytest.raises(ValueError):
            watcher.restock("item-1", 0)


# =============================================================================
# Single flight
# =============================================================================


class TestSingleFlight:
    """At most one workflow at a time, across all items"""

    def test_crossing_while_busy_is_ignored(self, supplier_http: httpx.Client) -> None:
        blocking = BlockingSettlement()
        watcher = build_watcher(
            OrderProtocolClient(supplier_http, blocking),
            make_item(item_id="rice", stock=8),
            make_item(item_id="chips", name="Lays Chips", stock=30, threshold=20),
        )
        skipped_before = metric_value("restock_triggers_skipped_total")
        outcomes = []
        worker = threading.Thread(target=lambda: outcomes.append(watcher.observe("rice")))

        worker.start()
        assert blocking.entered.wait(timeout=5)
        try:
            assert watcher.busy
            # Chips crosses its threshold while rice is being paid for
            for _ in range(11):
                assert watcher.sell("chips") is None
            assert watcher.restock("chips", 10) is None
        finally:
            blocking.release.set()
            worker.join(timeout=5)

        assert blocking.calls == 1
        assert outcomes[0].status == RestockStatus.FULFILLED
        assert watcher.get_item("chips").stock == 19  # ignored, not queued
        assert not watcher.busy
        assert metric_value("restock_triggers_skipped_total") >= skipped_before + 2

    def test_lock_released_after_failure(self, supplier_http: httpx.Client) -> None:
        watcher = build_watcher(
            OrderProtocolClient(supplier_http, SimulatedSettlement(fail_with="no funds")),
            make_item(stock=8),
            fallback_gateway=FallbackGateway(directory=[]),
        )

        first = watcher.observe("item-1")
        second = watcher.observe("item-1")

        assert first.status == RestockStatus.FAILED
        assert second is not None  # the lock did not leak
        assert not watcher.busy

    def test_unexpected_error_is_contained(self, supplier_http: httpx.Client) -> None:
        watcher = build_watcher(
            OrderProtocolClient(supplier_http, ExplodingSettlement()), make_item(stock=8)
        )

        outcome = watcher.observe("item-1")

        assert outcome.status == RestockStatus.FAILED
        assert "wallet driver crashed" in outcome.error
        assert outcome.stock_after == 8
        assert not watcher.busy
        assert watcher.activity_log.snapshot()[0].level == "error"


# =============================================================================
# Fallback escalation
# =============================================================================


class TestFallback:
    """Primary failure escalates once to the discovery network"""

    def test_settlement_failure_uses_fallback(
        self, supplier_http: httpx.Client, supplier_service: SupplierService
    ) -> None:
        watcher = build_watcher(
            OrderProtocolClient(supplier_http, SimulatedSettlement(fail_with="no funds")),
            make_item(stock=8),
        )

        outcome = watcher.observe("item-1")

        assert outcome.status == RestockStatus.FALLBACK_FULFILLED
        assert outcome.attempt.state == OrderState.FAILED
        assert outcome.fallback_supplier == "Premium Rice Distributors"
        assert outcome.fallback_order_id.startswith("AP2-")
        assert outcome.stock_after == 28
        assert len(supplier_service.ledger) == 0

        [entry] = watcher.transaction_history.snapshot()
        assert entry.channel == "fallback"
        assert entry.reference == outcome.fallback_order_id
        assert entry.proof is None

    def test_exhausted_discovery_fails(self, supplier_http: httpx.Client) -> None:
        before = metric_value("restock_fallback_orders_total", {"status": "exhausted"})
        watcher = build_watcher(
            OrderProtocolClient(supplier_http, SimulatedSettlement(fail_with="no funds")),
            make_item(stock=8),
            fallback_gateway=FallbackGateway(directory=[]),
        )

        outcome = watcher.observe("item-1")

        assert outcome.status == RestockStatus.FAILED
        assert "No fallback supplier available for 20 x Basmati Rice" in outcome.error
        assert outcome.stock_after == 8
        assert watcher.transaction_history.snapshot() == []
        assert (
            metric_value("restock_fallback_orders_total", {"status": "exhausted"}) == before + 1
        )


# =============================================================================
# Bookkeeping
# =============================================================================


class TestBookkeeping:
    """Activity log and transaction history"""

    def test_primary_purchase_recorded_in_history(
        self, protocol_client: OrderProtocolClient
    ) -> None:
        watcher = build_watcher(protocol_client, make_item(stock=8))
        outcome = watcher.observe("item-1")

        [entry] = watcher.transaction_history.snapshot()
        assert entry.channel == "primary"
        assert entry.status == "Success"
        assert entry.proof == outcome.attempt.proof
        assert entry.reference == outcome.attempt.tracking_id
        assert entry.quantity == 20

    def test_activity_log_is_bounded(self, protocol_client: OrderProtocolClient) -> None:
        watcher = build_watcher(
            protocol_client,
            make_item(stock=8),
            settings=AgentSettings(log_capacity=2),
        )
        watcher.observe("item-1")

        log = watcher.activity_log.snapshot()
        assert len(log) == 2
        assert log[0].level == "success"
