"""
Test Helper Functions - Builders, doubles, and assertions

Provides reusable builders for test data creation and small test doubles for
the agent's injected capabilities.

Fun fact: The Builder pattern was formalized by the Gang of Four in 1994,
but test data builders were popularized by the growing programmer test
movement in the 2000s - we use them to keep tests readable and maintainable!
"""

import threading
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from prometheus_client import REGISTRY

from agentic_restock.agent.advisory import DecisionEngine, FallbackPolicy
from agentic_restock.agent.models import (
    InventoryItem,
    OrderAttempt,
    OrderState,
    RestockRecommendation,
)
from agentic_restock.agent.protocol import OrderProtocolClient
from agentic_restock.agent.watcher import InventoryWatcher
from agentic_restock.contract import Invoice
from agentic_restock.fallback.gateway import FallbackGateway
from agentic_restock.kernel.errors import AdvisoryUnavailable
from agentic_restock.kernel.settings import AgentSettings
from agentic_restock.kernel.time import TimeProvider
from agentic_restock.supplier.models import Order

DEFAULT_TIME = datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc)
SUPPLIER_ADDRESS = "0x" + "ab" * 20


def make_item(
    stock: int = 8,
    threshold: int = 10,
    capacity: int = 50,
    name: str = "Basmati Rice",
    unit: str = "kg",
    item_id: str = "item-1",
) -> InventoryItem:
    """
    Builder for inventory items

    Defaults describe an item already below its threshold.
    """
    return InventoryItem(
        item_id=item_id,
        name=name,
        unit=unit,
        stock=stock,
        threshold=threshold,
        capacity=capacity,
    )


def make_invoice(
    amount: str = "0.000100",
    item: str | None = "Basmati Rice",
    quantity: int | None = 20,
    invoice_id: str = "INV-test",
    destination: str = SUPPLIER_ADDRESS,
    currency: str = "ETH",
    issued_at: datetime = DEFAULT_TIME,
) -> Invoice:
    """Builder for invoices"""
    return Invoice(
        invoice_id=invoice_id,
        amount=Decimal(amount),
        currency=currency,
        destination_address=destination,
        item=item,
        quantity=quantity,
        issued_at=issued_at,
    )


def make_order(
    proof: str = "0xproof",
    total_price: str = "0.000100",
    item: str = "Basmati Rice",
    quantity: int = 20,
    order_id: str | None = None,
    timestamp: datetime = DEFAULT_TIME,
) -> Order:
    """Builder for ledger orders"""
    return Order(
        order_id=order_id or f"ORD-{proof}",
        timestamp=timestamp,
        item=item,
        quantity=quantity,
        total_price=Decimal(total_price),
        proof=proof,
        tracking_id=f"TRK-{proof}",
    )


def build_watcher(
    protocol_client: OrderProtocolClient,
    *items: InventoryItem,
    advisor: Any = None,
    fallback_gateway: FallbackGateway | None = None,
    settings: AgentSettings | None = None,
    time_provider: TimeProvider | None = None,
) -> InventoryWatcher:
    """Builder for a watcher around a protocol client (fallback policy by default)"""
    settings = settings or AgentSettings()
    return InventoryWatcher(
        decision_engine=DecisionEngine(
            FallbackPolicy(settings.default_restock_quantity), advisor
        ),
        protocol_client=protocol_client,
        fallback_gateway=fallback_gateway or FallbackGateway(),
        settings=settings,
        time_provider=time_provider,
        items=items,
    )


class StubAdvisor:
    """Advisory double returning a canned recommendation or raising"""

    def __init__(
        self,
        recommendation: RestockRecommendation | None = None,
        error: str | None = None,
    ) -> None:
        self.recommendation = recommendation
        self.error = error
        self.calls: list[tuple[int, list[datetime], dict[str, Any]]] = []

    def recommend(
        self, current_stock: int, recent_activity: list[datetime], context: dict[str, Any]
    ) -> RestockRecommendation:
        self.calls.append((current_stock, recent_activity, context))
        if self.error is not None:
            raise AdvisoryUnavailable(self.error)
        return self.recommendation


class BlockingSettlement:
    """
    Settlement double that parks inside pay() until released

    Lets a test hold the single-flight lock open from another thread.
    """

    address = "0x000000000000000000000000000000000000dEaD"

    def __init__(self) -> None:
        self.entered = threading.Event()
        self.release = threading.Event()
        self.calls = 0

    def pay(self, amount: Decimal, destination: str) -> str:
        self.calls += 1
        self.entered.set()
        self.release.wait(timeout=5)
        return "0x" + f"{self.calls:064x}"


def metric_value(name: str, labels: dict[str, str] | None = None) -> float:
    """Current value of a Prometheus sample (0.0 if never observed)"""
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


def assert_state_trail(attempt: OrderAttempt, *states: OrderState) -> None:
    """Assert an order attempt visited exactly these states, in order"""
    assert attempt.trail == list(states), (
        f"expected {[s.value for s in states]}, got {[s.value for s in attempt.trail]}"
    )
