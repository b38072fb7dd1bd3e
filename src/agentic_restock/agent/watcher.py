"""
Inventory Watcher - the buying agent's control loop

Owns the authoritative stock values and the single-flight lock. Whenever
stock changes it checks the item against its threshold and, if no other
workflow is running, drives:

    decision gate -> payment-gated order protocol -> stock update
                                 ↓ (FAILED)
                     fallback discovery -> fallback order -> stock update

Crossings that happen while a workflow runs are ignored, not queued.

Fun fact: "Single flight" comes from Go's groupcache, where concurrent
requests for the same key share one in-flight call. Ours is stricter - one
restock per agent, full stop.
"""

import threading
from collections import deque
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta

from agentic_restock.agent.advisory import DecisionEngine
from agentic_restock.agent.models import (
    ActivityEntry,
    InventoryItem,
    OrderAttempt,
    RestockOutcome,
    RestockRecommendation,
    RestockStatus,
    TransactionHistoryEntry,
)
from agentic_restock.agent.protocol import OrderProtocolClient
from agentic_restock.fallback.gateway import FallbackGateway, select_supplier
from agentic_restock.kernel.activity import RingBuffer
from agentic_restock.kernel.errors import (
    DiscoveryExhausted,
    ItemNotFound,
    WorkflowFailure,
)
from agentic_restock.kernel.ids import prefixed_id
from agentic_restock.kernel.logging import (
    LogOperation,
    bind_correlation_id,
    get_logger,
)
from agentic_restock.kernel.metrics import (
    fallback_orders_total,
    restock_triggers_skipped_total,
    restock_workflow_duration_seconds,
    restock_workflows_total,
)
from agentic_restock.kernel.settings import AgentSettings
from agentic_restock.kernel.time import RealTimeProvider, TimeProvider

logger = get_logger(__name__)

SALES_MEMORY = 500  # per item, bounds the recent-activity deque


class SingleFlight:
    """
    Process-wide guard allowing at most one workflow at a time

    Acquisition never blocks: a caller that loses the race is told so and
    walks away. Release happens on every exit path of `attempt()`.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.holder: str | None = None

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def attempt(self, owner: str) -> Iterator[bool]:
        """
        Try to take the guard for `owner`

        Yields:
            True if acquired (the body runs the workflow), False if busy
        """
        acquired = self._lock.acquire(blocking=False)
        if acquired:
            self.holder = owner
        try:
            yield acquired
        finally:
            if acquired:
                self.holder = None
                self._lock.release()


class InventoryWatcher:
    """
    Autonomous restocking agent

    The only mutators of stock are `sell` and successful restocks. Callers
    always receive copies of items, never the watcher's own instances.
    """

    def __init__(
        self,
        decision_engine: DecisionEngine,
        protocol_client: OrderProtocolClient,
        fallback_gateway: FallbackGateway,
        settings: AgentSettings | None = None,
        time_provider: TimeProvider | None = None,
        items: Iterable[InventoryItem] = (),
    ) -> None:
        self.decision_engine = decision_engine
        self.protocol_client = protocol_client
        self.fallback_gateway = fallback_gateway
        self.settings = settings or AgentSettings()
        self.time_provider = time_provider or RealTimeProvider()

        self._items: dict[str, InventoryItem] = {}
        self._sales: dict[str, deque[datetime]] = {}
        self._items_lock = threading.RLock()
        self._single_flight = SingleFlight()

        self.activity_log: RingBuffer[ActivityEntry] = RingBuffer(self.settings.log_capacity)
        self.transaction_history: RingBuffer[TransactionHistoryEntry] = RingBuffer(
            self.settings.history_capacity
        )

        for item in items:
            self._store(item.model_copy())

    # Inventory operations

    @property
    def busy(self) -> bool:
        """Whether a restock workflow is currently running"""
        return self._single_flight.busy

    def items(self) -> list[InventoryItem]:
        """Snapshot of all items in insertion order"""
        with self._items_lock:
            return [item.model_copy() for item in self._items.values()]

    def get_item(self, item_id: str) -> InventoryItem:
        """
        Raises:
            ItemNotFound: If no such item exists
        """
        with self._items_lock:
            item = self._items.get(item_id)
            if item is None:
                raise ItemNotFound(item_id)
            return item.model_copy()

    def add_item(
        self,
        name: str,
        threshold: int,
        capacity: int,
        unit: str = "units",
        stock: int = 0,
    ) -> InventoryItem:
        """
        Start watching a new item

        A new item that already sits below its threshold is observed
        immediately, like any other stock change.
        """
        item = InventoryItem(
            item_id=prefixed_id("ITEM"),
            name=name,
            unit=unit,
            stock=stock,
            threshold=threshold,
            capacity=capacity,
        )
        self._store(item)
        self._log(f"Added {item.name} ({item.stock}/{item.capacity} {item.unit})")
        self.observe(item.item_id)
        return self.get_item(item.item_id)

    def sell(self, item_id: str) -> RestockOutcome | None:
        """
        Record one unit sold

        No-op when the item is out of stock. Otherwise the change is observed,
        which may run a restock workflow before this returns.
        """
        with self._items_lock:
            item = self._require(item_id)
            if item.stock <= 0:
                return None
            item.stock -= 1
            self._sales[item_id].append(self.time_provider.now())

        return self.observe(item_id)

    def recent_activity(self, item_id: str) -> list[datetime]:
        """Sale timestamps inside the activity window, oldest first"""
        cutoff = self.time_provider.now() - timedelta(seconds=self.settings.activity_window_seconds)
        with self._items_lock:
            self._require(item_id)
            return [t for t in self._sales[item_id] if t >= cutoff]

    # Workflow entry points

    def observe(self, item_id: str) -> RestockOutcome | None:
        """
        React to a stock change of `item_id`

        Returns:
            The workflow outcome, or None when no workflow ran (stock healthy,
            or another workflow holds the single-flight lock)
        """
        item = self.get_item(item_id)
        if not item.is_low:
            return None

        with self._single_flight.attempt(item_id) as acquired:
            if not acquired:
                restock_triggers_skipped_total.inc()
                logger.info(
                    "Threshold crossed while a workflow is active, ignoring",
                    item=item.name,
                    stock=item.stock,
                    active_item=self._single_flight.holder,
                )
                return None
            return self._run_workflow(item, quantity=None)

    def restock(self, item_id: str, quantity: int) -> RestockOutcome | None:
        """
        Operator-triggered restock of a fixed quantity

        Skips the decision gate but still honours the single-flight lock.

        Returns:
            The workflow outcome, or None if another workflow is active
        """
        if quantity <= 0:
            raise ValueError(f"Quantity must be positive, got {quantity}")
        item = self.get_item(item_id)

        with self._single_flight.attempt(item_id) as acquired:
            if not acquired:
                restock_triggers_skipped_total.inc()
                self._log(f"Restock of {item.name} ignored, another workflow is active", "warning")
                return None
            return self._run_workflow(item, quantity=quantity)

    # Workflow internals (single-flight lock held)

    def _run_workflow(self, item: InventoryItem, quantity: int | None) -> RestockOutcome:
        bind_correlation_id()
        try:
            with LogOperation(logger, "restock_workflow", item=item.name, stock=item.stock) as op:
                outcome = self._decide_and_procure(item, quantity)
        except Exception as e:  # workflow boundary - nothing escapes to the caller
            self._log(f"Restock of {item.name} aborted: {e}", "error")
            outcome = self._outcome(item, RestockStatus.FAILED, error=str(e))
        else:
            restock_workflow_duration_seconds.observe(op.elapsed_seconds)

        restock_workflows_total.labels(outcome=outcome.status.value).inc()
        return outcome

    def _decide_and_procure(self, item: InventoryItem, quantity: int | None) -> RestockOutcome:
        recommendation: RestockRecommendation | None = None
        if quantity is None:
            self._log(f"{item.name} low ({item.stock}/{item.threshold} {item.unit}), analyzing")
            recommendation = self.decision_engine.decide(
                item, self.recent_activity(item.item_id)
            )
            if not recommendation.should_restock:
                self._log(f"Decided not to restock {item.name}: {recommendation.reason}")
                return self._outcome(item, RestockStatus.DECLINED, recommendation=recommendation)
            quantity = recommendation.recommended_quantity
            self._log(
                f"Restocking {quantity} {item.unit} of {item.name} "
                f"(urgency {recommendation.urgency_score}/10): {recommendation.reason}"
            )

        try:
            attempt = self.protocol_client.purchase(item.name, quantity)
        except WorkflowFailure as e:
            self._log(f"Primary order for {item.name} failed: {e}", "error")
            logger.warning(
                "Primary protocol failed, escalating to fallback",
                item=item.name,
                error_type=type(e).__name__,
                state_trail=[s.value for s in e.attempt.trail] if e.attempt else None,
            )
            return self._procure_via_fallback(item, quantity, recommendation, e.attempt)

        stock_after = self._apply_restock(item.item_id, quantity)
        self.transaction_history.append(
            TransactionHistoryEntry(
                time=self.time_provider.now(),
                item=item.name,
                quantity=quantity,
                proof=attempt.proof,
                status="Success",
                channel="primary",
                reference=attempt.tracking_id,
            )
        )
        self._log(
            f"Paid {attempt.invoice.amount} {attempt.invoice.currency} for {quantity} "
            f"{item.unit} of {item.name}, tracking {attempt.tracking_id}",
            "success",
        )
        return self._outcome(
            item,
            RestockStatus.FULFILLED,
            quantity=quantity,
            recommendation=recommendation,
            attempt=attempt,
            stock_after=stock_after,
        )

    def _procure_via_fallback(
        self,
        item: InventoryItem,
        quantity: int,
        recommendation: RestockRecommendation | None,
        attempt: OrderAttempt | None,
    ) -> RestockOutcome:
        suppliers = self.fallback_gateway.discover(item.name, quantity)
        if not suppliers:
            fallback_orders_total.labels(status="exhausted").inc()
            error = DiscoveryExhausted(item.name, quantity)
            self._log(str(error), "error")
            return self._outcome(
                item,
                RestockStatus.FAILED,
                quantity=quantity,
                recommendation=recommendation,
                attempt=attempt,
                error=str(error),
            )

        supplier = select_supplier(suppliers)
        result = self.fallback_gateway.place_order(supplier, item.name, quantity)
        if not result.success:
            fallback_orders_total.labels(status="rejected").inc()
            self._log(f"Fallback order with {supplier.name} rejected: {result.message}", "error")
            return self._outcome(
                item,
                RestockStatus.FAILED,
                quantity=quantity,
                recommendation=recommendation,
                attempt=attempt,
                fallback_supplier=supplier.name,
                error=result.message,
            )

        fallback_orders_total.labels(status="success").inc()
        stock_after = self._apply_restock(item.item_id, quantity)
        self.transaction_history.append(
            TransactionHistoryEntry(
                time=self.time_provider.now(),
                item=item.name,
                quantity=quantity,
                status="Success",
                channel="fallback",
                reference=result.order_id,
            )
        )
        self._log(
            f"{result.message} (order {result.order_id}, ETA {result.estimated_delivery})",
            "success",
        )
        return self._outcome(
            item,
            RestockStatus.FALLBACK_FULFILLED,
            quantity=quantity,
            recommendation=recommendation,
            attempt=attempt,
            fallback_order_id=result.order_id,
            fallback_supplier=supplier.name,
            stock_after=stock_after,
        )

    # Helpers

    def _store(self, item: InventoryItem) -> None:
        with self._items_lock:
            self._items[item.item_id] = item
            self._sales.setdefault(item.item_id, deque(maxlen=SALES_MEMORY))

    def _require(self, item_id: str) -> InventoryItem:
        item = self._items.get(item_id)
        if item is None:
            raise ItemNotFound(item_id)
        return item

    def _apply_restock(self, item_id: str, quantity: int) -> int:
        """Add delivered units; increases never cross a threshold downward, so no observe"""
        with self._items_lock:
            item = self._require(item_id)
            item.stock += quantity
            return item.stock

    def _outcome(
        self,
        item: InventoryItem,
        status: RestockStatus,
        stock_after: int | None = None,
        **fields,
    ) -> RestockOutcome:
        if stock_after is None:
            stock_after = self.get_item(item.item_id).stock
        return RestockOutcome(
            item_id=item.item_id,
            item_name=item.name,
            status=status,
            stock_after=stock_after,
            **fields,
        )

    def _log(self, message: str, level: str = "info") -> None:
        self.activity_log.append(
            ActivityEntry(time=self.time_provider.now(), level=level, message=message)
        )
