"""
Supplier Order Ledger and Invoice Book

The ledger is an append-only record of fulfilled orders. Revenue is always
derived from it, never stored separately. The invoice book remembers the
challenges still awaiting payment so the amount charged is the amount quoted.

Fun fact: The oldest surviving ledgers are Sumerian clay tablets from about
3000 BCE - mostly recording deliveries of grain, beer, and sheep. Restocking
has always been the killer app of bookkeeping!
"""

import threading
from collections import OrderedDict
from datetime import datetime, timedelta
from decimal import Decimal

from agentic_restock.contract import Invoice
from agentic_restock.kernel.logging import get_logger
from agentic_restock.kernel.metrics import (
    duplicate_proofs_total,
    ledger_revenue,
    orders_recorded_total,
)
from agentic_restock.supplier.models import Order

logger = get_logger(__name__)


class OrderLedger:
    """
    Append-only, insertion-ordered order ledger

    Each `record` call is atomic. With `deduplicate_proofs` enabled the
    ledger is keyed by settlement proof: the first order carrying a proof
    wins and later orders with the same proof return the first entry
    without adding anything.
    """

    def __init__(self, deduplicate_proofs: bool = True) -> None:
        self.deduplicate_proofs = deduplicate_proofs
        self._orders: list[Order] = []  # chronological
        self._by_proof: dict[str, Order] = {}
        self._lock = threading.Lock()

    def record(self, order: Order) -> Order:
        """
        Append an order and return the stored entry

        Returns the previously stored order instead when its proof was
        already used and deduplication is on.
        """
        stored, _ = self.record_with_status(order)
        return stored

    def record_with_status(self, order: Order) -> tuple[Order, bool]:
        """
        Append an order, reporting whether a new entry was created

        Returns:
            (stored_order, created)
        """
        with self._lock:
            if self.deduplicate_proofs and order.proof in self._by_proof:
                first = self._by_proof[order.proof]
                duplicate_proofs_total.inc()
                logger.warning(
                    "Settlement proof already used, returning first order",
                    order_id=first.order_id,
                    item=first.item,
                )
                return first, False

            self._orders.append(order)
            self._by_proof.setdefault(order.proof, order)
            revenue = sum((o.total_price for o in self._orders), Decimal("0"))

        orders_recorded_total.inc()
        ledger_revenue.set(float(revenue))
        logger.info(
            "Order recorded",
            order_id=order.order_id,
            item=order.item,
            quantity=order.quantity,
            total_price=str(order.total_price),
        )
        return order, True

    def find_by_proof(self, proof: str) -> Order | None:
        """First order that was unlocked by `proof`, if any"""
        with self._lock:
            return self._by_proof.get(proof)

    def list_orders(self) -> list[Order]:
        """Orders newest first"""
        with self._lock:
            return list(reversed(self._orders))

    def total_revenue(self) -> Decimal:
        """Sum of total_price over every recorded order (0 when empty)"""
        with self._lock:
            return sum((o.total_price for o in self._orders), Decimal("0"))

    def __len__(self) -> int:
        with self._lock:
            return len(self._orders)


class InvoiceBook:
    """
    Unsettled invoices keyed by invoice id

    Lets the supplier charge the amount it actually quoted, even when the
    surge window opens between challenge and settlement. Unauthenticated
    clients can request challenges freely, so the book is bounded twice:
    invoices older than `ttl` are forgotten, and once `capacity` is reached
    the oldest invoice is dropped. A settled invoice is released at once.
    A forgotten invoice is not an error; the order is re-quoted instead.
    """

    def __init__(self, capacity: int = 1000, ttl_seconds: int = 900) -> None:
        if capacity < 1:
            raise ValueError(f"Capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.ttl = timedelta(seconds=ttl_seconds)
        self._invoices: OrderedDict[str, Invoice] = OrderedDict()
        self._lock = threading.Lock()

    def issue(self, invoice: Invoice) -> Invoice:
        """Remember an invoice; re-issuing the same id is rejected"""
        with self._lock:
            if invoice.invoice_id in self._invoices:
                raise ValueError(f"Invoice {invoice.invoice_id} already issued")
            if invoice.issued_at is not None:
                self._expire(invoice.issued_at)
            while len(self._invoices) >= self.capacity:
                dropped, _ = self._invoices.popitem(last=False)
                logger.debug("Invoice book full, dropping oldest", invoice_id=dropped)
            self._invoices[invoice.invoice_id] = invoice
        return invoice

    def get(self, invoice_id: str, now: datetime | None = None) -> Invoice | None:
        """The invoice, or None if it was never issued, released, or has expired"""
        with self._lock:
            if now is not None:
                self._expire(now)
            return self._invoices.get(invoice_id)

    def release(self, invoice_id: str) -> Invoice | None:
        """Forget an invoice once a proof has settled it"""
        with self._lock:
            return self._invoices.pop(invoice_id, None)

    def _expire(self, now: datetime) -> None:
        # Insertion order is issue order, so expired invoices sit at the front
        while self._invoices:
            oldest = next(iter(self._invoices.values()))
            if oldest.issued_at is None or now - oldest.issued_at < self.ttl:
                break
            self._invoices.popitem(last=False)

    def __len__(self) -> int:
        with self._lock:
            return len(self._invoices)
