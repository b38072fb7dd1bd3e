"""
Custom exceptions for Agentic Restock

Well-defined error hierarchy lets the inventory watcher tell recoverable
control-flow signals apart from real workflow failures.

Fun fact: HTTP status 402 "Payment Required" was reserved in 1997 "for future
use" - it took autonomous agents with wallets to finally give it a job!
"""

from decimal import Decimal
from typing import Any


class RestockError(Exception):
    """Base exception for all Agentic Restock errors"""

    pass


# Decision gate


class AdvisoryUnavailable(RestockError):
    """
    Raised when the restock advisory call fails or times out

    Never surfaced as a workflow failure - the decision engine recovers
    locally with its deterministic fallback policy.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Restock advisory unavailable: {reason}")


# Order protocol


class PaymentRequired(RestockError):
    """
    Raised when the supplier answers an order request with a priced challenge

    This is expected control flow, not an error: it moves the order attempt
    into the settling state.
    """

    def __init__(self, invoice: Any) -> None:
        self.invoice = invoice
        super().__init__(
            f"Payment of {invoice.amount} {invoice.currency} required "
            f"(invoice {invoice.invoice_id})"
        )


class WorkflowFailure(RestockError):
    """
    Base class for failures that end an order attempt in FAILED

    Carries the order attempt so the caller can inspect how far it got.
    """

    def __init__(self, message: str, attempt: Any = None) -> None:
        self.attempt = attempt
        super().__init__(message)


class SettlementFailure(WorkflowFailure):
    """Raised when on-chain submission or confirmation fails"""

    pass


class ProtocolFailure(WorkflowFailure):
    """Raised on a malformed or unsuccessful response outside the challenge"""

    pass


class DiscoveryExhausted(WorkflowFailure):
    """Raised when the fallback network lists no eligible suppliers"""

    def __init__(self, item: str, quantity: int) -> None:
        self.item = item
        self.quantity = quantity
        super().__init__(
            f"No fallback supplier available for {quantity} x {item}"
        )


class InvalidTransition(RestockError):
    """Raised when an order attempt is moved along an edge the state machine lacks"""

    def __init__(self, from_state: str, to_state: str) -> None:
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Illegal order state transition {from_state} -> {to_state}")


# Supplier side


class ProofRejected(RestockError):
    """Raised by a proof verifier when a settlement proof does not satisfy the invoice"""

    def __init__(self, proof: str, reason: str) -> None:
        self.proof = proof
        self.reason = reason
        super().__init__(f"Settlement proof {proof} rejected: {reason}")


class InvoiceMismatch(ProofRejected):
    """Raised when a pinned invoice does not match the order it is presented with"""

    def __init__(self, invoice_id: str, expected: str, actual: str) -> None:
        self.invoice_id = invoice_id
        super().__init__(
            invoice_id,
            f"invoice {invoice_id} was issued for {expected}, not {actual}",
        )


class InsufficientPayment(ProofRejected):
    """Raised when the on-chain transfer is smaller than the invoiced amount"""

    def __init__(self, proof: str, paid: Decimal, expected: Decimal) -> None:
        self.paid = paid
        self.expected = expected
        super().__init__(proof, f"paid {paid}, invoice requires {expected}")


# Inventory


class ItemNotFound(RestockError):
    """Raised when an inventory item does not exist"""

    def __init__(self, item_id: str) -> None:
        self.item_id = item_id
        super().__init__(f"Inventory item {item_id} not found")
