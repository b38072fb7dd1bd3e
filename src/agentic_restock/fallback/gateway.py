"""
Fallback Discovery Gateway

Secondary, lower-trust channel for sourcing supply once the payment-gated
protocol has failed. Discovery is a lookup against a static directory and
ordering is a single-round handshake with no payment challenge.

Fun fact: Before purchase orders were electronic, buyers kept a "vendor card
file" of backup suppliers for exactly this moment - the directory below is
that card file with two cards in it.
"""

from collections.abc import Iterable

from agentic_restock.fallback.models import (
    DEFAULT_DIRECTORY,
    FALLBACK_PROTOCOL,
    FallbackOrderResult,
    Supplier,
)
from agentic_restock.kernel.ids import prefixed_id
from agentic_restock.kernel.logging import get_logger

logger = get_logger(__name__)


def select_supplier(suppliers: list[Supplier]) -> Supplier:
    """
    Pick the supplier to order from

    Highest rating wins; ties break by supplier_id (lexicographic) so the
    choice is deterministic.

    Raises:
        ValueError: If suppliers is empty

    Example:
        >>> select_supplier(gateway.discover("rice", 20)).name
        'Premium Rice Distributors'
    """
    if not suppliers:
        raise ValueError("Cannot select from empty supplier list")
    return sorted(suppliers, key=lambda s: (-s.rating, s.supplier_id))[0]


class FallbackGateway:
    """
    Discovery and ordering against the fallback network
    """

    def __init__(
        self,
        directory: Iterable[Supplier] = DEFAULT_DIRECTORY,
        protocol: str = FALLBACK_PROTOCOL,
    ) -> None:
        self.directory = tuple(directory)
        self.protocol = protocol

    def discover(self, item: str, quantity: int) -> list[Supplier]:
        """
        Suppliers advertising the fallback protocol capability

        Returns an empty list when none qualify; the caller decides whether
        that is fatal.
        """
        found = [s for s in self.directory if s.supports(self.protocol)]
        logger.info(
            "Fallback discovery",
            item=item,
            quantity=quantity,
            suppliers_found=len(found),
        )
        return found

    def place_order(self, supplier: Supplier, item: str, quantity: int) -> FallbackOrderResult:
        """
        Single-round handshake with a fallback supplier

        Success is unconditional: the network is modelled as a trusted
        channel with no settlement step.
        """
        if quantity <= 0:
            raise ValueError(f"Quantity must be positive, got {quantity}")
        logger.info("Fallback handshake", supplier=supplier.name, item=item, quantity=quantity)
        return FallbackOrderResult(
            success=True,
            order_id=prefixed_id("AP2"),
            estimated_delivery=supplier.delivery_estimate,
            protocol_used=self.protocol,
            message=f"Order placed via {self.protocol.upper()} network to {supplier.name}",
        )
