"""
Pricing Engine - time-of-day and quantity based quotes

    price = base_price + surge(hour) - bulk_discount(quantity)

The quote is a pure function of (quantity, supplier-local hour). It is not
tied to any particular request, which is why issued invoices are pinned in the
InvoiceBook rather than re-quoted when the proof arrives.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from zoneinfo import ZoneInfo

from agentic_restock.kernel.settings import PricingPolicy
from agentic_restock.kernel.time import RealTimeProvider, TimeProvider


def compute_price(policy: PricingPolicy, quantity: int, hour: int) -> Decimal:
    """
    Quote an order for a quantity at a given supplier-local hour

    Args:
        policy: Pricing rules
        quantity: Units ordered (must be positive)
        hour: Supplier-local hour of day (0-23)

    Returns:
        Price quantized to policy.precision decimal places

    Raises:
        ValueError: If quantity is not positive or hour is out of range

    Example:
        >>> compute_price(PricingPolicy(), quantity=20, hour=10)
        Decimal('0.000100')
        >>> compute_price(PricingPolicy(), quantity=150, hour=18)
        Decimal('0.000110')
    """
    if quantity <= 0:
        raise ValueError(f"Quantity must be positive, got {quantity}")
    if not 0 <= hour <= 23:
        raise ValueError(f"Hour must be within 0-23, got {hour}")

    price = policy.base_price
    if policy.surge_start_hour <= hour < policy.surge_end_hour:
        price += policy.surge_amount
    if quantity > policy.bulk_threshold:
        price -= policy.bulk_discount

    quantum = Decimal(1).scaleb(-policy.precision)
    return price.quantize(quantum, rounding=ROUND_HALF_UP)


class PricingEngine:
    """
    Supplier pricing engine bound to a clock and a timezone

    Stateless apart from its configuration; safe to share across request
    threads.
    """

    def __init__(
        self,
        policy: PricingPolicy | None = None,
        time_provider: TimeProvider | None = None,
    ) -> None:
        self.policy = policy or PricingPolicy()
        self.time_provider = time_provider or RealTimeProvider()
        self._zone = (
            timezone.utc if self.policy.timezone == "UTC" else ZoneInfo(self.policy.timezone)
        )

    def local_hour(self, at: datetime | None = None) -> int:
        """Supplier-local hour for the given instant (default: now)"""
        moment = at or self.time_provider.now()
        return moment.astimezone(self._zone).hour

    def quote(self, item: str, quantity: int, at: datetime | None = None) -> Decimal:
        """
        Current price of `quantity` units of `item`

        The item does not influence the price today; it is part of the
        signature so per-item catalogues can slot in without changing callers.
        """
        return compute_price(self.policy, quantity, self.local_hour(at))
