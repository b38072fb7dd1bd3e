"""
Buying Agent Domain Models

Inventory items, restock recommendations, and the per-attempt order state
machine.

Fun fact: The two-bin Kanban system Toyota used in the 1950s is the same
trigger modelled here - when the first bin empties past a line, you reorder.
We just let an agent pay for the refill.
"""

from datetime import datetime
from enum import Enum

from pydantic import AliasChoices, BaseModel, Field, field_validator

from agentic_restock.contract import Invoice
from agentic_restock.kernel.errors import InvalidTransition


class InventoryItem(BaseModel):
    """
    One stock-keeping unit watched by the agent

    Stock is compared against threshold; capacity is a display bound only and
    is never used to clamp stock.
    """

    item_id: str = Field(..., description="Unique item identifier")
    name: str = Field(..., description="Display name, also sent to the supplier")
    unit: str = Field(default="units", description="Unit of measure (kg, box, ...)")
    stock: int = Field(..., ge=0, description="Units on hand")
    threshold: int = Field(..., ge=0, description="Restock when stock falls below this")
    capacity: int = Field(..., ge=1, description="Nominal shelf capacity")

    model_config = {"validate_assignment": True}

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate name is non-empty"""
        if not v or not v.strip():
            raise ValueError("Item name cannot be empty")
        return v.strip()

    @property
    def is_low(self) -> bool:
        return self.stock < self.threshold


class RestockRecommendation(BaseModel):
    """
    Output of one decision cycle

    Accepts the camelCase keys an advisory model replies with.
    """

    should_restock: bool = Field(
        ..., validation_alias=AliasChoices("should_restock", "shouldRestock")
    )
    recommended_quantity: int = Field(
        ...,
        gt=0,
        validation_alias=AliasChoices("recommended_quantity", "recommendedQuantity"),
    )
    reason: str = Field(default="")
    urgency_score: int = Field(
        ...,
        ge=1,
        le=10,
        validation_alias=AliasChoices("urgency_score", "urgencyScore"),
    )
    source: str = Field(default="advisory", description="advisory or fallback")

    model_config = {"frozen": True, "populate_by_name": True}


class OrderState(str, Enum):
    """
    Order attempt lifecycle

    Finite state machine:
    REQUESTED → CHALLENGE_ISSUED → SETTLING → VERIFIED → FULFILLED
         ↓              ↓              ↓          ↓
                         FAILED (terminal, from any non-terminal state)
    """

    REQUESTED = "REQUESTED"
    CHALLENGE_ISSUED = "CHALLENGE_ISSUED"
    SETTLING = "SETTLING"
    VERIFIED = "VERIFIED"
    FULFILLED = "FULFILLED"
    FAILED = "FAILED"


ALLOWED_TRANSITIONS: dict[OrderState, frozenset[OrderState]] = {
    OrderState.REQUESTED: frozenset({OrderState.CHALLENGE_ISSUED, OrderState.FAILED}),
    OrderState.CHALLENGE_ISSUED: frozenset({OrderState.SETTLING, OrderState.FAILED}),
    OrderState.SETTLING: frozenset({OrderState.VERIFIED, OrderState.FAILED}),
    OrderState.VERIFIED: frozenset({OrderState.FULFILLED, OrderState.FAILED}),
    OrderState.FULFILLED: frozenset(),
    OrderState.FAILED: frozenset(),
}


class OrderAttempt(BaseModel):
    """
    Client-side record of one trip through the order state machine
    """

    item: str
    quantity: int = Field(..., gt=0)
    state: OrderState = Field(default=OrderState.REQUESTED)
    trail: list[OrderState] = Field(default_factory=lambda: [OrderState.REQUESTED])
    invoice: Invoice | None = None
    proof: str | None = None
    tracking_id: str | None = None
    message: str | None = None
    failure_reason: str | None = None

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self.state]

    def advance(self, to_state: OrderState) -> None:
        """
        Move to the next state

        Raises:
            InvalidTransition: If the edge does not exist
        """
        if to_state not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTransition(self.state.value, to_state.value)
        self.state = to_state
        self.trail.append(to_state)

    def fail(self, reason: str) -> None:
        """Move to FAILED from any non-terminal state"""
        self.failure_reason = reason
        self.advance(OrderState.FAILED)


class TransactionHistoryEntry(BaseModel):
    """Agent-side mirror of a completed purchase (observational only)"""

    time: datetime
    item: str
    quantity: int
    proof: str | None = None
    status: str
    channel: str = Field(default="primary", description="primary or fallback")
    reference: str | None = Field(default=None, description="Tracking or fallback order id")

    model_config = {"frozen": True}


class ActivityEntry(BaseModel):
    """One operator-facing line of the watcher's activity log"""

    time: datetime
    level: str = Field(default="info", description="info, success, warning, error")
    message: str

    model_config = {"frozen": True}


class RestockStatus(str, Enum):
    """How a watcher workflow ended"""

    FULFILLED = "FULFILLED"  # primary protocol succeeded
    FALLBACK_FULFILLED = "FALLBACK_FULFILLED"  # primary failed, fallback succeeded
    DECLINED = "DECLINED"  # decision gate said no
    FAILED = "FAILED"  # primary and fallback both failed


class RestockOutcome(BaseModel):
    """Result of one watcher workflow"""

    item_id: str
    item_name: str
    status: RestockStatus
    quantity: int = 0
    recommendation: RestockRecommendation | None = None
    attempt: OrderAttempt | None = None
    fallback_order_id: str | None = None
    fallback_supplier: str | None = None
    error: str | None = None
    stock_after: int
