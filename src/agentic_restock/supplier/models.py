"""
Supplier Domain Models

Orders are the supplier's append-only facts: one per fulfilled, paid request.

Fun fact: Double-entry bookkeeping was codified by Luca Pacioli in 1494 - and
accountants still never erase a ledger line, they only add new ones. Same here.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class OrderStatus(str, Enum):
    """Fulfilment status recorded with an order"""

    DISPATCHED = "DISPATCHED"


class Order(BaseModel):
    """
    Ledger entry for a fulfilled order

    Created exactly once per fulfilled request and immutable thereafter.
    """

    order_id: str = Field(..., description="Unique order identifier (ORD-...)")
    timestamp: datetime = Field(..., description="When the order was recorded")
    item: str = Field(..., description="Item ordered")
    quantity: int = Field(..., gt=0, description="Units ordered")
    total_price: Decimal = Field(..., ge=0, description="Amount charged")
    proof: str = Field(..., description="Settlement proof that unlocked the order")
    status: OrderStatus = Field(default=OrderStatus.DISPATCHED)
    tracking_id: str = Field(..., description="Shipment tracking identifier")
    invoice_id: str | None = Field(
        default=None, description="Invoice the proof settled, when the agent named it"
    )

    model_config = {"frozen": True}

    @field_validator("proof")
    @classmethod
    def validate_proof(cls, v: str) -> str:
        """Validate proof is non-empty"""
        if not v or not v.strip():
            raise ValueError("Settlement proof cannot be empty")
        return v.strip()

    def to_wire(self, precision: int = 6) -> dict[str, Any]:
        """JSON shape served by GET /supplier/orders"""
        quantum = Decimal(1).scaleb(-precision)
        return {
            "orderId": self.order_id,
            "timestamp": self.timestamp.isoformat(),
            "item": self.item,
            "quantity": self.quantity,
            "totalPrice": f"{self.total_price.quantize(quantum):f}",
            "proof": self.proof,
            "status": self.status.value,
            "trackingId": self.tracking_id,
            "invoiceId": self.invoice_id,
        }
