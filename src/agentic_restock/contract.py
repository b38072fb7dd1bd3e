"""
Payment-gated order protocol - wire contract shared by agent and supplier

Both halves of the protocol speak these shapes. Field names are snake_case in
Python; `to_wire` / `from_wire` translate to the camelCase JSON bodies that
travel over HTTP.

    POST /buy-stock {item, quantity}
      no proof header  -> 402 {error, message, paymentDetails}
      x-payment-hash   -> 200 {success, message, trackingId}
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, Field, field_validator

PAYMENT_HASH_HEADER = "x-payment-hash"
INVOICE_ID_HEADER = "x-invoice-id"

BUY_STOCK_PATH = "/buy-stock"
SUPPLIER_ORDERS_PATH = "/supplier/orders"
AGENT_CARD_PATH = "/.well-known/agent.json"


class OrderRequest(BaseModel):
    """Body of POST /buy-stock - identical on the challenge and proof round trips"""

    item: str = Field(..., description="Item name as the supplier knows it")
    quantity: int = Field(..., gt=0, description="Units requested")

    model_config = {"frozen": True}

    @field_validator("item")
    @classmethod
    def validate_item(cls, v: str) -> str:
        """Validate item is non-empty"""
        if not v or not v.strip():
            raise ValueError("Item cannot be empty")
        return v.strip()


class Invoice(BaseModel):
    """
    Priced challenge issued when an order request carries no settlement proof

    The amount is the total for the order in the settlement currency.
    """

    invoice_id: str = Field(..., description="Unique invoice identifier (INV-...)")
    amount: Decimal = Field(..., gt=0, description="Total owed, fixed precision")
    currency: str = Field(..., description="Settlement currency, e.g. ETH")
    destination_address: str = Field(..., description="Address to pay")
    item: str | None = Field(default=None, description="Item the invoice prices")
    quantity: int | None = Field(default=None, description="Quantity the invoice prices")
    issued_at: datetime | None = Field(default=None)

    model_config = {"frozen": True}

    def to_wire(self) -> dict[str, Any]:
        """paymentDetails object of a 402 response"""
        return {
            "amount": f"{self.amount:f}",
            "currency": self.currency,
            "destination": self.destination_address,
            "invoiceId": self.invoice_id,
        }

    @classmethod
    def from_wire(
        cls, details: dict[str, Any], request: OrderRequest | None = None
    ) -> "Invoice":
        """
        Parse a paymentDetails object

        Raises:
            ValueError: If a field is missing or the amount is not a decimal
        """
        try:
            amount = Decimal(str(details["amount"]))
            return cls(
                invoice_id=str(details["invoiceId"]),
                amount=amount,
                currency=str(details["currency"]),
                destination_address=str(details["destination"]),
                item=request.item if request else None,
                quantity=request.quantity if request else None,
            )
        except KeyError as e:
            raise ValueError(f"paymentDetails missing field {e}") from e
        except InvalidOperation as e:
            raise ValueError(
                f"paymentDetails amount {details.get('amount')!r} is not a decimal"
            ) from e

    def matches(self, request: OrderRequest) -> bool:
        """Whether this invoice was issued for exactly this item and quantity"""
        return self.item == request.item and self.quantity == request.quantity


class FulfillmentReceipt(BaseModel):
    """Success body returned once a settlement proof is accepted"""

    success: bool
    message: str = ""
    tracking_id: str | None = None

    @classmethod
    def from_wire(cls, body: dict[str, Any]) -> "FulfillmentReceipt":
        return cls(
            success=bool(body.get("success", False)),
            message=str(body.get("message", "")),
            tracking_id=body.get("trackingId"),
        )
