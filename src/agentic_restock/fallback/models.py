"""
Fallback Network Models

Static directory entries for the secondary supplier-discovery network.
"""

from pydantic import BaseModel, Field, field_validator

FALLBACK_PROTOCOL = "ap2"


class Supplier(BaseModel):
    """
    Directory entry for an alternate supplier

    Read-only to the core. Rating is the network's 0-5 star score.
    """

    supplier_id: str = Field(..., description="Unique supplier identifier")
    name: str = Field(..., description="Supplier name")
    rating: float = Field(..., ge=0.0, le=5.0, description="Network rating (0-5)")
    delivery_estimate: str = Field(..., description="Human-readable delivery estimate")
    endpoint: str | None = Field(default=None, description="Order endpoint on the network")
    supported_protocols: frozenset[str] = Field(
        default_factory=frozenset, description="Ordering protocols the supplier speaks"
    )

    model_config = {"frozen": True}

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate name is non-empty"""
        if not v or not v.strip():
            raise ValueError("Supplier name cannot be empty")
        return v.strip()

    def supports(self, protocol: str) -> bool:
        return protocol in self.supported_protocols


class FallbackOrderResult(BaseModel):
    """Outcome of a single-round fallback handshake"""

    success: bool
    order_id: str
    estimated_delivery: str
    protocol_used: str = FALLBACK_PROTOCOL
    message: str

    model_config = {"frozen": True}


DEFAULT_DIRECTORY: tuple[Supplier, ...] = (
    Supplier(
        supplier_id="supplier-1",
        name="Premium Rice Distributors",
        rating=4.8,
        delivery_estimate="2 hours",
        endpoint="https://ap2.supplier1.com/order",
        supported_protocols=frozenset({"x402", "ap2"}),
    ),
    Supplier(
        supplier_id="supplier-2",
        name="Local Farm Co-op",
        rating=4.5,
        delivery_estimate="4 hours",
        endpoint="https://ap2.farmcoop.com/order",
        supported_protocols=frozenset({"ap2", "traditional"}),
    ),
)
