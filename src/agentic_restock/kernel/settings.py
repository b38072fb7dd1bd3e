"""
Settings - Configuration surface for the agent and the supplier

Every tunable the core consumes lives here: signing credentials, the
supplier's settlement address, the dynamic pricing rules, and the restock
defaults. Defaults match the SmartWholesale demo deployment.

Fun fact: The "bulk discount" is one of the oldest pricing rules on record -
Babylonian grain contracts already quoted lower rates for larger measures!
"""

import os
from decimal import Decimal

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator

ZERO_ADDRESS = "0x" + "0" * 40


class PricingPolicy(BaseModel):
    """
    Dynamic pricing rules applied by the supplier on every request

    price = base_price + surge (late-day window) - bulk_discount (large orders),
    quantized to `precision` decimal places.
    """

    base_price: Decimal = Field(
        default=Decimal("0.0001"),
        gt=0,
        description="Flat price of an order in the settlement currency",
    )
    surge_amount: Decimal = Field(
        default=Decimal("0.00002"),
        ge=0,
        description="Surcharge added inside the late-day window",
    )
    surge_start_hour: int = Field(
        default=17,
        ge=0,
        le=23,
        description="First supplier-local hour of the surge window (inclusive)",
    )
    surge_end_hour: int = Field(
        default=24,
        ge=1,
        le=24,
        description="End of the surge window (exclusive, 24 = midnight)",
    )
    bulk_threshold: int = Field(
        default=100,
        ge=1,
        description="Quantities strictly above this earn the bulk discount",
    )
    bulk_discount: Decimal = Field(
        default=Decimal("0.00001"),
        ge=0,
        description="Amount taken off the price for bulk quantities",
    )
    precision: int = Field(
        default=6,
        ge=0,
        le=18,
        description="Decimal places the quoted price is rounded to",
    )
    currency: str = Field(default="ETH", description="Settlement currency")
    timezone: str = Field(
        default="UTC",
        description="IANA timezone of the supplier (defines 'local hour')",
    )

    @model_validator(mode="after")
    def validate_surge_window(self) -> "PricingPolicy":
        """Surge window must be non-empty"""
        if self.surge_end_hour <= self.surge_start_hour:
            raise ValueError(
                f"Surge window [{self.surge_start_hour}, {self.surge_end_hour}) is empty"
            )
        return self

    @model_validator(mode="after")
    def validate_discount_keeps_price_positive(self) -> "PricingPolicy":
        """Cheapest possible quote (off-peak bulk) must stay above zero"""
        if self.base_price - self.bulk_discount <= 0:
            raise ValueError("Bulk discount would make orders free or negative")
        return self


class SupplierSettings(BaseModel):
    """
    Supplier-side configuration

    `deduplicate_proofs` and `pin_invoices` close the double-credit and
    dual-quote gaps; turning them off restores plain bearer-proof trust.
    """

    name: str = Field(default="SmartWholesale Supplier")
    settlement_address: str = Field(
        default=ZERO_ADDRESS,
        description="Address invoices ask to be paid to (must be set before serving)",
    )
    pricing: PricingPolicy = Field(default_factory=PricingPolicy)
    capabilities: list[str] = Field(default=["buy-stock", "negotiate-price"])
    payment_types: list[str] = Field(default=["x402", "eth-base-sepolia"])
    deduplicate_proofs: bool = Field(
        default=True,
        description="Treat a repeated settlement proof as the same order",
    )
    pin_invoices: bool = Field(
        default=True,
        description="Charge the amount of the issued invoice instead of re-quoting",
    )
    invoice_capacity: int = Field(
        default=1000,
        ge=1,
        description="Most unsettled invoices kept; the oldest is dropped beyond this",
    )
    invoice_ttl_seconds: int = Field(
        default=900,
        ge=1,
        description="Unsettled invoices older than this are forgotten",
    )
    verify_on_chain: bool = Field(
        default=False,
        description="Check proofs against the chain instead of trusting the bearer",
    )
    rpc_url: str | None = Field(
        default=None, description="RPC endpoint used for on-chain verification"
    )
    rpc_timeout_seconds: float = Field(
        default=10.0, gt=0, description="Per-request timeout for verification lookups"
    )
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000, ge=1, le=65535)

    @field_validator("settlement_address")
    @classmethod
    def validate_settlement_address(cls, v: str) -> str:
        """Validate address is a 0x-prefixed 20-byte hex string"""
        v = v.strip()
        if not v.startswith("0x") or len(v) != 42:
            raise ValueError(f"Settlement address must be 0x + 40 hex chars, got {v!r}")
        int(v[2:], 16)
        return v

    @property
    def has_settlement_address(self) -> bool:
        """False while invoices would still point at the zero (burn) address"""
        return int(self.settlement_address, 16) != 0

    @classmethod
    def from_env(cls) -> "SupplierSettings":
        """Build settings from environment variables, keeping defaults for unset ones"""
        values: dict = {}
        if address := os.getenv("SUPPLIER_WALLET_ADDRESS"):
            values["settlement_address"] = address
        if rpc_url := os.getenv("RPC_URL"):
            values["rpc_url"] = rpc_url
        if port := os.getenv("SUPPLIER_PORT"):
            values["port"] = int(port)
        if verify := os.getenv("SUPPLIER_VERIFY_ON_CHAIN"):
            values["verify_on_chain"] = _parse_bool(verify)
        if capacity := os.getenv("SUPPLIER_INVOICE_CAPACITY"):
            values["invoice_capacity"] = int(capacity)
        if ttl := os.getenv("SUPPLIER_INVOICE_TTL_SECONDS"):
            values["invoice_ttl_seconds"] = int(ttl)
        if timeout := os.getenv("SUPPLIER_RPC_TIMEOUT_SECONDS"):
            values["rpc_timeout_seconds"] = float(timeout)

        pricing: dict = {}
        if base := os.getenv("PRICING_BASE_PRICE"):
            pricing["base_price"] = Decimal(base)
        if surge := os.getenv("PRICING_SURGE_AMOUNT"):
            pricing["surge_amount"] = Decimal(surge)
        if start := os.getenv("PRICING_SURGE_START_HOUR"):
            pricing["surge_start_hour"] = int(start)
        if end := os.getenv("PRICING_SURGE_END_HOUR"):
            pricing["surge_end_hour"] = int(end)
        if threshold := os.getenv("PRICING_BULK_THRESHOLD"):
            pricing["bulk_threshold"] = int(threshold)
        if discount := os.getenv("PRICING_BULK_DISCOUNT"):
            pricing["bulk_discount"] = Decimal(discount)
        if precision := os.getenv("PRICING_PRECISION"):
            pricing["precision"] = int(precision)
        if currency := os.getenv("PRICING_CURRENCY"):
            pricing["currency"] = currency
        if tz := os.getenv("SUPPLIER_TIMEZONE"):
            pricing["timezone"] = tz
        if pricing:
            values["pricing"] = PricingPolicy(**pricing)

        return cls(**values)


class AgentSettings(BaseModel):
    """
    Buying-agent configuration

    Timeouts bound every suspension point of a workflow so a hung supplier or
    RPC node can never hold the single-flight lock forever.
    """

    supplier_url: str = Field(default="http://localhost:3000")
    rpc_url: str | None = Field(default=None, description="Chain RPC endpoint")
    private_key: SecretStr | None = Field(
        default=None, description="Signing key of the paying wallet"
    )
    chain_id: int | None = Field(default=None, description="Chain id (None = ask node)")
    default_restock_quantity: int = Field(default=20, ge=1)
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    settlement_timeout_seconds: float = Field(default=120.0, gt=0)
    advisory_timeout_seconds: float = Field(default=15.0, gt=0)
    advisory_url: str | None = Field(
        default=None, description="OpenAI-compatible chat completions base URL"
    )
    advisory_model: str = Field(default="gpt-4o-mini")
    advisory_api_key: SecretStr | None = Field(default=None)
    activity_window_seconds: int = Field(
        default=3600, ge=1, description="How far back sales count as recent activity"
    )
    log_capacity: int = Field(default=50, ge=1)
    history_capacity: int = Field(default=100, ge=1)

    @property
    def advisory_enabled(self) -> bool:
        """Advisory is used only when both endpoint and key are configured"""
        return bool(self.advisory_url and self.advisory_api_key)

    @property
    def can_sign(self) -> bool:
        """On-chain settlement needs a key and an RPC endpoint"""
        return bool(self.private_key and self.rpc_url)

    @classmethod
    def from_env(cls) -> "AgentSettings":
        """Build settings from environment variables, keeping defaults for unset ones"""
        values: dict = {}
        if url := os.getenv("SUPPLIER_URL"):
            values["supplier_url"] = url
        if rpc_url := os.getenv("RPC_URL"):
            values["rpc_url"] = rpc_url
        if key := os.getenv("AGENT_PRIVATE_KEY"):
            values["private_key"] = SecretStr(key)
        if chain_id := os.getenv("CHAIN_ID"):
            values["chain_id"] = int(chain_id)
        if quantity := os.getenv("RESTOCK_DEFAULT_QUANTITY"):
            values["default_restock_quantity"] = int(quantity)
        if timeout := os.getenv("REQUEST_TIMEOUT_SECONDS"):
            values["request_timeout_seconds"] = float(timeout)
        if timeout := os.getenv("SETTLEMENT_TIMEOUT_SECONDS"):
            values["settlement_timeout_seconds"] = float(timeout)
        if advisory_url := os.getenv("ADVISORY_URL"):
            values["advisory_url"] = advisory_url
        if model := os.getenv("ADVISORY_MODEL"):
            values["advisory_model"] = model
        if api_key := os.getenv("ADVISORY_API_KEY"):
            values["advisory_api_key"] = SecretStr(api_key)
        return cls(**values)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}
