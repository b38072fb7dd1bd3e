"""
Kernel - Shared infrastructure for the agent and the supplier

Errors, structured logging, metrics, time, ids, and configuration. Neither
side of the order protocol imports the other; both build on the kernel.
"""

from agentic_restock.kernel.errors import (
    AdvisoryUnavailable,
    DiscoveryExhausted,
    PaymentRequired,
    ProofRejected,
    ProtocolFailure,
    RestockError,
    SettlementFailure,
    WorkflowFailure,
)
from agentic_restock.kernel.ids import generate_id, prefixed_id
from agentic_restock.kernel.settings import AgentSettings, PricingPolicy, SupplierSettings
from agentic_restock.kernel.time import RealTimeProvider, TestTimeProvider, TimeProvider

__all__ = [
    # IDs
    "generate_id",
    "prefixed_id",
    # Time
    "TimeProvider",
    "RealTimeProvider",
    "TestTimeProvider",
    # Settings
    "AgentSettings",
    "PricingPolicy",
    "SupplierSettings",
    # Errors
    "RestockError",
    "AdvisoryUnavailable",
    "PaymentRequired",
    "WorkflowFailure",
    "SettlementFailure",
    "ProtocolFailure",
    "DiscoveryExhausted",
    "ProofRejected",
]
