"""
Agent - the buying side

Inventory watcher, restock decision gate, on-chain settlement, and the client
half of the payment-gated order protocol.
"""

from agentic_restock.agent.advisory import (
    AdvisoryClient,
    ChatCompletionsAdvisor,
    DecisionEngine,
    FallbackPolicy,
)
from agentic_restock.agent.models import (
    ActivityEntry,
    InventoryItem,
    OrderAttempt,
    OrderState,
    RestockOutcome,
    RestockRecommendation,
    RestockStatus,
    TransactionHistoryEntry,
)
from agentic_restock.agent.protocol import OrderProtocolClient
from agentic_restock.agent.settlement import (
    SettlementGateway,
    SimulatedSettlement,
    Web3Settlement,
)
from agentic_restock.agent.watcher import InventoryWatcher, SingleFlight

__all__ = [
    "InventoryWatcher",
    "SingleFlight",
    "DecisionEngine",
    "FallbackPolicy",
    "AdvisoryClient",
    "ChatCompletionsAdvisor",
    "OrderProtocolClient",
    "SettlementGateway",
    "Web3Settlement",
    "SimulatedSettlement",
    "InventoryItem",
    "RestockRecommendation",
    "OrderAttempt",
    "OrderState",
    "RestockOutcome",
    "RestockStatus",
    "TransactionHistoryEntry",
    "ActivityEntry",
]
