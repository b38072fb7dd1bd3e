"""
Wiring - build a ready-to-run agent or supplier from settings

Example:
    >>> from agentic_restock.bootstrap import build_watcher
    >>> watcher = build_watcher(AgentSettings.from_env(), simulate_payment=True)
    >>> rice = watcher.items()[0]
    >>> watcher.sell(rice.item_id)  # may trigger a restock workflow
"""

from collections.abc import Iterable

import httpx

from agentic_restock.agent.advisory import ChatCompletionsAdvisor, DecisionEngine, FallbackPolicy
from agentic_restock.agent.models import InventoryItem
from agentic_restock.agent.protocol import OrderProtocolClient
from agentic_restock.agent.settlement import SettlementGateway, SimulatedSettlement, Web3Settlement
from agentic_restock.agent.watcher import InventoryWatcher
from agentic_restock.fallback.gateway import FallbackGateway
from agentic_restock.kernel.settings import AgentSettings, SupplierSettings
from agentic_restock.kernel.time import TimeProvider
from agentic_restock.supplier.service import SupplierService
from agentic_restock.supplier.verification import BearerProofVerifier, Web3ProofVerifier


def default_inventory() -> list[InventoryItem]:
    """Starting shelf used by the CLI and demos"""
    return [
        InventoryItem(
            item_id="1", name="Basmati Rice", unit="kg", stock=38, threshold=10, capacity=50
        ),
        InventoryItem(
            item_id="2", name="Nataraj Pencils", unit="box", stock=15, threshold=5, capacity=100
        ),
        InventoryItem(
            item_id="3", name="Lays Chips", unit="pkt", stock=8, threshold=20, capacity=50
        ),
        InventoryItem(
            item_id="4", name="Thums Up", unit="btl", stock=45, threshold=12, capacity=60
        ),
        InventoryItem(
            item_id="5", name="Dairy Milk", unit="bar", stock=22, threshold=15, capacity=100
        ),
    ]


def build_settlement(settings: AgentSettings, simulate_payment: bool = False) -> SettlementGateway:
    """
    On-chain settlement when a key and RPC endpoint are configured

    Raises:
        ValueError: If real settlement is requested without credentials
    """
    if simulate_payment:
        return SimulatedSettlement()
    if not settings.can_sign:
        raise ValueError(
            "AGENT_PRIVATE_KEY and RPC_URL are required for on-chain settlement "
            "(or use simulated payment)"
        )
    return Web3Settlement.from_rpc_url(
        settings.rpc_url,
        settings.private_key.get_secret_value(),
        chain_id=settings.chain_id,
        confirmation_timeout_seconds=settings.settlement_timeout_seconds,
        request_timeout_seconds=settings.request_timeout_seconds,
    )


def build_decision_engine(settings: AgentSettings) -> DecisionEngine:
    """Decision engine with the chat-completions advisory when configured"""
    advisor = None
    if settings.advisory_enabled:
        advisor = ChatCompletionsAdvisor(
            base_url=settings.advisory_url,
            api_key=settings.advisory_api_key.get_secret_value(),
            model=settings.advisory_model,
            timeout_seconds=settings.advisory_timeout_seconds,
        )
    return DecisionEngine(FallbackPolicy(settings.default_restock_quantity), advisor)


def build_watcher(
    settings: AgentSettings,
    *,
    simulate_payment: bool = False,
    settlement: SettlementGateway | None = None,
    http_client: httpx.Client | None = None,
    decision_engine: DecisionEngine | None = None,
    fallback_gateway: FallbackGateway | None = None,
    items: Iterable[InventoryItem] | None = None,
    time_provider: TimeProvider | None = None,
) -> InventoryWatcher:
    """Assemble an inventory watcher; any collaborator can be overridden"""
    client = http_client or httpx.Client(
        base_url=settings.supplier_url, timeout=settings.request_timeout_seconds
    )
    protocol = OrderProtocolClient(
        client, settlement or build_settlement(settings, simulate_payment)
    )
    return InventoryWatcher(
        decision_engine=decision_engine or build_decision_engine(settings),
        protocol_client=protocol,
        fallback_gateway=fallback_gateway or FallbackGateway(),
        settings=settings,
        time_provider=time_provider,
        items=default_inventory() if items is None else items,
    )


def build_supplier_service(
    settings: SupplierSettings, time_provider: TimeProvider | None = None
) -> SupplierService:
    """
    Supplier service with bearer or on-chain proof verification

    Raises:
        ValueError: If no settlement address is configured, or on-chain
            verification is enabled without an RPC endpoint
    """
    if not settings.has_settlement_address:
        raise ValueError(
            "SUPPLIER_WALLET_ADDRESS is required; invoices would ask for payment "
            "to the zero address"
        )
    if settings.verify_on_chain:
        if not settings.rpc_url:
            raise ValueError("RPC_URL is required when on-chain verification is enabled")
        verifier = Web3ProofVerifier.from_rpc_url(
            settings.rpc_url, request_timeout_seconds=settings.rpc_timeout_seconds
        )
    else:
        verifier = BearerProofVerifier()
    return SupplierService(settings=settings, verifier=verifier, time_provider=time_provider)
