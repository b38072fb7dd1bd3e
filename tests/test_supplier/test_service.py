"""
Tests for the supplier order service

Covers the challenge, proof acceptance, invoice pinning, replay handling, and
the verification hook - all without HTTP.
"""

from decimal import Decimal

import pytest

from agentic_restock.contract import OrderRequest
from agentic_restock.kernel.errors import InvoiceMismatch, PaymentRequired, ProofRejected
from agentic_restock.kernel.settings import SupplierSettings
from agentic_restock.kernel.time import TestTimeProvider
from agentic_restock.supplier.models import OrderStatus
from agentic_restock.supplier.service import SupplierService
from tests.helpers import SUPPLIER_ADDRESS, metric_value


class RejectingVerifier:
    def __init__(self, reason: str = "not on chain") -> None:
        self.reason = reason
        self.calls: list[tuple[str, str]] = []

    def verify(self, proof, invoice) -> None:
        self.calls.append((proof, invoice.invoice_id))
        raise ProofRejected(proof, self.reason)


@pytest.fixture
def rice() -> OrderRequest:
    return OrderRequest(item="Basmati Rice", quantity=20)


# =============================================================================
# Challenge
# =============================================================================


class TestChallenge:
    """Requests without proof are answered with a priced invoice"""

    def test_no_proof_raises_payment_required(
        self, supplier_service: SupplierService, rice: OrderRequest
    ) -> None:
        before = metric_value("supplier_payment_challenges_total")
        with pytest.raises(PaymentRequired) as exc_info:
            supplier_service.handle_order(rice)

        invoice = exc_info.value.invoice
        assert invoice.amount == Decimal("0.000100")
        assert invoice.currency == "ETH"
        assert invoice.destination_address == SUPPLIER_ADDRESS
        assert invoice.invoice_id.startswith("INV-")
        assert invoice.item == "Basmati Rice"
        assert invoice.quantity == 20
        assert metric_value("supplier_payment_challenges_total") == before + 1

    @pytest.mark.parametrize("proof", [None, "", "   "])
    def test_blank_proof_is_no_proof(
        self, supplier_service: SupplierService, rice: OrderRequest, proof: str | None
    ) -> None:
        with pytest.raises(PaymentRequired):
            supplier_service.handle_order(rice, proof)
        assert len(supplier_service.ledger) == 0

    def test_invoice_amount_equals_quote_at_call_time(
        self,
        supplier_service: SupplierService,
        test_time: TestTimeProvider,
    ) -> None:
        request = OrderRequest(item="Basmati Rice", quantity=150)
        test_time.set_hour(18)
        with pytest.raises(PaymentRequired) as exc_info:
            supplier_service.handle_order(request)

        assert exc_info.value.invoice.amount == supplier_service.pricing.quote("Basmati Rice", 150)
        assert exc_info.value.invoice.amount == Decimal("0.000110")

    def test_challenge_pins_invoice(
        self, supplier_service: SupplierService, rice: OrderRequest
    ) -> None:
        with pytest.raises(PaymentRequired) as exc_info:
            supplier_service.handle_order(rice)
        assert supplier_service.invoices.get(exc_info.value.invoice.invoice_id) is not None

    def test_pinning_disabled_keeps_no_invoices(
        self, test_time: TestTimeProvider, rice: OrderRequest
    ) -> None:
        service = SupplierService(
            settings=SupplierSettings(pin_invoices=False), time_provider=test_time
        )
        with pytest.raises(PaymentRequired):
            service.handle_order(rice)
        assert len(service.invoices) == 0


# =============================================================================
# Fulfilment
# =============================================================================


class TestFulfilment:
    """Requests with a proof are verified and recorded"""

    def test_any_non_empty_proof_fulfils(
        self, supplier_service: SupplierService, rice: OrderRequest, test_time: TestTimeProvider
    ) -> None:
        order, created = supplier_service.handle_order(rice, "0xabc")

        assert created is True
        assert order.item == "Basmati Rice"
        assert order.quantity == 20
        assert order.total_price == Decimal("0.000100")
        assert order.proof == "0xabc"
        assert order.status == OrderStatus.DISPATCHED
        assert order.order_id.startswith("ORD-")
        assert order.tracking_id.startswith("TRK-")
        assert order.timestamp == test_time.now()
        assert supplier_service.ledger.list_orders() == [order]

    def test_pinned_invoice_amount_survives_surge(
        self,
        supplier_service: SupplierService,
        rice: OrderRequest,
        test_time: TestTimeProvider,
    ) -> None:
        """Quoted off-peak, settled after 17:00: charged the quoted price"""
        test_time.set_time(test_time.now().replace(hour=16, minute=55))
        with pytest.raises(PaymentRequired) as exc_info:
            supplier_service.handle_order(rice)
        invoice = exc_info.value.invoice

        test_time.set_hour(17)
        order, _ = supplier_service.handle_order(rice, "0xabc", invoice.invoice_id)

        assert order.total_price == Decimal("0.000100")
        assert order.invoice_id == invoice.invoice_id

    def test_without_invoice_id_price_is_requoted(
        self,
        supplier_service: SupplierService,
        rice: OrderRequest,
        test_time: TestTimeProvider,
    ) -> None:
        test_time.set_hour(16)
        with pytest.raises(PaymentRequired):
            supplier_service.handle_order(rice)

        test_time.set_hour(17)
        order, _ = supplier_service.handle_order(rice, "0xabc")

        assert order.total_price == Decimal("0.000120")

    def test_settled_invoice_is_released(
        self, supplier_service: SupplierService, rice: OrderRequest
    ) -> None:
        with pytest.raises(PaymentRequired) as exc_info:
            supplier_service.handle_order(rice)
        invoice_id = exc_info.value.invoice.invoice_id

        supplier_service.handle_order(rice, "0xabc", invoice_id)

        assert supplier_service.invoices.get(invoice_id) is None
        assert len(supplier_service.invoices) == 0

    def test_expired_invoice_is_requoted(
        self, test_time: TestTimeProvider, rice: OrderRequest
    ) -> None:
        service = SupplierService(
            settings=SupplierSettings(invoice_ttl_seconds=600), time_provider=test_time
        )
        test_time.set_hour(16)
        with pytest.raises(PaymentRequired) as exc_info:
            service.handle_order(rice)

        test_time.set_hour(17)
        order, _ = service.handle_order(rice, "0xabc", exc_info.value.invoice.invoice_id)

        assert order.total_price == Decimal("0.000120")

    def test_unknown_invoice_id_is_requoted(
        self, supplier_service: SupplierService, rice: OrderRequest
    ) -> None:
        order, created = supplier_service.handle_order(rice, "0xabc", "INV-forged")
        assert created is True
        assert order.total_price == Decimal("0.000100")

    def test_invoice_for_other_order_is_rejected(
        self, supplier_service: SupplierService, rice: OrderRequest
    ) -> None:
        with pytest.raises(PaymentRequired) as exc_info:
            supplier_service.handle_order(rice)
        invoice_id = exc_info.value.invoice.invoice_id

        bigger = OrderRequest(item="Basmati Rice", quantity=200)
        with pytest.raises(InvoiceMismatch, match="20 x Basmati Rice"):
            supplier_service.handle_order(bigger, "0xabc", invoice_id)
        assert len(supplier_service.ledger) == 0

    def test_replayed_proof_returns_first_order(
        self, supplier_service: SupplierService, rice: OrderRequest
    ) -> None:
        first, first_created = supplier_service.handle_order(rice, "0xabc")
        second, second_created = supplier_service.handle_order(rice, "0xabc")

        assert first_created is True
        assert second_created is False
        assert second.order_id == first.order_id
        assert supplier_service.ledger.total_revenue() == Decimal("0.000100")

    def test_replay_without_dedup_double_counts(
        self, test_time: TestTimeProvider, rice: OrderRequest
    ) -> None:
        service = SupplierService(
            settings=SupplierSettings(deduplicate_proofs=False), time_provider=test_time
        )
        service.handle_order(rice, "0xabc")
        service.handle_order(rice, "0xabc")

        assert len(service.ledger) == 2
        assert service.ledger.total_revenue() == Decimal("0.000200")


# =============================================================================
# Verification hook
# =============================================================================


class TestVerificationHook:
    """The injected verifier decides whether a proof pays the invoice"""

    def test_rejected_proof_records_nothing(
        self, test_time: TestTimeProvider, rice: OrderRequest
    ) -> None:
        verifier = RejectingVerifier()
        service = SupplierService(verifier=verifier, time_provider=test_time)
        before = metric_value("supplier_proofs_rejected_total")

        with pytest.raises(ProofRejected, match="not on chain"):
            service.handle_order(rice, "0xabc")

        assert len(service.ledger) == 0
        assert verifier.calls and verifier.calls[0][0] == "0xabc"
        assert metric_value("supplier_proofs_rejected_total") == before + 1

    def test_verifier_sees_pinned_invoice(
        self, test_time: TestTimeProvider, rice: OrderRequest
    ) -> None:
        verifier = RejectingVerifier()
        service = SupplierService(verifier=verifier, time_provider=test_time)
        with pytest.raises(PaymentRequired) as exc_info:
            service.handle_order(rice)
        invoice_id = exc_info.value.invoice.invoice_id

        with pytest.raises(ProofRejected):
            service.handle_order(rice, "0xabc", invoice_id)
        assert verifier.calls == [("0xabc", invoice_id)]


def test_agent_card(supplier_service: SupplierService) -> None:
    assert supplier_service.agent_card() == {
        "name": "SmartWholesale Supplier",
        "capabilities": ["buy-stock", "negotiate-price"],
        "payment_types": ["x402", "eth-base-sepolia"],
    }
