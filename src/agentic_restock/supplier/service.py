"""
Supplier order service - server half of the payment-gated order protocol

Handles one order request at a time with no cross-request lock; the only
shared state is the ledger and the invoice book, each of which guards its
own appends.

    request without proof -> PaymentRequired(invoice)       (402 challenge)
    request with proof     -> verify -> ledger append -> Order
"""

from agentic_restock.contract import Invoice, OrderRequest
from agentic_restock.kernel.errors import InvoiceMismatch, PaymentRequired, ProofRejected
from agentic_restock.kernel.ids import prefixed_id
from agentic_restock.kernel.logging import get_logger
from agentic_restock.kernel.metrics import payment_challenges_total, proofs_rejected_total
from agentic_restock.kernel.settings import SupplierSettings
from agentic_restock.kernel.time import RealTimeProvider, TimeProvider
from agentic_restock.supplier.ledger import InvoiceBook, OrderLedger
from agentic_restock.supplier.models import Order
from agentic_restock.supplier.pricing import PricingEngine
from agentic_restock.supplier.verification import BearerProofVerifier, ProofVerifier

logger = get_logger(__name__)


class SupplierService:
    """
    Supplier-side protocol handler

    Owns the order ledger; nothing else appends to it.
    """

    def __init__(
        self,
        settings: SupplierSettings | None = None,
        pricing: PricingEngine | None = None,
        ledger: OrderLedger | None = None,
        invoices: InvoiceBook | None = None,
        verifier: ProofVerifier | None = None,
        time_provider: TimeProvider | None = None,
    ) -> None:
        self.settings = settings or SupplierSettings()
        self.time_provider = time_provider or RealTimeProvider()
        self.pricing = pricing or PricingEngine(self.settings.pricing, self.time_provider)
        self.ledger = ledger or OrderLedger(
            deduplicate_proofs=self.settings.deduplicate_proofs
        )
        self.invoices = invoices or InvoiceBook(
            capacity=self.settings.invoice_capacity,
            ttl_seconds=self.settings.invoice_ttl_seconds,
        )
        self.verifier = verifier or BearerProofVerifier()

    def issue_invoice(self, request: OrderRequest) -> Invoice:
        """Price a request and issue the challenge invoice for it"""
        amount = self.pricing.quote(request.item, request.quantity)
        invoice = Invoice(
            invoice_id=prefixed_id("INV"),
            amount=amount,
            currency=self.settings.pricing.currency,
            destination_address=self.settings.settlement_address,
            item=request.item,
            quantity=request.quantity,
            issued_at=self.time_provider.now(),
        )
        if self.settings.pin_invoices:
            self.invoices.issue(invoice)
        return invoice

    def handle_order(
        self,
        request: OrderRequest,
        proof: str | None = None,
        invoice_id: str | None = None,
    ) -> tuple[Order, bool]:
        """
        Process one POST /buy-stock

        Args:
            request: Item and quantity
            proof: Settlement proof from the x-payment-hash header, if any
            invoice_id: Invoice the proof settles, from x-invoice-id, if any

        Returns:
            (order, created) - created is False when a deduplicated proof
            returned an order recorded earlier

        Raises:
            PaymentRequired: No proof was presented (carries the invoice)
            ProofRejected: The verification hook refused the proof
        """
        if not proof or not proof.strip():
            invoice = self.issue_invoice(request)
            payment_challenges_total.inc()
            logger.info(
                "Order request challenged",
                item=request.item,
                quantity=request.quantity,
                amount=str(invoice.amount),
                invoice_id=invoice.invoice_id,
            )
            raise PaymentRequired(invoice)

        proof = proof.strip()
        if self.settings.deduplicate_proofs:
            existing = self.ledger.find_by_proof(proof)
            if existing is not None:
                logger.warning("Replayed settlement proof", order_id=existing.order_id)
                return self.ledger.record_with_status(existing)

        invoice = self._invoice_for_proof(request, invoice_id)
        try:
            self.verifier.verify(proof, invoice)
        except ProofRejected as e:
            proofs_rejected_total.inc()
            logger.warning(
                "Settlement proof rejected",
                item=request.item,
                invoice_id=invoice.invoice_id,
                reason=e.reason,
            )
            raise

        order = Order(
            order_id=prefixed_id("ORD"),
            timestamp=self.time_provider.now(),
            item=request.item,
            quantity=request.quantity,
            total_price=invoice.amount,
            proof=proof,
            tracking_id=prefixed_id("TRK"),
            invoice_id=invoice_id,
        )
        order, created = self.ledger.record_with_status(order)
        if created and invoice_id:
            self.invoices.release(invoice_id)
        return order, created

    def _invoice_for_proof(self, request: OrderRequest, invoice_id: str | None) -> Invoice:
        """
        The invoice a proof is checked against

        A pinned invoice wins. Without one (unknown id, pinning disabled, or an
        agent that never names its invoice) the price is re-quoted at the
        current time.
        """
        if self.settings.pin_invoices and invoice_id:
            pinned = self.invoices.get(invoice_id, now=self.time_provider.now())
            if pinned is not None:
                if not pinned.matches(request):
                    raise InvoiceMismatch(
                        invoice_id,
                        expected=f"{pinned.quantity} x {pinned.item}",
                        actual=f"{request.quantity} x {request.item}",
                    )
                return pinned
            logger.warning("Unknown invoice id, re-quoting", invoice_id=invoice_id)

        return Invoice(
            invoice_id=invoice_id or prefixed_id("INV"),
            amount=self.pricing.quote(request.item, request.quantity),
            currency=self.settings.pricing.currency,
            destination_address=self.settings.settlement_address,
            item=request.item,
            quantity=request.quantity,
            issued_at=self.time_provider.now(),
        )

    def agent_card(self) -> dict:
        """Static capability descriptor served at /.well-known/agent.json"""
        return {
            "name": self.settings.name,
            "capabilities": list(self.settings.capabilities),
            "payment_types": list(self.settings.payment_types),
        }
