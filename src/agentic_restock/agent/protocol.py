"""
Order protocol client - agent half of the payment-gated order protocol

Two independent request/response round trips around one on-chain payment:

    1. POST /buy-stock {item, quantity}            -> 402 + invoice
    2. pay invoice.amount to invoice.destination_address   -> proof (tx hash)
    3. POST /buy-stock {item, quantity} + proof    -> 200 {success, trackingId}

Every step is recorded on an OrderAttempt. Anything unexpected moves the
attempt to FAILED and raises ProtocolFailure or SettlementFailure carrying
the attempt.
"""

from typing import Any

import httpx

from agentic_restock.agent.models import OrderAttempt, OrderState
from agentic_restock.agent.settlement import SettlementGateway
from agentic_restock.contract import (
    BUY_STOCK_PATH,
    INVOICE_ID_HEADER,
    PAYMENT_HASH_HEADER,
    FulfillmentReceipt,
    Invoice,
    OrderRequest,
)
from agentic_restock.kernel.errors import (
    PaymentRequired,
    ProtocolFailure,
    SettlementFailure,
)
from agentic_restock.kernel.logging import CORRELATION_HEADER, get_correlation_id, get_logger

logger = get_logger(__name__)


class OrderProtocolClient:
    """
    Drives one order attempt through the payment gate

    The http client carries the supplier base URL and the per-request
    timeout; settlement carries its own confirmation timeout.
    """

    def __init__(self, http_client: httpx.Client, settlement: SettlementGateway) -> None:
        self.http_client = http_client
        self.settlement = settlement

    @classmethod
    def for_supplier(
        cls,
        supplier_url: str,
        settlement: SettlementGateway,
        timeout_seconds: float = 10.0,
    ) -> "OrderProtocolClient":
        return cls(httpx.Client(base_url=supplier_url, timeout=timeout_seconds), settlement)

    def close(self) -> None:
        self.http_client.close()

    def purchase(self, item: str, quantity: int) -> OrderAttempt:
        """
        Run a full order attempt

        Returns:
            The attempt in FULFILLED state

        Raises:
            ProtocolFailure: A round trip failed or answered unexpectedly
            SettlementFailure: The on-chain payment failed
        """
        request = OrderRequest(item=item, quantity=quantity)
        attempt = OrderAttempt(item=request.item, quantity=request.quantity)

        try:
            self.request_order(request)
        except PaymentRequired as challenge:
            attempt.invoice = challenge.invoice
            attempt.advance(OrderState.CHALLENGE_ISSUED)
        except ProtocolFailure as e:
            attempt.fail(str(e))
            e.attempt = attempt
            raise
        else:
            reason = "Supplier fulfilled an order without a payment challenge"
            attempt.fail(reason)
            raise ProtocolFailure(reason, attempt)

        invoice = attempt.invoice
        logger.info(
            "Payment challenge received",
            item=request.item,
            quantity=request.quantity,
            amount=str(invoice.amount),
            currency=invoice.currency,
            invoice_id=invoice.invoice_id,
        )

        attempt.advance(OrderState.SETTLING)
        try:
            attempt.proof = self.settlement.pay(invoice.amount, invoice.destination_address)
        except SettlementFailure as e:
            attempt.fail(str(e))
            e.attempt = attempt
            raise

        try:
            receipt = self.submit_proof(request, attempt.proof, invoice)
        except ProtocolFailure as e:
            attempt.fail(str(e))
            e.attempt = attempt
            raise

        attempt.advance(OrderState.VERIFIED)
        attempt.tracking_id = receipt.tracking_id
        attempt.message = receipt.message
        attempt.advance(OrderState.FULFILLED)
        logger.info(
            "Order fulfilled",
            item=request.item,
            quantity=request.quantity,
            tracking_id=receipt.tracking_id,
        )
        return attempt

    def request_order(self, request: OrderRequest) -> FulfillmentReceipt:
        """
        First round trip, without proof

        Raises:
            PaymentRequired: The expected 402 challenge, carrying the invoice
            ProtocolFailure: Any other failure
        """
        response = self._post(request, headers={})
        if response.status_code == 402:
            body = self._json(response)
            details = body.get("paymentDetails")
            if not isinstance(details, dict):
                raise ProtocolFailure("402 response without paymentDetails")
            try:
                invoice = Invoice.from_wire(details, request)
            except ValueError as e:
                raise ProtocolFailure(f"Malformed payment challenge: {e}") from e
            raise PaymentRequired(invoice)
        return self._receipt(response)

    def submit_proof(
        self, request: OrderRequest, proof: str, invoice: Invoice
    ) -> FulfillmentReceipt:
        """
        Second round trip, resubmitting the identical request with the proof

        Raises:
            ProtocolFailure: The supplier did not confirm fulfilment
        """
        headers = {PAYMENT_HASH_HEADER: proof, INVOICE_ID_HEADER: invoice.invoice_id}
        response = self._post(request, headers=headers)
        return self._receipt(response)

    def _post(self, request: OrderRequest, headers: dict[str, str]) -> httpx.Response:
        headers = {**headers, CORRELATION_HEADER: get_correlation_id()}
        try:
            return self.http_client.post(
                BUY_STOCK_PATH, json=request.model_dump(), headers=headers
            )
        except httpx.TimeoutException as e:
            raise ProtocolFailure(f"Supplier request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ProtocolFailure(f"Supplier unreachable: {e}") from e

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError as e:
            raise ProtocolFailure(
                f"Supplier returned non-JSON body (HTTP {response.status_code})"
            ) from e
        if not isinstance(body, dict):
            raise ProtocolFailure("Supplier returned a non-object JSON body")
        return body

    def _receipt(self, response: httpx.Response) -> FulfillmentReceipt:
        body = self._json(response)
        if response.status_code != 200:
            detail = body.get("message") or body.get("error") or "no detail"
            raise ProtocolFailure(f"Supplier answered HTTP {response.status_code}: {detail}")
        receipt = FulfillmentReceipt.from_wire(body)
        if not receipt.success:
            raise ProtocolFailure(f"Supplier reported failure: {receipt.message or 'no detail'}")
        return receipt
