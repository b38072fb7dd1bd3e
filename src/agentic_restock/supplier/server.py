"""
Supplier HTTP server

Flask application exposing the payment-gated order protocol:

    POST /buy-stock               order request / proof submission
    GET  /supplier/orders         ledger view with total revenue
    GET  /.well-known/agent.json  capability descriptor
    GET  /health/live             liveness probe
"""

from decimal import Decimal
from typing import Any

from flask import Flask, jsonify, request
from pydantic import ValidationError

from agentic_restock.contract import (
    AGENT_CARD_PATH,
    BUY_STOCK_PATH,
    INVOICE_ID_HEADER,
    PAYMENT_HASH_HEADER,
    SUPPLIER_ORDERS_PATH,
    OrderRequest,
)
from agentic_restock.kernel.errors import PaymentRequired, ProofRejected
from agentic_restock.kernel.logging import CORRELATION_HEADER, bind_correlation_id, get_logger
from agentic_restock.supplier.service import SupplierService

logger = get_logger(__name__)


def create_supplier_app(service: SupplierService | None = None) -> Flask:
    """
    Application factory for the supplier

    Args:
        service: Order service (a default one with in-memory ledger if None)

    Returns:
        Configured Flask application; the service is at app.config["SUPPLIER_SERVICE"]
    """
    app = Flask(__name__)
    supplier = service or SupplierService()
    app.config["SUPPLIER_SERVICE"] = supplier
    precision = supplier.settings.pricing.precision

    @app.before_request
    def bind_request_correlation_id() -> None:
        bind_correlation_id(request.headers.get(CORRELATION_HEADER))

    @app.after_request
    def expose_payment_header(response: Any) -> Any:
        """Browser agents need to read the proof header back (CORS)"""
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Expose-Headers"] = PAYMENT_HASH_HEADER
        return response

    @app.route(BUY_STOCK_PATH, methods=["POST"])
    def buy_stock() -> tuple[Any, int]:
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            return jsonify({"error": "Bad Request", "details": "JSON object body required"}), 400
        try:
            order_request = OrderRequest(item=body.get("item"), quantity=body.get("quantity"))
        except ValidationError as e:
            logger.warning("Rejected malformed order request", errors=e.error_count())
            return (
                jsonify(
                    {
                        "error": "Bad Request",
                        "details": e.errors(
                            include_url=False, include_context=False, include_input=False
                        ),
                    }
                ),
                400,
            )

        proof = request.headers.get(PAYMENT_HASH_HEADER)
        invoice_id = request.headers.get(INVOICE_ID_HEADER)

        try:
            order, created = supplier.handle_order(order_request, proof, invoice_id)
        except PaymentRequired as challenge:
            invoice = challenge.invoice
            return (
                jsonify(
                    {
                        "error": "Payment Required",
                        "message": f"Please send {invoice.amount:f} {invoice.currency}",
                        "paymentDetails": invoice.to_wire(),
                    }
                ),
                402,
            )
        except ProofRejected as e:
            return (
                jsonify(
                    {
                        "error": "Payment Verification Failed",
                        "message": e.reason,
                    }
                ),
                402,
            )

        if created:
            message = (
                f"Payment confirmed! {order.quantity} {order.item} dispatched via drone."
            )
        else:
            message = f"Payment already applied to order {order.order_id}."

        return (
            jsonify(
                {
                    "success": True,
                    "message": message,
                    "trackingId": order.tracking_id,
                    "orderId": order.order_id,
                    "invoiceSatisfied": True,
                }
            ),
            200,
        )

    @app.route(SUPPLIER_ORDERS_PATH, methods=["GET"])
    def supplier_orders() -> tuple[Any, int]:
        orders = supplier.ledger.list_orders()
        revenue = supplier.ledger.total_revenue().quantize(Decimal(1).scaleb(-precision))
        return (
            jsonify(
                {
                    "orders": [o.to_wire(precision) for o in orders],
                    "totalRevenue": f"{revenue:f}",
                }
            ),
            200,
        )

    @app.route(AGENT_CARD_PATH, methods=["GET"])
    def agent_card() -> tuple[Any, int]:
        return jsonify(supplier.agent_card()), 200

    @app.route("/health/live", methods=["GET"])
    def liveness() -> tuple[Any, int]:
        return (
            jsonify({"status": "alive", "service": "supplier", "orders": len(supplier.ledger)}),
            200,
        )

    return app


def run_supplier_server(
    service: SupplierService, host: str = "0.0.0.0", port: int = 3000
) -> None:
    """
    Run the supplier server (threaded development server).

    Args:
        service: Configured supplier service
        host: Interface to bind
        port: Port to listen on (default: 3000)
    """
    app = create_supplier_app(service)
    logger.info("Starting supplier API", host=host, port=port)
    app.run(host=host, port=port, threaded=True)
