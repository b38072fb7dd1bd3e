"""
Supplier - server half of the payment-gated order protocol

Dynamic pricing, the append-only order ledger, settlement proof verification,
and the Flask application that exposes them.
"""

from agentic_restock.supplier.ledger import InvoiceBook, OrderLedger
from agentic_restock.supplier.models import Order, OrderStatus
from agentic_restock.supplier.pricing import PricingEngine, compute_price
from agentic_restock.supplier.server import create_supplier_app
from agentic_restock.supplier.service import SupplierService
from agentic_restock.supplier.verification import (
    BearerProofVerifier,
    ProofVerifier,
    Web3ProofVerifier,
)

__all__ = [
    "Order",
    "OrderStatus",
    "OrderLedger",
    "InvoiceBook",
    "PricingEngine",
    "compute_price",
    "SupplierService",
    "create_supplier_app",
    "ProofVerifier",
    "BearerProofVerifier",
    "Web3ProofVerifier",
]
