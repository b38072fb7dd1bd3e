"""
Fallback - secondary supplier discovery network
"""

from agentic_restock.fallback.gateway import FallbackGateway, select_supplier
from agentic_restock.fallback.models import (
    DEFAULT_DIRECTORY,
    FALLBACK_PROTOCOL,
    FallbackOrderResult,
    Supplier,
)

__all__ = [
    "FallbackGateway",
    "select_supplier",
    "Supplier",
    "FallbackOrderResult",
    "DEFAULT_DIRECTORY",
    "FALLBACK_PROTOCOL",
]
