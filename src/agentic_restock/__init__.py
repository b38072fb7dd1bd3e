"""
Agentic Restock - payment-gated autonomous procurement

A buying agent watches inventory, decides when to reorder, and pays a
supplier on-chain through an HTTP 402 challenge before the order is
fulfilled. When that path fails it falls back to a secondary supplier
network.

Fun fact: The corner shop's "khata" credit ledger and a blockchain have more
in common than you'd think - both are append-only, and both get consulted
before the goods leave the counter!
"""

from agentic_restock.agent.watcher import InventoryWatcher
from agentic_restock.supplier.service import SupplierService

__version__ = "0.1.0"
__all__ = ["InventoryWatcher", "SupplierService", "__version__"]
