"""
Prometheus metrics collection for Agentic Restock.

Provides observability into restock workflows, the payment gate, and the
supplier ledger.
"""

import time
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from prometheus_client import Counter, Gauge, Histogram, start_http_server

# ============================================================================
# Agent Workflow Metrics
# ============================================================================

restock_workflows_total = Counter(
    "restock_workflows_total",
    "Total number of restock workflows by outcome",
    ["outcome"],  # FULFILLED, FALLBACK_FULFILLED, DECLINED, FAILED
)

restock_triggers_skipped_total = Counter(
    "restock_triggers_skipped_total",
    "Threshold crossings ignored because a workflow was already running",
)

restock_workflow_duration_seconds = Histogram(
    "restock_workflow_duration_seconds",
    "Duration of a restock workflow from trigger to outcome",
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

advisory_fallbacks_total = Counter(
    "restock_advisory_fallbacks_total",
    "Number of decisions served by the deterministic fallback policy",
    ["reason"],  # unavailable, disabled
)

settlement_duration_seconds = Histogram(
    "restock_settlement_duration_seconds",
    "Time spent submitting and confirming on-chain payments",
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 40.0, 80.0),
)

fallback_orders_total = Counter(
    "restock_fallback_orders_total",
    "Orders placed through the fallback discovery network",
    ["status"],  # success, exhausted
)

# ============================================================================
# Supplier Metrics
# ============================================================================

payment_challenges_total = Counter(
    "supplier_payment_challenges_total",
    "Number of 402 payment challenges issued",
)

orders_recorded_total = Counter(
    "supplier_orders_recorded_total",
    "Number of orders appended to the ledger",
)

duplicate_proofs_total = Counter(
    "supplier_duplicate_proofs_total",
    "Settlement proofs presented more than once",
)

proofs_rejected_total = Counter(
    "supplier_proofs_rejected_total",
    "Settlement proofs refused by the verification hook",
)

ledger_revenue = Gauge(
    "supplier_ledger_revenue",
    "Total revenue recorded in the ledger (base currency)",
)

# ============================================================================
# Helper Functions
# ============================================================================

P = ParamSpec("P")
R = TypeVar("R")


def track_settlement_duration(func: Callable[P, R]) -> Callable[P, R]:
    """
    Decorator recording how long a settlement call blocked, success or not.
    """

    @wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            settlement_duration_seconds.observe(time.perf_counter() - start)

    return wrapper


def start_metrics_server(port: int = 9090) -> None:
    """
    Start Prometheus metrics HTTP server.

    Args:
        port: Port to listen on (default: 9090)
    """
    start_http_server(port)
