"""
Retry logic with exponential backoff for transient failures.

Only idempotent reads are retried. The order protocol and the restock
advisory call are deliberately single-shot; see the inventory watcher for the
one fallback path that exists.
"""

from collections.abc import Callable
from typing import TypeVar

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from agentic_restock.kernel.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def retry_chain_lookup(
    exceptions: tuple[type[Exception], ...],
    max_attempts: int = 5,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Retry decorator for reading a transaction back from an RPC node.

    A freshly broadcast transaction can take a few seconds to propagate to
    the node the supplier talks to, so "not found" is transient here.

    Args:
        exceptions: Exception types meaning "not visible yet"
        max_attempts: Maximum number of attempts (default: 5)
    """
    return retry(
        retry=retry_if_exception_type(exceptions),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=0.5, max=4.0),
        before_sleep=lambda retry_state: logger.warning(
            "Transaction not visible yet, retrying lookup",
            attempt=retry_state.attempt_number,
        ),
        reraise=True,
    )
