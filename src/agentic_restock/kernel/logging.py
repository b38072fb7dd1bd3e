"""
Structured logging for the agent and the supplier

One correlation id follows a restock workflow from "stock is low" through the
402 challenge, the settlement, and the proof round. The agent sends it in the
x-correlation-id header and the supplier binds it for the request, so both
sides' log lines can be joined on it.

Fun fact: Correlation IDs were popularized by Google's Dapper tracing paper in
2010. Here one id follows a purchase all the way to "drone dispatched".
"""

import contextvars
import logging
import os
import secrets
import sys
import time
from typing import Any

import structlog

CORRELATION_HEADER = "x-correlation-id"

_correlation_id: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)


def bind_correlation_id(correlation_id: str | None = None) -> str:
    """
    Bind the id for the current workflow or request

    A blank or missing id (new workflow, or a caller that sent no header)
    gets a fresh random one. Returns the id that is now bound.
    """
    cid = (correlation_id or "").strip() or secrets.token_urlsafe(16)
    _correlation_id.set(cid)
    return cid


def get_correlation_id() -> str:
    """The bound id, binding a fresh one on first use"""
    return _correlation_id.get() or bind_correlation_id()


def _add_correlation_id(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    event_dict["correlation_id"] = get_correlation_id()
    return event_dict


def configure_logging(*, json_output: bool = False, log_level: str = "INFO") -> None:
    """
    Route structlog through stdlib logging on stderr

    stdout stays free for CLI output (including --json). Console rendering
    for development, one JSON object per line in production.
    """
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level.upper())

    # Per-request chatter from the HTTP stack and the node client
    for noisy in ("werkzeug", "httpx", "httpcore", "web3", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        _add_correlation_id,
    ]
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors += [
            structlog.processors.ExceptionRenderer(),
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def is_production() -> bool:
    """ENVIRONMENT=production switches to JSON logs without stack traces"""
    return os.getenv("ENVIRONMENT", "development").lower() == "production"


# Signing material: never logged in any form
SECRET_FIELDS = frozenset({"private_key", "api_key", "password", "token", "secret"})

# Settlement proofs unlock fulfilment while unused, so only a prefix is logged.
# Ten characters are enough to find the transaction on an explorer.
PROOF_FIELDS = frozenset({"proof", "payment_hash"})
PROOF_PREFIX_LENGTH = 10


def mask_proof(proof: str | None) -> str | None:
    """
    Shorten a settlement proof for logging

    Example:
        >>> mask_proof("0x" + "ab" * 32)
        '0xabababab...'
    """
    if not proof or len(proof) <= PROOF_PREFIX_LENGTH:
        return proof
    return proof[:PROOF_PREFIX_LENGTH] + "..."


def redact_context(context: dict[str, Any]) -> dict[str, Any]:
    """
    Copy of a log context safe to emit

    Example:
        >>> redact_context({"private_key": "0x11", "item": "rice"})
        {'private_key': '***REDACTED***', 'item': 'rice'}
    """
    redacted: dict[str, Any] = {}
    for key, value in context.items():
        if key in SECRET_FIELDS:
            redacted[key] = "***REDACTED***"
        elif key in PROOF_FIELDS:
            redacted[key] = mask_proof(value)
        else:
            redacted[key] = value
    return redacted


class LogOperation:
    """
    Logs start, completion, and failure of one step with its duration

    Used around a whole restock workflow and around each settlement. The
    context is redacted once on entry; exceptions are logged and re-raised.
    """

    def __init__(self, logger: structlog.stdlib.BoundLogger, operation: str, **context: Any):
        self.logger = logger
        self.operation = operation
        self.context = redact_context(context)
        self.start_time = 0.0

    def __enter__(self) -> "LogOperation":
        self.start_time = time.perf_counter()
        self.logger.info(f"{self.operation} started", operation=self.operation, **self.context)
        return self

    @property
    def elapsed_seconds(self) -> float:
        return time.perf_counter() - self.start_time

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        duration_ms = round(self.elapsed_seconds * 1000, 2)
        if exc_type is None:
            self.logger.info(
                f"{self.operation} completed",
                operation=self.operation,
                duration_ms=duration_ms,
                **self.context,
            )
            return
        self.logger.error(
            f"{self.operation} failed",
            operation=self.operation,
            duration_ms=duration_ms,
            error=str(exc_val),
            exc_info=not is_production(),
            **self.context,
        )
