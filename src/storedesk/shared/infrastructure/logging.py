"""
Structured Logging
==================

JSON logs on stdout with a correlation id bound per request or sweep run.

Provides:
- CustomJsonFormatter: ISO timestamp, environment and secret redaction
- bind_correlation_id: scopes a correlation id so every record logged inside
  carries it, including those from routing and escalation services
- log_latency: timing for routing and sweep operations

Usage:
    from storedesk.shared.infrastructure.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Ticket routed", extra={"ticket_id": "..."})
"""

import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

from pythonjsonlogger import jsonlogger

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
_environment = "unknown"

_REDACTED = "***REDACTED***"


@contextmanager
def bind_correlation_id(correlation_id: str) -> Iterator[str]:
    """Attach a correlation id to every record logged in this context."""
    token = _correlation_id.set(correlation_id)
    try:
        yield correlation_id
    finally:
        _correlation_id.reset(token)


def _is_secret(key: str) -> bool:
    lowered = key.lower()
    if "password" in lowered or "api_key" in lowered or "webhook_url" in lowered:
        return True
    return "token" in lowered and "tokens_used" not in lowered


class CorrelationIdFilter(logging.Filter):
    """Copies the bound correlation id onto records that do not set their own."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            correlation_id = _correlation_id.get()
            if correlation_id is not None:
                record.correlation_id = correlation_id
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter with timestamp, environment, correlation id and redaction.

    Values under keys that look like credentials are replaced before the
    record is serialized.
    """

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        log_record["environment"] = getattr(record, "environment", _environment)

        correlation_id = getattr(record, "correlation_id", None) or _correlation_id.get()
        if correlation_id:
            log_record["correlation_id"] = correlation_id

        for key, value in list(log_record.items()):
            if isinstance(value, str) and _is_secret(key):
                log_record[key] = _REDACTED


def setup_logging(level: str = "INFO", environment: str = "development") -> None:
    """
    Route all logging through one JSON stdout handler.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        environment: Stamped on every record
    """
    global _environment
    _environment = environment
    numeric_level = getattr(logging, level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(CustomJsonFormatter(
        fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    ))

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "apscheduler.executors.default", "httpx"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


@contextmanager
def log_latency(logger: logging.Logger, operation: str, **extra_context: Any) -> Iterator[None]:
    """
    Log how long the wrapped block took, even when it raises.

    Usage:
        with log_latency(logger, "escalation_sweep"):
            report = await monitor.run()
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        logger.info(
            f"{operation} completed",
            extra={
                "operation": operation,
                "latency_ms": round((time.perf_counter() - start) * 1000, 2),
                **extra_context,
            },
        )
