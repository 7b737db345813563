"""
Structured logging for the indexer: one JSON object per line on stdout.

Every line carries event_type, level, logger and an ISO-8601 UTC timestamp.
While a trace is classified and validated the coordinator opens
bind_trace(), so every line emitted underneath (classifier, validator,
payload decoder) also carries trace_id and lt without passing them around.

Logical times exceed 2**53 and amounts are Decimals; both are rendered as
strings so JSON consumers read them exactly.

LOG_LEVEL (default INFO) filters; LOG_FORMAT=console switches to the
human-readable renderer. No lottery_indexer imports here (imported by everything).
"""

from __future__ import annotations

import logging
import os
import sys
from contextlib import AbstractContextManager
from decimal import Decimal
from typing import Any

import structlog
from structlog._config import BoundLoggerLazyProxy
from structlog.typing import EventDict, FilteringBoundLogger, Processor, WrappedLogger

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()

# Largest integer a JSON double represents exactly
MAX_SAFE_INT = 2**53


def _exact_numbers(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    for key, value in event_dict.items():
        if isinstance(value, Decimal):
            event_dict[key] = format(value, "f")
        elif isinstance(value, int) and not isinstance(value, bool) and abs(value) > MAX_SAFE_INT:
            event_dict[key] = str(value)
    return event_dict


def _event_type(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    if "event" in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    return event_dict


def configure_structlog(renderer: Processor | None = None) -> None:
    """
    (Re)configure structlog. renderer replaces the final processor; tests pass
    structlog.testing.LogCapture here to inspect emitted events.
    """
    if renderer is None:
        if LOG_FORMAT == "json":
            renderer = structlog.processors.JSONRenderer()
        else:
            renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
            structlog.processors.format_exc_info,
            _exact_numbers,
            _event_type,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, LOG_LEVEL, logging.INFO)),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        # Module-level loggers stay lazy so a reconfiguration reaches them
        cache_logger_on_first_use=False,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> FilteringBoundLogger:
    """
    Logger for a module; use as ``logger = get_logger(__name__)``.

        logger.info("coordinator_batch_persisted", rows=12, checkpoint=4711)
        {"rows": 12, "checkpoint": 4711, "logger": "...", "level": "info",
         "timestamp": "...", "event_type": "coordinator_batch_persisted"}
    """
    return BoundLoggerLazyProxy(None, initial_values={"logger": name}, logger_factory_args=(name,))


def bind_trace(trace_id: str | None, **fields: Any) -> AbstractContextManager[Any]:
    """
    Context manager: every log line inside the block carries trace_id and fields.

        with bind_trace(trace.trace_id, lt=trace.start_lt):
            classifier.classify(trace)
    """
    return structlog.contextvars.bound_contextvars(trace_id=trace_id, **fields)


def short(addr: str | None) -> str:
    """First 16 characters of an address or hash, for log fields."""
    if not addr:
        return ""
    return addr[:16] + "..." if len(addr) > 16 else addr
