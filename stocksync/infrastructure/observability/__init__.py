"""Observability and logging facades."""

from .logging import (
    configure_logging,
    current_log_context,
    get_fallback_logger,
    get_logger,
    log_context,
    log_exception,
)
from .tracing import (
    configure_tracing,
    is_tracing_enabled,
    record_exception,
    set_span_attribute,
    trace_span,
)

__all__ = [
    # Logging
    "configure_logging",
    "current_log_context",
    "get_fallback_logger",
    "get_logger",
    "log_context",
    "log_exception",
    # Tracing
    "configure_tracing",
    "is_tracing_enabled",
    "record_exception",
    "set_span_attribute",
    "trace_span",
]
