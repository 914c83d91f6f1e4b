"""OpenTelemetry tracing support for stocksync.

Tracing is disabled by default and requires the opentelemetry packages
(``pip install stocksync[tracing]``). When disabled, every helper here is a
no-op, so sync code can wrap its phases in spans unconditionally::

    with trace_span("sync.fetch", target_id=target_id):
        items = fetcher.fetch_all(target_id)
"""

from __future__ import annotations

import os
from contextlib import AbstractContextManager
from typing import Any

from .logging import get_logger

logger = get_logger(__name__)

_tracer: Any = None
_tracing_enabled: bool = False


def is_tracing_enabled() -> bool:
    """Check if tracing is currently enabled."""
    return _tracing_enabled


def configure_tracing(
    *,
    service_name: str = "stocksync",
    endpoint: str | None = None,
    enable: bool = True,
    sample_rate: float = 1.0,
) -> bool:
    """Configure OpenTelemetry tracing.

    Args:
        service_name: Name of this service in traces.
        endpoint: OTLP endpoint URL (e.g. "http://localhost:4317"). Without
            one, spans are only printed when ``OTEL_TRACES_CONSOLE=true``.
        enable: Whether to enable tracing.
        sample_rate: Fraction of traces to sample (0.0 to 1.0).

    Returns:
        True if tracing was configured, False otherwise.
    """
    global _tracer, _tracing_enabled

    if not enable:
        _tracing_enabled = False
        logger.info("Tracing disabled by configuration")
        return False

    try:
        from opentelemetry import trace
        from opentelemetry.sdk.resources import SERVICE_NAME, Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
    except ImportError as exc:
        logger.debug("OpenTelemetry not available: %s", exc)
        _tracing_enabled = False
        return False

    try:
        provider = TracerProvider(
            resource=Resource.create({SERVICE_NAME: service_name}),
            sampler=TraceIdRatioBased(sample_rate),
        )
        if endpoint:
            try:
                from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
                    OTLPSpanExporter,
                )
                from opentelemetry.sdk.trace.export import BatchSpanProcessor

                provider.add_span_processor(
                    BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint))
                )
                logger.info("Tracing exporter configured for %s", endpoint)
            except ImportError:
                logger.warning(
                    "opentelemetry-exporter-otlp not installed; traces won't be exported"
                )
        elif os.environ.get("OTEL_TRACES_CONSOLE", "").lower() == "true":
            from opentelemetry.sdk.trace.export import (
                ConsoleSpanExporter,
                SimpleSpanProcessor,
            )

            provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
            logger.info("Console trace exporter enabled")

        trace.set_tracer_provider(provider)
        _tracer = trace.get_tracer(service_name)
        _tracing_enabled = True
        logger.info("Tracing enabled for service '%s'", service_name)
        return True
    except Exception as exc:
        logger.warning("Failed to configure tracing: %s", exc)
        _tracing_enabled = False
        return False


class trace_span(AbstractContextManager):
    """Context manager opening a span when tracing is enabled."""

    def __init__(self, name: str, **attributes: Any) -> None:
        self.name = name
        self.attributes = attributes
        self._span_ctx: Any = None

    def __enter__(self):
        if not _tracing_enabled or _tracer is None:
            return None
        try:
            self._span_ctx = _tracer.start_as_current_span(self.name)
            span = self._span_ctx.__enter__()
            for key, value in self.attributes.items():
                if value is not None:
                    span.set_attribute(key, str(value))
            return span
        except Exception as exc:
            logger.debug("Tracing error: %s", exc)
            self._span_ctx = None
            return None

    def __exit__(self, exc_type, exc_value, traceback):
        if self._span_ctx is not None:
            if exc_value is not None:
                record_exception(exc_value)
            self._span_ctx.__exit__(exc_type, exc_value, traceback)
        return False


def record_exception(exception: BaseException) -> None:
    """Record an exception on the current span."""
    if not _tracing_enabled:
        return
    try:
        from opentelemetry import trace

        span = trace.get_current_span()
        if span and span.is_recording():
            span.record_exception(exception)
            span.set_status(trace.Status(trace.StatusCode.ERROR))
    except Exception as exc:
        logger.debug("Failed to record exception on span: %s", exc)


def set_span_attribute(key: str, value: Any) -> None:
    """Set an attribute on the current span."""
    if not _tracing_enabled:
        return
    try:
        from opentelemetry import trace

        span = trace.get_current_span()
        if span and span.is_recording():
            span.set_attribute(key, str(value))
    except Exception as exc:
        logger.debug("Failed to set span attribute %s: %s", key, exc)
