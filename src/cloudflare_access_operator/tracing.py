"""OpenTelemetry tracing for the Cloudflare Access Operator.

Spans are always started through the global tracer provider. Until
``initialize_tracing`` installs the SDK provider they are non-recording,
so handlers trace unconditionally.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Any, Iterator

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Span

from . import __version__
from .constants import CONTROLLER_NAME

logger = logging.getLogger(__name__)

_tracer = trace.get_tracer(__name__)


def initialize_tracing() -> bool:
    """Export spans over OTLP gRPC unless ``OTEL_TRACES_ENABLED=false``.

    The exporter reads ``OTEL_EXPORTER_OTLP_ENDPOINT`` itself.

    Returns:
        Whether an exporting tracer provider was installed
    """
    if os.getenv("OTEL_TRACES_ENABLED", "true").lower() == "false":
        logger.info("Tracing disabled")
        return False

    resource = Resource.create({
        SERVICE_NAME: os.getenv("OTEL_SERVICE_NAME", CONTROLLER_NAME),
        SERVICE_VERSION: __version__,
    })
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))
    trace.set_tracer_provider(provider)
    return True


@contextmanager
def trace_span(
    name: str,
    kind: str | None = None,
    attributes: dict[str, Any] | None = None,
) -> Iterator[Span]:
    """Run the block inside a span named ``name``.

    Exceptions leaving the block are recorded on the span, which is marked
    as failed, and re-raised.
    """
    attrs = dict(attributes or {})
    if kind:
        attrs["resource.kind"] = kind

    with _tracer.start_as_current_span(name, attributes=attrs) as span:
        yield span


def add_span_attribute(key: str, value: Any) -> None:
    """Add an attribute to the current span."""
    span = trace.get_current_span()
    if span.is_recording():
        span.set_attribute(key, value)
