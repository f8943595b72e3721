"""Correlation and trace ids attached to every structured log line."""

from __future__ import annotations

import contextvars
import uuid
from contextlib import contextmanager
from typing import Iterator

from opentelemetry import trace

correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("correlation_id", default=None)


@contextmanager
def with_correlation_id(corr_id: str | None = None) -> Iterator[str]:
    """Tag everything logged inside the block with one correlation id.

    A random id is generated when ``corr_id`` is omitted. The previous id is
    restored on exit, so blocks nest.
    """
    token = correlation_id.set(corr_id or uuid.uuid4().hex)
    try:
        yield correlation_id.get()
    finally:
        correlation_id.reset(token)


def context_fields() -> dict[str, str]:
    """Correlation id and current span ids, for inclusion in a log line."""
    fields = {}
    corr_id = correlation_id.get()
    if corr_id:
        fields["correlation_id"] = corr_id

    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        fields["trace_id"] = trace.format_trace_id(span_context.trace_id)
        fields["span_id"] = trace.format_span_id(span_context.span_id)
    return fields
