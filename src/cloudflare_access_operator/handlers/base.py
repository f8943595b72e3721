"""Plumbing shared by the resource handlers."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, NoReturn

import kopf

from .. import metrics
from ..constants import (
    COND_PROVIDER_NOT_READY,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_RECONCILE_STARTED,
    EVENT_REASON_VALIDATE_FAILED,
    FINALIZER,
)
from ..logging import log_resource_event
from ..utils.conditions import set_condition
from ..utils.errors import sanitize_exception
from ..utils.events import emit_event


class BaseHandler:
    """Logging, finalizers, metrics and status patches for one resource kind."""

    def __init__(self, kind: str):
        self.kind = kind
        self.logger = logging.getLogger(__name__)

    def log(
        self,
        meta: dict[str, Any],
        message: str,
        *,
        reason: str,
        level: int = logging.INFO,
        error: Exception | None = None,
        **fields: Any,
    ) -> None:
        """Write a structured log line about the resource described by ``meta``.

        ``error``, when given, is logged sanitized together with its type.
        """
        if error is not None:
            fields["error"] = sanitize_exception(error)
            fields["error_type"] = type(error).__name__
        log_resource_event(self.logger, self.kind, meta, reason, message, level, **fields)

    def _count(self, result: str) -> None:
        metrics.reconcile_total.labels(kind=self.kind, result=result).inc()

    @contextmanager
    def observe_reconcile(self, meta: dict[str, Any]) -> Iterator[None]:
        """Count, time and report one reconciliation run in the block.

        Failures are logged and posted as an event, then re-raised so kopf
        retries them.
        """
        emit_event(meta, EVENT_REASON_RECONCILE_STARTED, "Reconciliation started")
        self._count("started")

        with metrics.reconcile_duration_seconds.labels(kind=self.kind).time():
            try:
                yield
            except Exception as e:
                metrics.error_total.labels(kind=self.kind, error_type=type(e).__name__).inc()
                self.log(meta, "Reconciliation failed", reason="ReconciliationFailed", level=logging.ERROR, error=e)
                emit_event(meta, EVENT_REASON_RECONCILE_FAILED, f"Reconciliation failed: {sanitize_exception(e)}")
                self._count("error")
                raise
        self._count("success")

    def provider_unavailable(
        self,
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
        message: str,
    ) -> NoReturn:
        """Mark the resource as waiting for its Provider and retry in a minute.

        Raises:
            kopf.TemporaryError: Always
        """
        self.log(meta, message, reason="ProviderNotReady", level=logging.WARNING)
        emit_event(meta, EVENT_REASON_RECONCILE_FAILED, message)
        self._count("failed")
        patch.status["conditions"] = set_condition(
            status.get("conditions", []), COND_PROVIDER_NOT_READY, True, message
        )
        patch.status["observedGeneration"] = meta.get("generation", 0)
        raise kopf.TemporaryError(message, delay=60)

    def reject(self, meta: dict[str, Any], message: str) -> NoReturn:
        """Fail a resource whose declaration can never be reconciled.

        Raises:
            kopf.PermanentError: Always
        """
        self.log(meta, message, reason="ValidationFailed", level=logging.ERROR)
        emit_event(meta, EVENT_REASON_VALIDATE_FAILED, message)
        self._count("failed")
        raise kopf.PermanentError(message)

    def ensure_finalizer(self, meta: dict[str, Any], patch: kopf.Patch) -> None:
        finalizers = list(meta.get("finalizers") or [])
        if FINALIZER not in finalizers:
            patch.metadata["finalizers"] = [*finalizers, FINALIZER]

    def remove_finalizer(self, meta: dict[str, Any], patch: kopf.Patch) -> None:
        """Drop this operator's finalizer; the field is cleared when none remain."""
        finalizers = list(meta.get("finalizers") or [])
        if FINALIZER in finalizers:
            patch.metadata["finalizers"] = [f for f in finalizers if f != FINALIZER] or None

    def write_status(
        self,
        patch: kopf.Patch,
        meta: dict[str, Any],
        ready: bool,
        fields: dict[str, Any],
    ) -> None:
        """Patch ``fields`` into status, stamped with the observed generation."""
        metrics.resource_status_total.labels(kind=self.kind, status="ready" if ready else "not_ready").inc()
        patch.status.update({**fields, "observedGeneration": meta.get("generation", 0)})
