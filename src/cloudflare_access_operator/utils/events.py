"""Kubernetes events posted on AccessCACertificate and Provider resources."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    EVENT_REASON_DRIFT_DETECTED,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_VALIDATE_FAILED,
)

WARNING_REASONS = frozenset({
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_VALIDATE_FAILED,
    EVENT_REASON_DRIFT_DETECTED,
})


def emit_event(meta: dict[str, Any], reason: str, message: str) -> None:
    """Post an event on the resource described by ``meta``.

    Failures and drift are posted as Warning events, everything else as Normal.
    """
    event_type = "Warning" if reason in WARNING_REASONS else "Normal"
    kopf.event(meta, type=event_type, reason=reason, message=message)
