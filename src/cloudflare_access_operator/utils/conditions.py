"""Status conditions reported on Providers and Access CA certificates."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..constants import (
    COND_AUTH_VALID,
    COND_CREATION_FAILED,
    COND_ENDPOINT_REACHABLE,
    COND_IMPORT_FAILED,
    COND_PROVIDER_NOT_READY,
    COND_READY,
)

# Reason written for each condition type, when it holds and when it does not
REASONS: dict[str, tuple[str, str]] = {
    COND_READY: ("Ready", "NotReady"),
    COND_PROVIDER_NOT_READY: ("ProviderUnavailable", "ProviderAvailable"),
    COND_AUTH_VALID: ("TokenActive", "TokenNotActive"),
    COND_ENDPOINT_REACHABLE: ("ApiReachable", "ApiUnreachable"),
    COND_CREATION_FAILED: ("CloudflareRejectedCreate", "Created"),
    COND_IMPORT_FAILED: ("ImportRejected", "Imported"),
}

# Conditions describing a failed attempt, dropped once a certificate is in sync
FAILURE_CONDITIONS = frozenset({COND_PROVIDER_NOT_READY, COND_CREATION_FAILED, COND_IMPORT_FAILED})


def set_condition(
    conditions: list[dict[str, Any]],
    condition_type: str,
    holds: bool,
    message: str,
) -> list[dict[str, Any]]:
    """Return a copy of ``conditions`` with ``condition_type`` set.

    ``lastTransitionTime`` only moves when the status flips, so a condition
    re-asserted on every reconciliation keeps the time it first held.

    Raises:
        KeyError: If ``condition_type`` is not one the operator reports
    """
    status = "True" if holds else "False"
    reason = REASONS[condition_type][0 if holds else 1]
    now = datetime.now(timezone.utc).isoformat()

    previous = next((c for c in conditions if c.get("type") == condition_type), None)
    unchanged = previous is not None and previous.get("status") == status
    condition = {
        "type": condition_type,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": previous.get("lastTransitionTime", now) if unchanged else now,
    }

    if previous is None:
        return [*conditions, condition]
    return [condition if c is previous else c for c in conditions]


def drop_failure_conditions(conditions: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Return ``conditions`` without the ones left behind by failed attempts."""
    return [c for c in conditions if c.get("type") not in FAILURE_CONDITIONS]
