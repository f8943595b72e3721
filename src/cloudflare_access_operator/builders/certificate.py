"""Builder for Access CA certificate records."""

from __future__ import annotations

from typing import Any, Iterable

from ..constants import LEVEL_ACCOUNT, LEVEL_ZONE
from ..models import CertificateRecord

# Spec fields that cannot change once the certificate exists
IMMUTABLE_FIELDS = ("applicationId", "accountId", "zoneId")


def create_record_from_resource(spec: dict[str, Any], status: dict[str, Any] | None = None) -> CertificateRecord:
    """Create a certificate record from CRD spec and status.

    Once a certificate exists, its application and container come from the
    status it was created under. Edits to those spec fields are rejected on
    update, but kopf still stores them, so ``spec`` no longer names the
    certificate.

    Args:
        spec: AccessCACertificate CRD spec
        status: AccessCACertificate CRD status (observed state)

    Returns:
        Record combining declared and observed fields
    """
    status = status or {}
    record = CertificateRecord(
        application_id=spec.get("applicationId", ""),
        id=status.get("certificateId") or "",
        account_id=spec.get("accountId") or "",
        zone_id=spec.get("zoneId") or "",
        aud=status.get("aud") or "",
        public_key=status.get("publicKey") or "",
    )
    if not record.exists:
        return record

    if status.get("applicationId"):
        record.application_id = status["applicationId"]
    level, identifier = status.get("containerLevel"), status.get("containerId")
    if identifier and level in (LEVEL_ACCOUNT, LEVEL_ZONE):
        record.account_id = identifier if level == LEVEL_ACCOUNT else ""
        record.zone_id = identifier if level == LEVEL_ZONE else ""
    return record


def record_to_status(record: CertificateRecord) -> dict[str, Any]:
    """Render the observed fields of a record as CRD status."""
    if record.account_id:
        level, identifier = LEVEL_ACCOUNT, record.account_id
    elif record.zone_id:
        level, identifier = LEVEL_ZONE, record.zone_id
    else:
        level, identifier = None, None

    return {
        "certificateId": record.id or None,
        "aud": record.aud or None,
        "publicKey": record.public_key or None,
        "applicationId": record.application_id or None,
        "containerLevel": level,
        "containerId": identifier,
    }


def changed_immutable_fields(diff: Iterable[Any]) -> list[str]:
    """List immutable spec fields touched by a kopf diff.

    Args:
        diff: kopf diff, a sequence of ``(op, field, old, new)`` items

    Returns:
        Names of changed immutable fields, in diff order
    """
    changed = []
    for _op, field, old, new in diff:
        path = tuple(field)
        if not path or path[0] != "spec":
            continue
        if len(path) == 1:
            # The whole spec was added or removed
            old_spec, new_spec = old or {}, new or {}
            changed.extend(name for name in IMMUTABLE_FIELDS if old_spec.get(name) != new_spec.get(name))
        elif path[1] in IMMUTABLE_FIELDS and old != new:
            changed.append(path[1])
    return changed
