"""Resolution of the account or zone container a resource belongs to."""

from __future__ import annotations

from ..models import CertificateRecord
from ..services.cloudflare.models import AccountContainer, ResourceContainer, ZoneContainer
from .errors import ContainerResolutionError


def resolve_container(record: CertificateRecord) -> ResourceContainer:
    """Resolve the container scope of a record.

    Args:
        record: Record carrying ``account_id`` or ``zone_id``

    Returns:
        AccountContainer or ZoneContainer

    Raises:
        ContainerResolutionError: If neither or both identifiers are set
    """
    if record.account_id and record.zone_id:
        raise ContainerResolutionError("only one of account_id or zone_id may be set")
    if record.account_id:
        return AccountContainer(record.account_id)
    if record.zone_id:
        return ZoneContainer(record.zone_id)
    raise ContainerResolutionError("either account_id or zone_id must be set")
