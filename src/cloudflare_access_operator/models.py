"""Declared and observed state of managed resources."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class CertificateRecord:
    """State of one Access CA certificate.

    ``id`` is empty exactly when no certificate exists in Cloudflare for this
    record. ``application_id``, ``account_id`` and ``zone_id`` are fixed once
    the certificate has been created; ``aud`` and ``public_key`` are only ever
    filled in from Cloudflare.
    """

    application_id: str
    id: str = ""
    account_id: str = ""
    zone_id: str = ""
    aud: str = ""
    public_key: str = ""

    @property
    def exists(self) -> bool:
        return bool(self.id)

    def mark_absent(self) -> None:
        self.id = ""
