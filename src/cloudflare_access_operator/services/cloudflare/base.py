"""Base Cloudflare Access provider interface."""

from __future__ import annotations

from typing import Protocol

from .models import AccessCACertificate, LookupResult, ResourceContainer


class AccessProvider(Protocol):
    """Protocol defining the Cloudflare Access operations the reconcilers use."""

    def create_access_ca_certificate(
        self,
        container: ResourceContainer,
        application_id: str,
        timeout: float | None = None,
    ) -> AccessCACertificate:
        """Create the CA certificate for an Access application."""
        ...

    def get_access_ca_certificate(
        self,
        container: ResourceContainer,
        application_id: str,
        timeout: float | None = None,
    ) -> LookupResult:
        """Look up the CA certificate of an Access application."""
        ...

    def delete_access_ca_certificate(
        self,
        container: ResourceContainer,
        application_id: str,
        timeout: float | None = None,
    ) -> None:
        """Delete the CA certificate of an Access application."""
        ...

    def verify_token(self, timeout: float | None = None) -> bool:
        """Check that the configured API token is valid and active."""
        ...

    def close(self) -> None:
        """Release any connections held by the provider."""
        ...
