"""Models for Cloudflare Access API operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from ...constants import LEVEL_ACCOUNT, LEVEL_ZONE


@dataclass(frozen=True)
class AccountContainer:
    """Account-level resource container."""

    identifier: str
    level: str = field(default=LEVEL_ACCOUNT, init=False)

    @property
    def path(self) -> str:
        """API path prefix for this container."""
        return f"accounts/{self.identifier}"


@dataclass(frozen=True)
class ZoneContainer:
    """Zone-level resource container."""

    identifier: str
    level: str = field(default=LEVEL_ZONE, init=False)

    @property
    def path(self) -> str:
        """API path prefix for this container."""
        return f"zones/{self.identifier}"


ResourceContainer = Union[AccountContainer, ZoneContainer]


@dataclass
class AccessCACertificate:
    """Access CA certificate as returned by the Cloudflare API."""

    id: str
    aud: str = ""
    public_key: str = ""

    @classmethod
    def from_api(cls, result: dict[str, Any]) -> AccessCACertificate:
        """Build a certificate from an API ``result`` object."""
        return cls(
            id=result.get("id", ""),
            aud=result.get("aud", ""),
            public_key=result.get("public_key", ""),
        )


@dataclass
class Found:
    """Lookup succeeded."""

    certificate: AccessCACertificate


@dataclass
class NotFound:
    """Lookup reported that the certificate does not exist."""


@dataclass
class Failed:
    """Lookup failed for any reason other than absence."""

    cause: Exception


LookupResult = Union[Found, NotFound, Failed]


class CloudflareAPIError(Exception):
    """Error response from the Cloudflare API."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.errors = errors or []

    def __str__(self) -> str:
        message = super().__str__()
        if self.errors:
            details = ", ".join(
                f"{err.get('message', 'unknown error')} ({err.get('code', 'n/a')})" for err in self.errors
            )
            message = f"{message}: {details}"
        if self.status_code is not None:
            message = f"{message} (HTTP {self.status_code})"
        return message


class CloudflareNotFoundError(CloudflareAPIError):
    """The requested object does not exist."""


class CloudflareTimeoutError(CloudflareAPIError):
    """The request did not complete before its timeout."""
