"""Cloudflare API client implementation."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from ... import metrics
from ...constants import DEFAULT_API_BASE_URL, DEFAULT_REQUEST_TIMEOUT_SECONDS
from ...utils.rate_limit import rate_limit_cloudflare
from .models import (
    AccessCACertificate,
    CloudflareAPIError,
    CloudflareNotFoundError,
    CloudflareTimeoutError,
    Failed,
    Found,
    LookupResult,
    NotFound,
    ResourceContainer,
)

logger = logging.getLogger(__name__)


class CloudflareProvider:
    """Cloudflare Access provider backed by the v4 REST API."""

    def __init__(
        self,
        api_token: str,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize Cloudflare provider.

        Args:
            api_token: Cloudflare API token
            base_url: API base URL
            timeout: Default request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            headers={
                "Authorization": f"Bearer {api_token}",
                "Content-Type": "application/json",
                "User-Agent": "cloudflare-access-operator",
            },
            transport=transport,
        )

    def __enter__(self) -> CloudflareProvider:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        self.client.close()

    @staticmethod
    def _certificate_path(container: ResourceContainer, application_id: str) -> str:
        return f"/{container.path}/access/apps/{application_id}/ca"

    @rate_limit_cloudflare
    def _request(
        self,
        method: str,
        path: str,
        operation: str,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Send a request and unwrap the Cloudflare response envelope.

        Returns:
            The envelope's ``result`` object

        Raises:
            CloudflareNotFoundError: On HTTP 404
            CloudflareTimeoutError: If the request timed out
            CloudflareAPIError: On any other transport or API failure
        """
        kwargs: dict[str, Any] = {}
        if timeout is not None:
            kwargs["timeout"] = timeout

        start_time = time.time()
        try:
            response = self.client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            metrics.api_call_total.labels(api_type="cloudflare", operation=operation, result="timeout").inc()
            raise CloudflareTimeoutError(f"{method} {path} timed out") from e
        except httpx.HTTPError as e:
            metrics.api_call_total.labels(api_type="cloudflare", operation=operation, result="error").inc()
            raise CloudflareAPIError(f"{method} {path} failed: {e}") from e
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type="cloudflare", operation=operation).observe(duration)

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        errors = body.get("errors") or []

        if response.status_code == 404:
            metrics.api_call_total.labels(api_type="cloudflare", operation=operation, result="not_found").inc()
            raise CloudflareNotFoundError(f"{method} {path} not found", response.status_code, errors)

        if response.is_error or not body.get("success", False):
            metrics.api_call_total.labels(api_type="cloudflare", operation=operation, result="error").inc()
            raise CloudflareAPIError(f"{method} {path} failed", response.status_code, errors)

        metrics.api_call_total.labels(api_type="cloudflare", operation=operation, result="success").inc()
        return body.get("result") or {}

    def create_access_ca_certificate(
        self,
        container: ResourceContainer,
        application_id: str,
        timeout: float | None = None,
    ) -> AccessCACertificate:
        """Create the CA certificate for an Access application."""
        try:
            result = self._request(
                "POST",
                self._certificate_path(container, application_id),
                "create_access_ca_certificate",
                timeout,
            )
        except CloudflareAPIError as e:
            logger.error(f"Failed to create Access CA Certificate for application {application_id}: {e}")
            raise
        return AccessCACertificate.from_api(result)

    def get_access_ca_certificate(
        self,
        container: ResourceContainer,
        application_id: str,
        timeout: float | None = None,
    ) -> LookupResult:
        """Look up the CA certificate of an Access application."""
        try:
            result = self._request(
                "GET",
                self._certificate_path(container, application_id),
                "get_access_ca_certificate",
                timeout,
            )
        except CloudflareNotFoundError:
            return NotFound()
        except CloudflareAPIError as e:
            return Failed(e)
        return Found(AccessCACertificate.from_api(result))

    def delete_access_ca_certificate(
        self,
        container: ResourceContainer,
        application_id: str,
        timeout: float | None = None,
    ) -> None:
        """Delete the CA certificate of an Access application."""
        self._request(
            "DELETE",
            self._certificate_path(container, application_id),
            "delete_access_ca_certificate",
            timeout,
        )

    def verify_token(self, timeout: float | None = None) -> bool:
        """Check that the configured API token is valid and active."""
        try:
            result = self._request("GET", "/user/tokens/verify", "verify_token", timeout)
        except CloudflareAPIError as e:
            if e.status_code is None:
                # Transport failure, the token was never checked
                raise
            logger.warning(f"API token verification failed: {e}")
            return False
        return result.get("status") == "active"
