"""Handler for Provider CRD.

A Provider names the Cloudflare API endpoint and the Secret holding an API
token. It is ready once Cloudflare reports the token as active.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import kopf

from .. import metrics
from ..builders.provider import create_provider_from_spec
from ..constants import (
    API_GROUP_VERSION,
    COND_AUTH_VALID,
    COND_ENDPOINT_REACHABLE,
    COND_READY,
    EVENT_REASON_VALIDATE_SUCCEEDED,
    KIND_PROVIDER,
)
from ..services.cloudflare.models import CloudflareAPIError
from ..tracing import trace_span
from ..utils.cache import provider_cache, provider_cache_key
from ..utils.conditions import set_condition
from ..utils.context import with_correlation_id
from ..utils.errors import sanitize_exception
from ..utils.events import emit_event
from .base import BaseHandler


@dataclass
class TokenCheck:
    """Outcome of asking Cloudflare about a Provider's API token."""

    active: bool
    reachable: bool
    auth_message: str
    endpoint_message: str


class ProviderHandler(BaseHandler):
    """Handler for Provider resources."""

    def __init__(self):
        super().__init__(KIND_PROVIDER)

    def _error(self, meta: dict[str, Any], message: str, error: Exception, reason: str) -> None:
        metrics.error_total.labels(kind=self.kind, error_type=type(error).__name__).inc()
        self.log(meta, message, reason=reason, level=logging.ERROR, error=error)

    def check_token(self, spec: dict[str, Any], meta: dict[str, Any]) -> TokenCheck:
        """Build the Provider's client and verify its token against Cloudflare.

        A rejected token still proves the endpoint reachable; only transport
        failures mark it unreachable.
        """
        name = meta.get("name", "unknown")

        try:
            cloudflare = create_provider_from_spec(spec, meta)
        except Exception as e:
            message = f"Provider configuration failed: {sanitize_exception(e)}"
            self._error(meta, message, e, "AuthFailed")
            return TokenCheck(False, False, message, "Cannot test connectivity due to configuration failure")

        with trace_span("verify_token", kind=self.kind), cloudflare:
            try:
                active = cloudflare.verify_token()
            except CloudflareAPIError as e:
                message = f"Connectivity test failed: {sanitize_exception(e)}"
                metrics.provider_connectivity_total.labels(provider=name, status="error").inc()
                self._error(meta, message, e, "ConnectivityFailed")
                return TokenCheck(False, False, "Cannot verify API token", message)

        metrics.provider_connectivity_total.labels(
            provider=name, status="connected" if active else "unauthorized"
        ).inc()
        return TokenCheck(
            active,
            True,
            "API token is active" if active else "API token is not active",
            "Cloudflare API is reachable",
        )

    def reconcile(
        self,
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
    ) -> None:
        """Verify the Provider's token and publish the result as conditions."""
        name = meta.get("name", "unknown")

        with trace_span("reconcile_provider", kind=self.kind, attributes={"provider.name": name}):
            if not spec.get("auth", {}).get("apiTokenSecretRef", {}).get("name"):
                self.reject(meta, "auth.apiTokenSecretRef.name is required")
            emit_event(meta, EVENT_REASON_VALIDATE_SUCCEEDED, "Validation succeeded")

            # Certificates referencing this Provider must see the new status on their next lookup
            provider_cache.invalidate(provider_cache_key(meta.get("namespace", "default"), name))

            check = self.check_token(spec, meta)
            ready = check.active and check.reachable

            conditions = status.get("conditions", [])
            for condition_type, holds, message in (
                (COND_AUTH_VALID, check.active, check.auth_message),
                (COND_ENDPOINT_REACHABLE, check.reachable, check.endpoint_message),
                (COND_READY, ready, "Provider is ready" if ready else "Provider is not ready"),
            ):
                conditions = set_condition(conditions, condition_type, holds, message)

            self.write_status(patch, meta, ready, {
                "connected": check.reachable,
                "lastConnectTime": datetime.now(timezone.utc).isoformat() if check.reachable else None,
                "conditions": conditions,
            })

    def delete(self, meta: dict[str, Any], patch: kopf.Patch) -> None:
        """Forget the cached Provider and release the finalizer."""
        self.log(meta, "Provider is being deleted", reason="Deletion")
        provider_cache.invalidate(provider_cache_key(meta.get("namespace", "default"), meta.get("name", "")))
        self.remove_finalizer(meta, patch)


# Global handler instance
_handler = ProviderHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_PROVIDER)
@kopf.on.update(API_GROUP_VERSION, KIND_PROVIDER)
@kopf.on.resume(API_GROUP_VERSION, KIND_PROVIDER)
def handle_provider(
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle Provider resource reconciliation."""
    with with_correlation_id():
        _handler.ensure_finalizer(meta, patch)
        with _handler.observe_reconcile(meta):
            _handler.reconcile(spec, meta, status, patch)


@kopf.on.delete(API_GROUP_VERSION, KIND_PROVIDER)
def handle_provider_delete(meta: dict[str, Any], patch: kopf.Patch, **kwargs: Any) -> None:
    """Handle Provider resource deletion."""
    with with_correlation_id():
        _handler.delete(meta, patch)
