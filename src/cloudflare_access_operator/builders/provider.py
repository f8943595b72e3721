"""Builder for Cloudflare provider instances."""

from __future__ import annotations

from typing import Any

from kubernetes import client, config

from ..constants import DEFAULT_API_BASE_URL, DEFAULT_API_TOKEN_KEY, DEFAULT_REQUEST_TIMEOUT_SECONDS
from ..services.cloudflare.client import CloudflareProvider
from ..utils.secrets import get_secret_value


def create_provider_from_spec(
    spec: dict[str, Any],
    meta: dict[str, Any],
) -> CloudflareProvider:
    """Create a Cloudflare provider instance from a Provider CRD spec.

    Args:
        spec: Provider CRD spec
        meta: Provider resource metadata

    Returns:
        Configured Cloudflare provider instance

    Raises:
        ValueError: If configuration is invalid
    """
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()

    api = client.CoreV1Api()

    namespace = meta.get("namespace", "default")

    auth = spec.get("auth", {})
    token_ref = auth.get("apiTokenSecretRef", {})
    token_name = token_ref.get("name")
    token_key = token_ref.get("key", DEFAULT_API_TOKEN_KEY)

    if not token_name:
        raise ValueError("auth.apiTokenSecretRef.name is required")

    api_token = get_secret_value(api, namespace, token_name, token_key)

    base_url = spec.get("apiBaseUrl") or DEFAULT_API_BASE_URL
    timeout = float(spec.get("timeoutSeconds", DEFAULT_REQUEST_TIMEOUT_SECONDS))
    if timeout <= 0:
        raise ValueError("timeoutSeconds must be positive")

    return CloudflareProvider(
        api_token=api_token,
        base_url=base_url,
        timeout=timeout,
    )
