"""Provider lookups shared by the resource handlers."""

from __future__ import annotations

import itertools
from typing import Any

from kubernetes import client, config

from .. import metrics
from ..constants import API_GROUP, API_VERSION, COND_READY, PLURAL_PROVIDERS
from ..utils.cache import provider_cache, provider_cache_key
from ..utils.rate_limit import backoff_on_rate_limit, rate_limit_k8s


def provider_ref(spec: dict[str, Any], meta: dict[str, Any]) -> tuple[str, str]:
    """Name and namespace of the Provider a resource references.

    The namespace defaults to the resource's own.
    """
    ref = spec.get("providerRef") or {}
    return ref.get("name", ""), ref.get("namespace") or meta.get("namespace", "default")


def custom_objects_api() -> client.CustomObjectsApi:
    """CustomObjectsApi for the in-cluster service account, or the local kubeconfig."""
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()
    return client.CustomObjectsApi()


def _count_lookup(result: str) -> None:
    metrics.api_call_total.labels(api_type="k8s", operation="get_provider", result=result).inc()


def fetch_provider(name: str, namespace: str, api: Any = None) -> dict[str, Any]:
    """Read a Provider object, serving repeated reads from the cache.

    Throttled reads are retried with backoff.

    Raises:
        client.exceptions.ApiException: If the read fails, with status 404 when
            the Provider does not exist
    """
    key = provider_cache_key(namespace, name)
    provider_obj = provider_cache.get(key)
    if provider_obj is not None:
        _count_lookup("cache_hit")
        return provider_obj

    read = rate_limit_k8s((api or custom_objects_api()).get_namespaced_custom_object)
    for attempt in itertools.count():
        try:
            with metrics.api_call_duration_seconds.labels(api_type="k8s", operation="get_provider").time():
                provider_obj = read(
                    group=API_GROUP,
                    version=API_VERSION,
                    namespace=namespace,
                    plural=PLURAL_PROVIDERS,
                    name=name,
                )
        except client.exceptions.ApiException as e:
            _count_lookup("error")
            if backoff_on_rate_limit(e, attempt):
                continue
            raise
        break

    _count_lookup("success")
    provider_cache.set(key, provider_obj)
    return provider_obj


def is_provider_ready(provider_obj: dict[str, Any]) -> bool:
    conditions = (provider_obj.get("status") or {}).get("conditions", [])
    return any(c.get("type") == COND_READY and c.get("status") == "True" for c in conditions)
