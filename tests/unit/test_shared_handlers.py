"""Tests for shared handler utilities."""

from __future__ import annotations

from unittest.mock import Mock, patch

import pytest
from kubernetes import client

from cloudflare_access_operator.handlers.shared import (
    custom_objects_api,
    fetch_provider,
    is_provider_ready,
    provider_ref,
)
from cloudflare_access_operator.utils.cache import provider_cache

MODULE = "cloudflare_access_operator.handlers.shared"
PROVIDER = {"metadata": {"name": "cloudflare", "namespace": "default"}, "spec": {}}


@pytest.fixture(autouse=True)
def clean_cache():
    provider_cache.invalidate()
    with patch(f"{MODULE}.rate_limit_k8s", side_effect=lambda func: func), patch(f"{MODULE}.metrics") as mock_metrics:
        yield mock_metrics
    provider_cache.invalidate()


class TestProviderRef:
    """Test cases for provider_ref function."""

    def test_defaults_to_resource_namespace(self):
        assert provider_ref({"providerRef": {"name": "cf"}}, {"namespace": "team-a"}) == ("cf", "team-a")

    def test_explicit_namespace(self):
        spec = {"providerRef": {"name": "cf", "namespace": "shared"}}

        assert provider_ref(spec, {"namespace": "team-a"}) == ("cf", "shared")

    def test_missing_ref(self):
        assert provider_ref({}, {}) == ("", "default")


class TestFetchProvider:
    """Test cases for fetch_provider function."""

    def test_cache_miss_then_hit(self, clean_cache):
        """Test that the first read goes to the API and the second is served from the cache."""
        api = Mock()
        api.get_namespaced_custom_object.return_value = PROVIDER

        assert fetch_provider("cloudflare", "default", api) == PROVIDER
        assert fetch_provider("cloudflare", "default", api) == PROVIDER

        api.get_namespaced_custom_object.assert_called_once_with(
            group="access.cloudflare.dev",
            version="v1alpha1",
            namespace="default",
            plural="providers",
            name="cloudflare",
        )
        clean_cache.api_call_total.labels.assert_any_call(api_type="k8s", operation="get_provider", result="success")
        clean_cache.api_call_total.labels.assert_called_with(
            api_type="k8s", operation="get_provider", result="cache_hit"
        )

    @patch(f"{MODULE}.backoff_on_rate_limit")
    def test_retry_after_rate_limit(self, mock_backoff):
        """Test that a throttled lookup is retried with the attempt number."""
        api = Mock()
        api.get_namespaced_custom_object.side_effect = [client.exceptions.ApiException(status=429), PROVIDER]
        mock_backoff.return_value = True

        assert fetch_provider("cloudflare", "default", api) == PROVIDER

        assert api.get_namespaced_custom_object.call_count == 2
        assert mock_backoff.call_args[0][1] == 0

    @patch(f"{MODULE}.backoff_on_rate_limit", return_value=False)
    def test_not_found(self, mock_backoff, clean_cache):
        """Test that a missing Provider propagates the API error and is not cached."""
        api = Mock()
        api.get_namespaced_custom_object.side_effect = client.exceptions.ApiException(status=404)

        with pytest.raises(client.exceptions.ApiException) as exc_info:
            fetch_provider("cloudflare", "default", api)

        assert exc_info.value.status == 404
        assert provider_cache.get("default/cloudflare") is None
        clean_cache.api_call_total.labels.assert_called_with(api_type="k8s", operation="get_provider", result="error")

    @patch(f"{MODULE}.custom_objects_api")
    def test_default_api(self, mock_api):
        mock_api.return_value.get_namespaced_custom_object.return_value = PROVIDER

        assert fetch_provider("cloudflare", "default") == PROVIDER


class TestIsProviderReady:
    """Test cases for is_provider_ready function."""

    def test_ready(self):
        provider = {"status": {"conditions": [
            {"type": "AuthValid", "status": "True"},
            {"type": "Ready", "status": "True"},
        ]}}

        assert is_provider_ready(provider) is True

    def test_not_ready(self):
        provider = {"status": {"conditions": [{"type": "Ready", "status": "False"}]}}

        assert is_provider_ready(provider) is False

    def test_no_status(self):
        assert is_provider_ready(PROVIDER) is False


class TestCustomObjectsApi:
    """Test cases for custom_objects_api function."""

    @patch(f"{MODULE}.client.CustomObjectsApi")
    @patch(f"{MODULE}.config.load_incluster_config")
    def test_incluster(self, mock_load_incluster, mock_api):
        assert custom_objects_api() == mock_api.return_value
        mock_load_incluster.assert_called_once()

    @patch(f"{MODULE}.client.CustomObjectsApi")
    @patch(f"{MODULE}.config.load_kube_config")
    @patch(f"{MODULE}.config.load_incluster_config")
    def test_kubeconfig_fallback(self, mock_load_incluster, mock_load_kube, mock_api):
        """Test that the local kubeconfig is used outside a cluster."""
        from kubernetes.config import ConfigException

        mock_load_incluster.side_effect = ConfigException("Not in cluster")

        assert custom_objects_api() == mock_api.return_value
        mock_load_kube.assert_called_once()
