"""Tests for Kubernetes secrets utilities."""

from __future__ import annotations

import base64
from unittest.mock import Mock

import pytest
from kubernetes import client

from cloudflare_access_operator.utils.secrets import get_secret_value


def make_api(data):
    api = Mock()
    api.read_namespaced_secret.return_value = Mock(data=data)
    return api


class TestGetSecretValue:
    """Test cases for get_secret_value function."""

    def test_base64_value(self):
        """Test decoding the base64 value the API returns."""
        api = make_api({"api-token": base64.b64encode(b"cf-token-123").decode("utf-8")})

        result = get_secret_value(api, "infra", "cloudflare-creds", "api-token")

        assert result == "cf-token-123"
        api.read_namespaced_secret.assert_called_once_with(name="cloudflare-creds", namespace="infra")

    def test_bytes_value(self):
        """Test values that arrive as bytes."""
        api = make_api({"api-token": b"cf-token-123"})

        assert get_secret_value(api, "infra", "cloudflare-creds", "api-token") == "cf-token-123"

    def test_plain_string_value(self):
        """Test that values which are not base64 are returned as-is."""
        api = make_api({"api-token": "not base64!"})

        assert get_secret_value(api, "infra", "cloudflare-creds", "api-token") == "not base64!"

    def test_key_not_found(self):
        """Test error when key not found in secret."""
        api = make_api({"other-key": "dmFsdWU="})

        with pytest.raises(ValueError, match="Key 'api-token' not found in secret 'cloudflare-creds'"):
            get_secret_value(api, "infra", "cloudflare-creds", "api-token")

    def test_empty_secret(self):
        """Test error when the secret has no data."""
        api = make_api(None)

        with pytest.raises(ValueError, match="Key 'api-token' not found"):
            get_secret_value(api, "infra", "cloudflare-creds", "api-token")

    def test_secret_not_found(self):
        """Test error when secret not found."""
        api = Mock()
        api.read_namespaced_secret.side_effect = client.exceptions.ApiException(status=404)

        with pytest.raises(ValueError, match="Secret 'cloudflare-creds' not found in namespace 'infra'"):
            get_secret_value(api, "infra", "cloudflare-creds", "api-token")

    def test_api_error(self):
        """Test that other API errors propagate."""
        api = Mock()
        api.read_namespaced_secret.side_effect = client.exceptions.ApiException(status=500)

        with pytest.raises(client.exceptions.ApiException):
            get_secret_value(api, "infra", "cloudflare-creds", "api-token")
