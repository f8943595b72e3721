"""Tests for rate limiting utilities."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from kubernetes.client.exceptions import ApiException

from cloudflare_access_operator.utils.rate_limit import Throttle, backoff_on_rate_limit

MODULE = "cloudflare_access_operator.utils.rate_limit"


class TestThrottle:
    """Test cases for the Throttle decorator."""

    def test_passes_arguments_through(self):
        """Test that the wrapped function gets its arguments and returns its value."""
        @Throttle("k8s", 10000.0)
        def get_object(group, version, name=None):
            return f"{group}/{version}/{name}"

        assert get_object("access.cloudflare.dev", "v1alpha1", name="cf") == "access.cloudflare.dev/v1alpha1/cf"

    def test_decorates_methods(self):
        class Client:
            @Throttle("cloudflare", 10000.0)
            def request(self, method, path):
                return (method, path)

        assert Client().request("GET", "/user/tokens/verify") == ("GET", "/user/tokens/verify")

    @patch(f"{MODULE}.metrics")
    @patch(f"{MODULE}.time.sleep")
    def test_sleeps_when_too_fast(self, mock_sleep, mock_metrics):
        """Test that back-to-back calls are spaced out and counted as rate limit hits."""
        throttle = Throttle("cloudflare", 4.0)

        with patch(f"{MODULE}.time.monotonic", return_value=50.0):
            throttle.wait()
        mock_sleep.assert_not_called()
        with patch(f"{MODULE}.time.monotonic", return_value=50.1):
            throttle.wait()

        mock_sleep.assert_called_once()
        assert mock_sleep.call_args[0][0] == pytest.approx(0.15)
        mock_metrics.rate_limit_hits_total.labels.assert_called_once_with(api_type="cloudflare")

    @patch(f"{MODULE}.time.sleep")
    def test_spaced_calls_do_not_sleep(self, mock_sleep):
        throttle = Throttle("k8s", 1.0)

        with patch(f"{MODULE}.time.monotonic", return_value=10.0):
            throttle.wait()
        with patch(f"{MODULE}.time.monotonic", return_value=11.5):
            throttle.wait()

        mock_sleep.assert_not_called()


class TestBackoffOnRateLimit:
    """Test cases for backoff_on_rate_limit function."""

    def test_not_found_is_not_retried(self):
        """Test that a 404 is not a rate limit error."""
        assert backoff_on_rate_limit(ApiException(status=404), attempt=0) is False

    @patch(f"{MODULE}.time.sleep")
    def test_too_many_requests(self, mock_sleep):
        """Test that a 429 backs off exponentially with the attempt number."""
        assert backoff_on_rate_limit(ApiException(status=429), attempt=0) is True
        assert backoff_on_rate_limit(ApiException(status=429), attempt=1) is True
        assert backoff_on_rate_limit(ApiException(status=429), attempt=2) is True

        assert [c[0][0] for c in mock_sleep.call_args_list] == [1, 2, 4]

    @patch(f"{MODULE}.time.sleep")
    def test_service_unavailable_rate_limit(self, mock_sleep):
        """Test that a 503 mentioning a rate limit is retried."""
        error = ApiException(status=503, reason="Rate limit exceeded")

        assert backoff_on_rate_limit(error, attempt=0) is True

    @patch(f"{MODULE}.time.sleep")
    def test_service_unavailable_other(self, mock_sleep):
        """Test that other 503s are not retried."""
        assert backoff_on_rate_limit(ApiException(status=503, reason="Service Unavailable"), attempt=0) is False
        mock_sleep.assert_not_called()

    @patch(f"{MODULE}.time.sleep")
    def test_gives_up_after_max_retries(self, mock_sleep):
        assert backoff_on_rate_limit(ApiException(status=429), attempt=2, max_retries=2) is False
        mock_sleep.assert_not_called()
