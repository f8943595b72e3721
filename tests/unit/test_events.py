"""Tests for Kubernetes event utilities."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from cloudflare_access_operator.utils.events import emit_event

META = {"name": "ssh-ca", "namespace": "default"}


class TestEmitEvent:
    """Test cases for emit_event function."""

    @pytest.mark.parametrize(
        "reason, event_type",
        [
            ("ReconcileStarted", "Normal"),
            ("ValidateSucceeded", "Normal"),
            ("CertificateCreated", "Normal"),
            ("CertificateImported", "Normal"),
            ("CertificateDeleted", "Normal"),
            ("ReconcileFailed", "Warning"),
            ("ValidateFailed", "Warning"),
            ("DriftDetected", "Warning"),
        ],
    )
    @patch("cloudflare_access_operator.utils.events.kopf.event")
    def test_event_type_follows_reason(self, mock_event, reason, event_type):
        """Test that failures and drift are posted as warnings."""
        emit_event(META, reason, "Access CA Certificate abc123")

        mock_event.assert_called_once_with(
            META, type=event_type, reason=reason, message="Access CA Certificate abc123"
        )
