"""Tests for resource container resolution."""

from __future__ import annotations

import pytest

from cloudflare_access_operator.models import CertificateRecord
from cloudflare_access_operator.services.cloudflare.models import AccountContainer, ZoneContainer
from cloudflare_access_operator.utils.container import resolve_container
from cloudflare_access_operator.utils.errors import ContainerResolutionError


class TestResolveContainer:
    """Test cases for resolve_container function."""

    def test_account(self):
        container = resolve_container(CertificateRecord(application_id="app1", account_id="acc1"))

        assert container == AccountContainer("acc1")
        assert container.level == "account"
        assert container.path == "accounts/acc1"

    def test_zone(self):
        container = resolve_container(CertificateRecord(application_id="app1", zone_id="zone1"))

        assert container == ZoneContainer("zone1")
        assert container.level == "zone"
        assert container.path == "zones/zone1"

    def test_neither(self):
        with pytest.raises(ContainerResolutionError, match="either account_id or zone_id must be set"):
            resolve_container(CertificateRecord(application_id="app1"))

    def test_both(self):
        """Test that a record in both an account and a zone is ambiguous."""
        with pytest.raises(ContainerResolutionError, match="only one of account_id or zone_id"):
            resolve_container(CertificateRecord(application_id="app1", account_id="acc1", zone_id="zone1"))

    def test_containers_of_different_scope_differ(self):
        assert AccountContainer("same") != ZoneContainer("same")


class TestCertificateRecord:
    """Test cases for CertificateRecord."""

    def test_exists_follows_id(self):
        record = CertificateRecord(application_id="app1")
        assert not record.exists

        record.id = "abc123"
        assert record.exists

    def test_mark_absent_keeps_other_fields(self):
        record = CertificateRecord(application_id="app1", account_id="acc1", id="abc123", aud="aud1")

        record.mark_absent()

        assert record.id == ""
        assert record.application_id == "app1"
        assert record.account_id == "acc1"
