"""Handler for AccessCACertificate CRD.

Cloudflare Access can replace traditional SSH key models with short-lived
certificates issued to users based on the token generated by their Access
login. Each Access application has at most one CA certificate, created and
deleted per application in either an account or a zone.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import kopf
from kubernetes import client

from .. import metrics
from ..builders.certificate import (
    changed_immutable_fields,
    create_record_from_resource,
    record_to_status,
)
from ..builders.provider import create_provider_from_spec
from ..constants import (
    API_GROUP_VERSION,
    COND_CREATION_FAILED,
    COND_IMPORT_FAILED,
    COND_READY,
    EVENT_REASON_CERTIFICATE_CREATED,
    EVENT_REASON_CERTIFICATE_DELETED,
    EVENT_REASON_CERTIFICATE_IMPORTED,
    EVENT_REASON_DRIFT_DETECTED,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_VALIDATE_SUCCEEDED,
    KIND_ACCESS_CA_CERTIFICATE,
    LEVEL_ACCOUNT,
    LEVEL_ZONE,
)
from ..models import CertificateRecord
from ..services.cloudflare.base import AccessProvider
from ..services.cloudflare.models import (
    CloudflareAPIError,
    CloudflareNotFoundError,
    Failed,
    NotFound,
    ResourceContainer,
)
from ..tracing import add_span_attribute, trace_span
from ..utils.conditions import drop_failure_conditions, set_condition
from ..utils.container import resolve_container
from ..utils.context import with_correlation_id
from ..utils.errors import (
    CertificateOperationError,
    ContainerResolutionError,
    ImportIdError,
    ImportStateError,
    OperationCancelledError,
    ValidationError,
    sanitize_exception,
)
from ..utils.events import emit_event
from .base import BaseHandler
from .shared import fetch_provider, is_provider_ready, provider_ref

IMPORT_ID_FORMAT = (
    '"account/accountID/applicationID/accessCACertificateID" or '
    '"zone/zoneID/applicationID/accessCACertificateID"'
)

DRIFT_CHECK_INTERVAL_SECONDS = int(os.getenv("DRIFT_CHECK_INTERVAL_SECONDS", "300"))


@dataclass
class OperationContext:
    """Per-invocation context threaded through every reconciler operation.

    ``stopped`` is any flag object with an ``is_set()`` method, such as a
    ``threading.Event`` or the ``stopped`` flag kopf hands to timers.
    """

    meta: dict[str, Any] = field(default_factory=dict)
    timeout: float | None = None
    stopped: Any = None

    def raise_if_cancelled(self) -> None:
        if self.stopped is not None and self.stopped.is_set():
            raise OperationCancelledError("operation cancelled before the Cloudflare API call")


@dataclass
class HandlerEnvironment:
    """Dependencies handed to reconciler operations."""

    client: AccessProvider

    def close(self) -> None:
        self.client.close()


class AccessCACertificateHandler(BaseHandler):
    """Handler for AccessCACertificate resources."""

    def __init__(self):
        super().__init__(KIND_ACCESS_CA_CERTIFICATE)

    def _resolve(self, record: CertificateRecord) -> ResourceContainer:
        try:
            return resolve_container(record)
        except ContainerResolutionError as e:
            raise ContainerResolutionError(f"error determining resource container: {e}") from e

    def create(self, ctx: OperationContext, record: CertificateRecord, env: HandlerEnvironment) -> None:
        """Create the certificate and refresh the record from Cloudflare.

        Raises:
            ContainerResolutionError: If the record has no usable container
            CertificateOperationError: If Cloudflare rejects the creation
        """
        container = self._resolve(record)
        ctx.raise_if_cancelled()

        with trace_span("create_access_ca_certificate", kind=self.kind, attributes={
            "container.level": container.level,
            "application.id": record.application_id,
        }):
            try:
                certificate = env.client.create_access_ca_certificate(
                    container, record.application_id, timeout=ctx.timeout
                )
            except CloudflareAPIError as e:
                metrics.certificate_operations_total.labels(operation="create", result="error").inc()
                raise CertificateOperationError(
                    f"error creating Access CA Certificate for {container.level} {container.identifier!r}: {e}"
                ) from e

        metrics.certificate_operations_total.labels(operation="create", result="success").inc()
        record.id = certificate.id
        self.log(ctx.meta, f"Created Access CA Certificate {record.id}",
                 reason="CertificateCreated", certificate_id=record.id)

        self.read(ctx, record, env)

    def read(self, ctx: OperationContext, record: CertificateRecord, env: HandlerEnvironment) -> None:
        """Refresh the record from Cloudflare.

        A certificate that no longer exists is not an error: the record is
        marked absent and the call returns normally.

        Raises:
            ContainerResolutionError: If the record has no usable container
            CertificateOperationError: If the lookup failed; ``id`` is kept
        """
        container = self._resolve(record)
        ctx.raise_if_cancelled()

        with trace_span("read_access_ca_certificate", kind=self.kind, attributes={
            "container.level": container.level,
            "application.id": record.application_id,
        }):
            result = env.client.get_access_ca_certificate(container, record.application_id, timeout=ctx.timeout)

        if isinstance(result, NotFound):
            metrics.certificate_operations_total.labels(operation="read", result="not_found").inc()
            self.log(ctx.meta, f"Access CA Certificate {record.id} no longer exists",
                     reason="NotFound", certificate_id=record.id)
            record.mark_absent()
            return

        if isinstance(result, Failed):
            metrics.certificate_operations_total.labels(operation="read", result="error").inc()
            raise CertificateOperationError(
                f"error finding Access CA Certificate {record.id!r}: {result.cause}"
            ) from result.cause

        metrics.certificate_operations_total.labels(operation="read", result="success").inc()
        certificate = result.certificate
        record.id = certificate.id
        record.aud = certificate.aud
        record.public_key = certificate.public_key

    def update(self, ctx: OperationContext, record: CertificateRecord, env: HandlerEnvironment) -> None:
        """No field of a certificate can change in place."""
        return None

    def delete(self, ctx: OperationContext, record: CertificateRecord, env: HandlerEnvironment) -> None:
        """Delete the certificate.

        Client errors are re-raised as-is and ``id`` is kept, so a retry
        targets the same certificate.
        """
        self.log(ctx.meta, f"Deleting Cloudflare CA Certificate using ID: {record.id}",
                 reason="Deletion", level=logging.DEBUG, certificate_id=record.id)

        container = self._resolve(record)
        ctx.raise_if_cancelled()

        with trace_span("delete_access_ca_certificate", kind=self.kind, attributes={
            "container.level": container.level,
            "application.id": record.application_id,
        }):
            try:
                env.client.delete_access_ca_certificate(container, record.application_id, timeout=ctx.timeout)
            except CloudflareAPIError:
                metrics.certificate_operations_total.labels(operation="delete", result="error").inc()
                raise

        metrics.certificate_operations_total.labels(operation="delete", result="success").inc()
        record.mark_absent()

    def import_state(
        self,
        ctx: OperationContext,
        composite_id: str,
        env: HandlerEnvironment,
    ) -> list[CertificateRecord]:
        """Rebuild a record from ``<account|zone>/<scopeID>/<applicationID>/<certificateID>``.

        Raises:
            ImportIdError: If the identifier is malformed
            ImportStateError: If the certificate could not be read
        """
        attributes = composite_id.split("/", 3)
        if len(attributes) != 4 or attributes[0] not in (LEVEL_ACCOUNT, LEVEL_ZONE):
            raise ImportIdError(f'invalid id ("{composite_id}") specified, should be in format {IMPORT_ID_FORMAT}')

        identifier_type, identifier_id, application_id, certificate_id = attributes
        self.log(
            ctx.meta,
            f"Importing Cloudflare Access CA Certificate: id {certificate_id} for {identifier_type} {identifier_id}",
            reason="Import",
            level=logging.DEBUG,
        )

        record = CertificateRecord(application_id=application_id, id=certificate_id)
        setattr(record, f"{identifier_type}_id", identifier_id)

        try:
            self.read(ctx, record, env)
        except Exception as e:
            raise ImportStateError("failed to read Access CA Certificate state") from e

        return [record]

    def _load_provider(self, spec: dict[str, Any], meta: dict[str, Any]) -> dict[str, Any]:
        """Fetch the Provider referenced by ``spec.providerRef``.

        Raises:
            client.exceptions.ApiException: If the lookup fails (404 when missing)
        """
        return fetch_provider(*provider_ref(spec, meta))

    def _build_environment(
        self,
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
    ) -> HandlerEnvironment:
        """Build the environment for a reconciliation from the referenced Provider."""
        provider_name, provider_ns = provider_ref(spec, meta)

        try:
            provider_obj = self._load_provider(spec, meta)
        except client.exceptions.ApiException as e:
            if e.status == 404:
                self.provider_unavailable(
                    meta, status, patch, f"Provider {provider_name} not found in namespace {provider_ns}"
                )
            raise

        if not is_provider_ready(provider_obj):
            self.provider_unavailable(meta, status, patch, f"Provider {provider_name} is not ready")

        provider_client = create_provider_from_spec(provider_obj.get("spec", {}), provider_obj.get("metadata", {}))
        return HandlerEnvironment(client=provider_client)

    def _validate(self, spec: dict[str, Any], meta: dict[str, Any]) -> CertificateRecord:
        if not spec.get("providerRef", {}).get("name"):
            self.reject(meta, "providerRef.name is required")
        if not spec.get("applicationId"):
            self.reject(meta, "applicationId is required")

        record = create_record_from_resource(spec)
        try:
            resolve_container(record)
        except ContainerResolutionError as e:
            self.reject(meta, str(e))

        emit_event(meta, EVENT_REASON_VALIDATE_SUCCEEDED, "Validation succeeded")
        return record

    def _adopt_import(
        self,
        ctx: OperationContext,
        import_id: str,
        declared: CertificateRecord,
        env: HandlerEnvironment,
    ) -> CertificateRecord:
        """Import an existing certificate and check it matches the declaration."""
        record = self.import_state(ctx, import_id, env)[0]

        mismatched = [
            name for name in ("application_id", "account_id", "zone_id")
            if getattr(record, name) != getattr(declared, name)
        ]
        if mismatched:
            raise ImportIdError(
                f"importId {import_id!r} does not match the declared {', '.join(mismatched)}"
            )
        if not record.exists:
            raise ImportStateError(f"Access CA Certificate from importId {import_id!r} does not exist")

        self.log(ctx.meta, f"Imported Access CA Certificate {record.id}",
                 reason="CertificateImported", certificate_id=record.id)
        emit_event(ctx.meta, EVENT_REASON_CERTIFICATE_IMPORTED, f"Access CA Certificate {record.id} imported")
        return record

    def _create_and_announce(self, ctx: OperationContext, record: CertificateRecord, env: HandlerEnvironment) -> None:
        self.create(ctx, record, env)
        emit_event(ctx.meta, EVENT_REASON_CERTIFICATE_CREATED, f"Access CA Certificate {record.id} created")

    def reconcile(
        self,
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
    ) -> None:
        """Reconcile AccessCACertificate resource on creation and resume."""
        name = meta.get("name", "unknown")

        with trace_span("reconcile_access_ca_certificate", kind=self.kind, attributes={"certificate.name": name}):
            declared = self._validate(spec, meta)
            record = create_record_from_resource(spec, status)
            env = self._build_environment(spec, meta, status, patch)
            ctx = OperationContext(meta=meta)
            conditions = status.get("conditions", [])
            import_id = spec.get("importId")
            imported_from = status.get("importedFrom")

            try:
                if record.exists:
                    self.read(ctx, record, env)
                    if not record.exists:
                        self._report_drift(meta)

                if not record.exists:
                    if import_id and import_id != imported_from:
                        record = self._adopt_import(ctx, import_id, declared, env)
                        imported_from = import_id
                    else:
                        self._create_and_announce(ctx, record, env)
            except ValidationError as e:
                patch.status["conditions"] = set_condition(conditions, COND_IMPORT_FAILED, True, str(e))
                self.reject(meta, str(e))
            except ImportStateError as e:
                self._fail(meta, patch, set_condition(conditions, COND_IMPORT_FAILED, True, str(e)), e)
            except (CertificateOperationError, OperationCancelledError) as e:
                conditions = set_condition(conditions, COND_CREATION_FAILED, True, sanitize_exception(e))
                self._fail(meta, patch, conditions, e)
            finally:
                env.close()

            add_span_attribute("certificate.id", record.id)
            conditions = set_condition(
                drop_failure_conditions(conditions), COND_READY, True, f"Access CA Certificate {record.id} is ready"
            )
            self.write_status(patch, meta, True, {
                **record_to_status(record),
                "importedFrom": imported_from,
                "lastSyncTime": datetime.now(timezone.utc).isoformat(),
                "conditions": conditions,
            })

    def _fail(
        self,
        meta: dict[str, Any],
        patch: kopf.Patch,
        conditions: list[dict[str, Any]],
        error: Exception,
    ) -> None:
        """Record a failed operation on the resource and have kopf retry it.

        Raises:
            kopf.TemporaryError: Always
        """
        sanitized_error = sanitize_exception(error)
        conditions = set_condition(conditions, COND_READY, False, sanitized_error)
        self.write_status(patch, meta, False, {"conditions": conditions})
        raise kopf.TemporaryError(sanitized_error) from error

    def _report_drift(self, meta: dict[str, Any]) -> None:
        message = "Access CA Certificate was deleted outside of the operator"
        metrics.drift_detected_total.labels(kind=self.kind, resource_type="certificate").inc()
        self.log(meta, message, reason="DriftDetected", level=logging.WARNING)
        emit_event(meta, EVENT_REASON_DRIFT_DETECTED, message)

    def check_drift(
        self,
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
        stopped: Any = None,
    ) -> None:
        """Refresh observed state and recreate the certificate if it disappeared."""
        record = create_record_from_resource(spec, status)
        if meta.get("deletionTimestamp") or not record.exists:
            return

        with trace_span("check_drift_access_ca_certificate", kind=self.kind):
            env = self._build_environment(spec, meta, status, patch)
            ctx = OperationContext(meta=meta, stopped=stopped)
            try:
                self.read(ctx, record, env)
                if not record.exists:
                    self._report_drift(meta)
                    self._create_and_announce(ctx, record, env)
            finally:
                env.close()

            patch.status.update({
                **record_to_status(record),
                "lastSyncTime": datetime.now(timezone.utc).isoformat(),
            })

    def handle_update(
        self,
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
        diff: Any,
    ) -> None:
        """Reject changes to immutable fields; nothing else needs reconciling.

        A rejected spec is still stored by kopf. The certificate keeps the
        application and container recorded in status.
        """
        changed = changed_immutable_fields(diff)
        if changed:
            self.reject(
                meta,
                f"{', '.join(changed)} cannot be changed after creation; delete and recreate the resource",
            )

        env = self._build_environment(spec, meta, status, patch)
        try:
            self.update(OperationContext(meta=meta), create_record_from_resource(spec, status), env)
        finally:
            env.close()

    def handle_delete(
        self,
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
    ) -> None:
        """Delete the certificate recorded in status, then release the finalizer."""
        record = create_record_from_resource(spec, status)
        self.log(meta, f"AccessCACertificate {meta.get('name', 'unknown')} is being deleted",
                 reason="Deletion", certificate_id=record.id)

        if not record.exists or not spec.get("providerRef", {}).get("name"):
            self.remove_finalizer(meta, patch)
            return

        try:
            provider_obj = self._load_provider(spec, meta)
        except client.exceptions.ApiException as e:
            if e.status != 404:
                raise
            self.log(meta, f"Provider for certificate {record.id} is gone, leaving it in Cloudflare",
                     reason="ProviderNotFound", level=logging.WARNING, certificate_id=record.id)
            self.remove_finalizer(meta, patch)
            return

        env = HandlerEnvironment(
            client=create_provider_from_spec(provider_obj.get("spec", {}), provider_obj.get("metadata", {}))
        )
        certificate_id = record.id
        try:
            self.delete(OperationContext(meta=meta), record, env)
        except CloudflareNotFoundError:
            self.log(meta, f"Access CA Certificate {certificate_id} already deleted",
                     reason="NotFound", certificate_id=certificate_id)
            record.mark_absent()
        except CloudflareAPIError as e:
            sanitized_error = sanitize_exception(e)
            self.log(meta, f"Failed to delete Access CA Certificate {certificate_id}", reason="DeletionFailed",
                     level=logging.ERROR, error=e, certificate_id=certificate_id)
            emit_event(meta, EVENT_REASON_RECONCILE_FAILED, f"Deletion failed: {sanitized_error}")
            raise kopf.TemporaryError(sanitized_error, delay=30) from e
        finally:
            env.close()

        emit_event(meta, EVENT_REASON_CERTIFICATE_DELETED, f"Access CA Certificate {certificate_id} deleted")
        patch.status.update(record_to_status(record))
        self.remove_finalizer(meta, patch)


# Global handler instance
_handler = AccessCACertificateHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_ACCESS_CA_CERTIFICATE)
@kopf.on.resume(API_GROUP_VERSION, KIND_ACCESS_CA_CERTIFICATE)
def handle_access_ca_certificate(
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle AccessCACertificate resource reconciliation."""
    with with_correlation_id():
        _handler.ensure_finalizer(meta, patch)
        with _handler.observe_reconcile(meta):
            _handler.reconcile(spec, meta, status, patch)


@kopf.on.update(API_GROUP_VERSION, KIND_ACCESS_CA_CERTIFICATE)
def handle_access_ca_certificate_update(
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    diff: Any,
    **kwargs: Any,
) -> None:
    """Handle AccessCACertificate resource updates."""
    with with_correlation_id():
        _handler.handle_update(spec, meta, status, patch, diff)


@kopf.timer(API_GROUP_VERSION, KIND_ACCESS_CA_CERTIFICATE, interval=DRIFT_CHECK_INTERVAL_SECONDS, idle=60)
def check_access_ca_certificate_drift(
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    stopped: Any,
    **kwargs: Any,
) -> None:
    """Periodically detect certificates deleted outside of the operator."""
    with with_correlation_id(), _handler.observe_reconcile(meta):
        _handler.check_drift(spec, meta, status, patch, stopped)


@kopf.on.delete(API_GROUP_VERSION, KIND_ACCESS_CA_CERTIFICATE)
def handle_access_ca_certificate_delete(
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle AccessCACertificate resource deletion."""
    with with_correlation_id():
        _handler.handle_delete(spec, meta, status, patch)
