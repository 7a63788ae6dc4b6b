"""
core/reconciler.py

Lifecycle reconciler for vendor-managed resources.

This module contains the coordination logic that:
1. Validates incoming resource descriptions and creates records in the Pending phase
2. Selects the provider matching a record's `spec.vendorType`
3. Calls the vendor outside any store lock, under a per-operation deadline
4. Commits the freshly observed status back into the store

Transition rule: a successful read or update overwrites the stored status with the observed one
(no merging). A failed read or update leaves the stored status untouched and is only logged, so
vendor flakiness never regresses a resource to Unknown. Deletion removes the record instead of
moving it to a terminal phase, and only after the vendor confirmed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from monitoring.metrics import RESOURCE_PHASE_TRANSITIONS, track_errors
from provider_api.base import VendorProvider
from services.resource_store import ResourceStore
from shared.cancellation import CancellationToken
from shared.errors import CancelledError, NotFoundError, PreconditionError, ValidationError, VendorError
from shared.models import (
    CreateResourceRequest,
    Phase,
    ResourceRecord,
    ResourceSpec,
    ResourceStatus,
    UpdateResourceRequest,
    utc_now,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUTS: Dict[str, float] = {
    "create_s": 30.0,
    "read_s": 15.0,
    "update_s": 30.0,
    "delete_s": 30.0,
    "health_s": 5.0,
}


@dataclass
class ReadResult:
    """
    Outcome of a refresh-or-fallback read.

    `stale` is True when the vendor could not be reached and `record` is the last committed
    value; `error` then carries the reason.
    """
    record: ResourceRecord
    stale: bool = False
    error: Optional[str] = None


class LifecycleReconciler:
    """
    Drives resources through their lifecycle against the registered providers.

    Args:
        store (ResourceStore): Repository holding every record.
        providers (Mapping[str, VendorProvider]): Static vendorType -> provider mapping built at
            startup.
        timeouts (Optional[Mapping[str, float]]): Per-operation deadlines in seconds with keys
            create_s, read_s, update_s, delete_s, health_s. Missing keys fall back to defaults.
    """

    def __init__(
        self,
        store: ResourceStore,
        providers: Mapping[str, VendorProvider],
        timeouts: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.store = store
        self.providers: Dict[str, VendorProvider] = dict(providers)
        self.timeouts: Dict[str, float] = dict(DEFAULT_TIMEOUTS)
        for key, value in (timeouts or {}).items():
            self.timeouts[key] = float(value)
        logger.info("Initialized with %d providers: %s", len(self.providers), ", ".join(sorted(self.providers)))

    # --- helpers ---

    def _token(self, operation: str, token: Optional[CancellationToken]) -> CancellationToken:
        return token if token is not None else CancellationToken.with_timeout(self.timeouts[f"{operation}_s"])

    def _provider_for(self, record: ResourceRecord) -> VendorProvider:
        provider = self.providers.get(record.spec.vendorType)
        if provider is None:
            # vendorType was validated at creation; reaching this means the registry changed.
            raise PreconditionError(f"provider not configured for vendor type: {record.spec.vendorType}")
        return provider

    def _require(self, resource_id: str) -> ResourceRecord:
        record = self.store.get(resource_id)
        if record is None:
            raise NotFoundError(f"resource not found: {resource_id}")
        return record

    @staticmethod
    def _observe(status: ResourceStatus) -> None:
        RESOURCE_PHASE_TRANSITIONS.labels(phase=status.phase.value).inc()

    # --- operations ---

    @track_errors("reconciler", "create_resource")
    def create_resource(
        self, request: CreateResourceRequest, token: Optional[CancellationToken] = None
    ) -> ResourceRecord:
        """
        Validate the request, create the record in Pending and provision it at the vendor.

        A vendor failure does not abort the request: the record is persisted with phase Failed
        and the vendor error in `status.message` so the caller can inspect what happened.

        Raises:
            ValidationError: name, type or spec.vendorType missing, or vendorType unknown.
        """
        name = request.name.strip()
        rtype = request.type.strip()
        vendor_type = request.spec.vendorType.strip()
        if not name:
            raise ValidationError("name is required")
        if not rtype:
            raise ValidationError("type is required")
        if not vendor_type:
            raise ValidationError("vendorType is required")
        provider = self.providers.get(vendor_type)
        if provider is None:
            raise ValidationError(f"unsupported vendor: {vendor_type}")

        now = utc_now()
        record = ResourceRecord(
            id=self.store.new_id(),
            type=rtype,
            name=name,
            namespace=request.namespace.strip() or "default",
            spec=ResourceSpec(vendorType=vendor_type, config=dict(request.spec.config)),
            status=ResourceStatus(phase=Phase.PENDING, message="Resource creation initiated"),
            createdAt=now,
            updatedAt=now,
        )
        log_extra = {"resource_id": record.id, "vendor_type": vendor_type}
        logger.info(f"[create_resource] Creating resource {record.id} ({name})", extra=log_extra)

        try:
            status = provider.create(record, self._token("create", token))
        except (VendorError, CancelledError) as exc:
            record.status.phase = Phase.FAILED
            record.status.message = f"Vendor API error: {exc}"
            record.status.healthStatus = "unknown"
            record.status.errorCount += 1
            logger.error(f"[create_resource] Vendor create failed for {record.id}: {exc}", extra=log_extra)
        else:
            record.status = status
        record.updatedAt = utc_now()

        self.store.put(record)
        self._observe(record.status)
        return record

    @track_errors("reconciler", "get_resource")
    def get_resource(self, resource_id: str, token: Optional[CancellationToken] = None) -> ReadResult:
        """
        Return the record, refreshing its status from the vendor when it has a vendorId.

        Refresh-or-fallback: if the vendor read fails the last committed record is returned with
        `stale=True` and the failure is logged; the stored status is left untouched.

        Raises:
            NotFoundError: Unknown id.
        """
        record = self._require(resource_id)
        vendor_id = record.status.vendorId
        if not vendor_id:
            return ReadResult(record=record)

        log_extra = {"resource_id": resource_id, "vendor_type": record.spec.vendorType}
        try:
            provider = self._provider_for(record)
            status = provider.read(vendor_id, self._token("read", token))
        except (VendorError, CancelledError, PreconditionError) as exc:
            logger.warning(
                f"[get_resource] Failed to refresh {resource_id} from vendor, returning cached record: {exc}",
                extra=log_extra,
            )
            return ReadResult(record=record, stale=True, error=str(exc))

        refreshed_at = utc_now()

        def _commit(stored: ResourceRecord) -> None:
            stored.status = status.model_copy(deep=True)
            stored.updatedAt = refreshed_at

        committed = self.store.update(resource_id, _commit)
        if committed is None:
            # Deleted while we were talking to the vendor; report what we observed without
            # resurrecting the record.
            record.status = status
            record.updatedAt = refreshed_at
            return ReadResult(record=record)
        self._observe(committed.status)
        return ReadResult(record=committed)

    @track_errors("reconciler", "update_resource")
    def update_resource(
        self,
        resource_id: str,
        request: UpdateResourceRequest,
        token: Optional[CancellationToken] = None,
    ) -> ResourceRecord:
        """
        Replace `spec.config` and push it to the vendor.

        The local spec and status only change after the vendor accepted the update.

        Raises:
            NotFoundError: Unknown id.
            ValidationError: The request tries to change vendorType.
            PreconditionError: The resource was never created at the vendor.
            VendorError / CancelledError: The vendor call failed; stored state is unchanged.
        """
        record = self._require(resource_id)
        requested_vendor = (request.spec.vendorType or "").strip()
        if requested_vendor and requested_vendor != record.spec.vendorType:
            raise ValidationError("spec.vendorType cannot be changed after creation")
        if not record.status.vendorId:
            raise PreconditionError(f"resource {resource_id} has not been created at the vendor")

        provider = self._provider_for(record)
        candidate = record.model_copy(deep=True)
        candidate.spec.config = dict(request.spec.config)

        log_extra = {"resource_id": resource_id, "vendor_type": record.spec.vendorType}
        try:
            status = provider.update(candidate, self._token("update", token))
        except (VendorError, CancelledError) as exc:
            logger.warning(f"[update_resource] Vendor update failed for {resource_id}: {exc}", extra=log_extra)
            raise

        updated_at = utc_now()

        def _commit(stored: ResourceRecord) -> None:
            stored.spec.config = dict(candidate.spec.config)
            stored.status = status.model_copy(deep=True)
            stored.updatedAt = updated_at

        committed = self.store.update(resource_id, _commit)
        if committed is None:
            raise NotFoundError(f"resource deleted during update: {resource_id}")
        self._observe(committed.status)
        logger.info(f"[update_resource] Updated {resource_id} ({committed.status.phase.value})", extra=log_extra)
        return committed

    @track_errors("reconciler", "delete_resource")
    def delete_resource(self, resource_id: str, token: Optional[CancellationToken] = None) -> None:
        """
        Delete at the vendor first, then remove the local record.

        If the vendor call fails the local record is kept so the control plane does not lose
        track of a remote resource that still exists.

        Raises:
            NotFoundError: Unknown id.
            VendorError / CancelledError: Vendor delete failed; the record is preserved.
        """
        record = self._require(resource_id)
        vendor_id = record.status.vendorId
        if vendor_id:
            provider = self._provider_for(record)
            provider.delete(vendor_id, self._token("delete", token))
        self.store.delete(resource_id)
        logger.info(
            f"[delete_resource] Deleted {resource_id}",
            extra={"resource_id": resource_id, "vendor_type": record.spec.vendorType},
        )

    def check_health(self) -> Dict[str, str]:
        """
        Probe every registered provider once, without retries.

        Returns:
            Dict[str, str]: vendorType -> "ok" or the failure message. Never raises.
        """
        results: Dict[str, str] = {}
        for vendor, provider in sorted(self.providers.items()):
            try:
                provider.health_check(CancellationToken.with_timeout(self.timeouts["health_s"]))
                results[vendor] = "ok"
            except Exception as exc:  # health reporting never raises
                logger.warning(f"[check_health] Provider {vendor} unhealthy: {exc}", extra={"vendor_type": vendor})
                results[vendor] = str(exc) or exc.__class__.__name__
        return results
