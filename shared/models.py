"""
shared/models.py

Data models for managed resources and the request payloads of the resource API.

A `ResourceRecord` pairs what the caller asked for (`spec`, the desired state) with what the
vendor last reported (`status`, the observed state). Field names are camelCase because they are
serialized to API clients as-is, the same way request models elsewhere in this codebase expose
`interactionId`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class Phase(str, Enum):
    """
    Normalized lifecycle phase of a resource.

    - PENDING: local record exists, no vendor response known yet (initial state)
    - RUNNING / PROVISIONING / UPDATING / UNKNOWN: derived from the vendor's reported state
    - FAILED: a vendor call errored or the vendor reported a failure; reachable from any phase
    """
    PENDING = "Pending"
    RUNNING = "Running"
    PROVISIONING = "Provisioning"
    UPDATING = "Updating"
    FAILED = "Failed"
    UNKNOWN = "Unknown"


class ResourceSpec(BaseModel):
    """Desired state: the vendor selector plus an open-ended, vendor-interpreted config payload."""
    vendorType: str = Field(..., description="Selects the provider for the record's lifetime")
    config: Dict[str, Any] = Field(default_factory=dict, description="Vendor-specific configuration")


class ResourceStatus(BaseModel):
    """
    Observed state as last reported by the vendor.

    `vendorId` stays empty until a create call succeeds; afterwards it is the only key used for
    vendor operations on the resource. `metrics` holds the last observed operational values
    (bitrate, dropped frames, viewers, uptime, device health).
    """
    phase: Phase = Phase.PENDING
    message: str = ""
    vendorId: str = ""
    healthStatus: str = "unknown"
    errorCount: int = 0
    lastHealthCheck: Optional[datetime] = None
    lastSuccessfulOperation: Optional[datetime] = None
    metrics: Dict[str, Any] = Field(default_factory=dict)


class ResourceRecord(BaseModel):
    """The caller-visible unit of management. `id`, `type`, `name` and `namespace` never change."""
    id: str
    type: str
    name: str
    namespace: str = "default"
    spec: ResourceSpec
    status: ResourceStatus = Field(default_factory=ResourceStatus)
    createdAt: datetime = Field(default_factory=utc_now)
    updatedAt: datetime = Field(default_factory=utc_now)


# --- API request payloads ---
# Required fields are validated by the reconciler rather than by pydantic so that a missing
# or empty value produces the same 400 response regardless of how it was omitted.

class CreateSpecRequest(BaseModel):
    vendorType: str = ""
    config: Dict[str, Any] = Field(default_factory=dict)


class CreateResourceRequest(BaseModel):
    """Body of POST /resources."""
    name: str = Field("", description="Human-friendly resource name (required)")
    type: str = Field("", description="Resource kind, e.g. 'camera' (required)")
    namespace: str = Field("", description="Logical grouping; defaults to 'default'")
    spec: CreateSpecRequest = Field(default_factory=CreateSpecRequest)


class UpdateSpecRequest(BaseModel):
    vendorType: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)


class UpdateResourceRequest(BaseModel):
    """Body of PUT /resources/{id}. Only `spec.config` may change."""
    spec: UpdateSpecRequest = Field(default_factory=UpdateSpecRequest)
