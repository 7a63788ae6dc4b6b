"""
Provider-agnostic interface for vendor hardware integrations.

This module defines the abstract contract that every concrete vendor adapter must fulfill in
order to be used by the lifecycle reconciler. The design uses the adapter pattern to separate
resource lifecycle logic from vendor-specific concerns like authentication, request and response
schemas, and status vocabulary. The reconciler only ever sees normalized `ResourceStatus` objects
and the shared error taxonomy; everything else stays behind this boundary.

Key concepts:
- vendor: the registry key that `spec.vendorType` selects (e.g. "sony").
- vendorId: the identifier the vendor assigned on create; the only key used for read, update
  and delete. Adapters never receive an empty vendorId for those operations.
- token: a `CancellationToken` carrying the caller's deadline. Adapters pass it to the resilient
  executor so retries and backoff honour the deadline.

To integrate another vendor, subclass `VendorProvider`, implement the five abstract methods, and
add one entry to the registry in `provider_api.registry`.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from shared.cancellation import CancellationToken
from shared.models import ResourceRecord, ResourceStatus


class VendorProvider(ABC):
    """
    Abstract provider defining the operations the control plane needs from a vendor.

    Implementations are responsible for handling all vendor-specific details such as
    authentication headers, HTTP transport through the resilient executor, and translating raw
    vendor responses into normalized statuses. Failures must be raised as `VendorError`
    subclasses (or `PreconditionError` / `CancelledError`); a provider never returns a partial
    status to signal an error, with the single exception of `read` on a vendor "not found".

    Note:
        Providers are shared between request threads and must be safe for concurrent use.
    """

    #: Registry key matched against `spec.vendorType`.
    vendor: str = ""

    @abstractmethod
    def create(self, resource: ResourceRecord, token: CancellationToken) -> ResourceStatus:
        """
        Provision the resource at the vendor and return its normalized status.

        Args:
            resource (ResourceRecord): Record with a vendor-agnostic spec and a Pending status.
            token (CancellationToken): Deadline for the whole operation including retries.

        Returns:
            ResourceStatus: Status with `phase` mapped from the vendor's reported state and
            `vendorId` set to the identifier the vendor assigned.

        Raises:
            VendorError: Translation, transport, or vendor response failure.
            CancelledError: The token fired.
        """
        raise NotImplementedError

    @abstractmethod
    def read(self, vendor_id: str, token: CancellationToken) -> ResourceStatus:
        """
        Fetch the current vendor state of an already created resource.

        A vendor "not found" is not an error: it resolves to a status with `phase=Failed` and a
        descriptive message so the reconciler can record the observed absence.

        Raises:
            VendorError: Transport failure or any other unexpected vendor response.
        """
        raise NotImplementedError

    @abstractmethod
    def update(self, resource: ResourceRecord, token: CancellationToken) -> ResourceStatus:
        """
        Push the resource's current spec to the vendor.

        Raises:
            PreconditionError: `resource.status.vendorId` is empty (update before create).
            VendorError: Transport or vendor response failure.
        """
        raise NotImplementedError

    @abstractmethod
    def delete(self, vendor_id: str, token: CancellationToken) -> None:
        """
        Remove the resource at the vendor. Idempotent: a vendor "not found" counts as success.

        Raises:
            VendorError: Any failure other than "not found".
        """
        raise NotImplementedError

    @abstractmethod
    def health_check(self, token: CancellationToken) -> None:
        """
        Probe vendor connectivity, independent of any resource.

        Must not retry: the probe reflects current reachability and fails fast.

        Raises:
            VendorError: The vendor is unreachable or reports itself unhealthy.
        """
        raise NotImplementedError

    @staticmethod
    def config_str(config: Optional[Dict[str, Any]], key: str, default: str = "") -> str:
        """Return `config[key]` if it is a string, else `default`."""
        if not config:
            return default
        value = config.get(key)
        if isinstance(value, str):
            return value
        return default

    @staticmethod
    def config_int(config: Optional[Dict[str, Any]], key: str, default: int = 0) -> int:
        """Return `config[key]` as an int, accepting ints, floats and numeric strings."""
        if not config or key not in config:
            return default
        value = config[key]
        if isinstance(value, bool):
            return default
        if isinstance(value, (int, float)):
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                return default
        return default

    @staticmethod
    def config_float(config: Optional[Dict[str, Any]], key: str, default: float = 0.0) -> float:
        """Return `config[key]` as a float, accepting numbers and numeric strings."""
        if not config or key not in config:
            return default
        value = config[key]
        if isinstance(value, bool):
            return default
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                return default
        return default

    @staticmethod
    def config_bool(config: Optional[Dict[str, Any]], key: str) -> bool:
        """Return `config[key]` only if it is a real boolean; anything else is False."""
        if not config:
            return False
        value = config.get(key)
        return value if isinstance(value, bool) else False
