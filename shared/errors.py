"""
Error taxonomy shared by the store, the vendor adapters, and the API layer.

Every failure the control plane can surface derives from `ControlPlaneError`. The route handlers
in `api/resources.py` translate each branch to an HTTP status. Vendor failures carry the
HTTP-style status the vendor returned, or None when the request never produced a response
(connection refused, timeout). Cancellation is its own branch of the hierarchy so callers can
tell "the caller gave up" apart from "the vendor failed".
"""

from __future__ import annotations

from typing import Optional


class ControlPlaneError(Exception):
    """Base class for all control plane errors."""


class ValidationError(ControlPlaneError):
    """Caller input is missing or malformed. Surfaced as 400 and never retried."""


class NotFoundError(ControlPlaneError):
    """The local resource id is unknown. Surfaced as 404."""


class PreconditionError(ControlPlaneError):
    """An operation was attempted out of order, e.g. an update before a successful create."""


class CancelledError(ControlPlaneError):
    """The caller's deadline expired or the caller aborted before the vendor call completed."""


class VendorError(ControlPlaneError):
    """
    A vendor call failed.

    Args:
        message (str): Human-readable description, usually including the vendor's response body.
        status_code (Optional[int]): HTTP status received from the vendor, or None for
            transport-level failures where no response was received.
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class VendorTransientError(VendorError):
    """Network failure, timeout or 5xx. Retried by the executor and surfaced only after exhaustion."""


class VendorPermanentError(VendorError):
    """A 4xx response other than not-found. Surfaced immediately without retry."""
