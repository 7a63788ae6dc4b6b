"""
Monitoring package initializer.

This package exposes Prometheus metrics and helper decorators for tracking vendor calls
in a vendor-agnostic way.
"""

from .metrics import (
    VENDOR_REQUEST_COUNT,
    VENDOR_REQUEST_LATENCY,
    VENDOR_RETRY_COUNT,
    RESOURCE_PHASE_TRANSITIONS,
    ERROR_COUNT,
    track_vendor_call,
    track_errors,
)

__all__ = [
    'VENDOR_REQUEST_COUNT',
    'VENDOR_REQUEST_LATENCY',
    'VENDOR_RETRY_COUNT',
    'RESOURCE_PHASE_TRANSITIONS',
    'ERROR_COUNT',
    'track_vendor_call',
    'track_errors',
]
