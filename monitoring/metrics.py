"""
Core metrics and monitoring decorators for the resource control plane.

This module defines Prometheus metrics and decorators for tracking:
- Vendor call counts, outcomes and latency per vendor and operation
- Executor retries
- Lifecycle phase observations
- Errors per component
"""

import time
import functools
import logging
from typing import Callable
from prometheus_client import Counter, Histogram

# Configure logger
logger = logging.getLogger(__name__)

# Vendor call metrics
VENDOR_REQUEST_COUNT = Counter(
    'vendor_requests_total',
    'Total number of provider operations',
    ['vendor', 'operation', 'outcome']  # outcome: 'success' or 'error'
)

VENDOR_REQUEST_LATENCY = Histogram(
    'vendor_request_duration_seconds',
    'Provider operation duration in seconds, including retries',
    ['vendor', 'operation'],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, float("inf")]
)

# Executor metrics
VENDOR_RETRY_COUNT = Counter(
    'vendor_request_retries_total',
    'Number of retried outbound vendor requests',
    ['method']
)

# Lifecycle metrics
RESOURCE_PHASE_TRANSITIONS = Counter(
    'resource_phase_observations_total',
    'Number of times a resource was committed with a given phase',
    ['phase']
)

# Error metrics
ERROR_COUNT = Counter(
    'error_total',
    'Total number of errors',
    ['type', 'location']  # type: e.g., 'vendor', 'store'; location: specific component
)


def track_vendor_call(operation: str) -> Callable:
    """
    A decorator factory that records count, outcome and latency of a provider operation.

    The vendor label is read from the `vendor` attribute of the provider instance (first
    positional argument), so the decorator is meant for `VendorProvider` methods.

    Args:
        operation (str): Operation label, e.g. 'create', 'read', 'health_check'

    Returns:
        Callable: The decorated function

    Example:
        @track_vendor_call('create')
        def create(self, resource, token):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            vendor = getattr(self, 'vendor', 'unknown')
            start_time = time.monotonic()
            outcome = 'error'
            try:
                result = func(self, *args, **kwargs)
                outcome = 'success'
                return result
            finally:
                duration = time.monotonic() - start_time
                VENDOR_REQUEST_LATENCY.labels(vendor=vendor, operation=operation).observe(duration)
                VENDOR_REQUEST_COUNT.labels(vendor=vendor, operation=operation, outcome=outcome).inc()
                logger.debug(
                    f"Provider {vendor}.{operation} finished in {duration:.2f} seconds ({outcome})",
                    extra={'extra_fields': {'duration': duration, 'operation': operation}}
                )
        return wrapper
    return decorator


def track_errors(error_type: str, location: str) -> Callable:
    """
    A decorator factory that tracks errors occurring in a function.

    Args:
        error_type (str): Type of error (e.g., 'vendor', 'store')
        location (str): Where the error occurred

    Returns:
        Callable: The decorated function
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                ERROR_COUNT.labels(
                    type=error_type,
                    location=location
                ).inc()
                logger.error(
                    f"Error in {location} ({error_type}): {str(e)}",
                    extra={'extra_fields': {'error_type': error_type, 'location': location}}
                )
                raise  # Re-raise the exception after tracking
        return wrapper
    return decorator
