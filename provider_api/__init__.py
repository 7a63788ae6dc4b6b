"""
provider_api package: vendor-agnostic hardware provider integrations.

This package contains the abstraction and concrete implementations that let the control plane
provision resources on different vendors through a consistent interface. The design follows the
adapter pattern: the lifecycle reconciler speaks to a small contract while vendor-specific request
schemas, authentication and status vocabularies are encapsulated behind that boundary.

Included modules:
- base: the `VendorProvider` abstract base class (create, read, update, delete, health_check).
- sony_provider: the Sony camera adapter, built on the shared resilient executor.
- registry: builds the static vendorType -> provider mapping at startup.

Public exports:
- VendorProvider: the abstract interface for vendor adapters
- SonyProvider: the Sony implementation
- build_providers: startup factory for the provider mapping
"""

from .base import VendorProvider
from .sony_provider import SonyProvider
from .registry import build_providers

__all__ = [
    "VendorProvider",
    "SonyProvider",
    "build_providers",
]
