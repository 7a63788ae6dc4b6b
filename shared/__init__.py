"""
shared/__init__.py

Shared building blocks used across the store, the vendor adapters and the API layer.

This package contains:
- models: resource records, lifecycle phases and API request payloads
- errors: the control plane error taxonomy
- cancellation: deadline/abort tokens threaded through vendor calls
- vendor_client: the resilient executor used by every vendor adapter
"""
