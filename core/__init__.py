"""
core/__init__.py

Core lifecycle coordination.

This package contains the reconciler that drives a resource through its lifecycle:
it selects the provider for a record, calls the vendor outside any store lock, and
commits the observed status back into the resource store.
"""
