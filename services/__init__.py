"""
services/__init__.py

Process-local services. Currently holds the in-memory resource store.
"""
