"""Incremental pull synchronization for offline-first table clients."""

__version__ = "0.1.0"
