"""Skywriter remote file store and shared reconciliation core."""

__version__ = "0.1.0"
