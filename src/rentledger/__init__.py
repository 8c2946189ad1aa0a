# src/rentledger/__init__.py
"""rentledger: storage-rent accounting for a multi-tenant key-value store."""

__version__ = "0.1.0"
