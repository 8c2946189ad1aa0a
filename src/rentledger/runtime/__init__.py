# src/rentledger/runtime/__init__.py
"""Call-time machinery: host store, usage tracking, the accounting service and its executor."""
