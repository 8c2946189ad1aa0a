# src/rentledger/ledger/constants.py
from __future__ import annotations

"""Currency and storage constants.

Amounts are integers in the smallest indivisible currency unit (1 COIN = 1e24 units).
Byte counts are integers.
"""

# Monetary precision (1 COIN = 1e24 units)
COIN_DECIMALS: int = 24
COIN: int = 10**COIN_DECIMALS

# Smallest indivisible unit. Attached as the explicit-intent confirmation token
# for withdraw/unregister.
ONE_UNIT: int = 1

# Default storage price: 1e19 units per byte (100 KB per COIN)
DEFAULT_PRICE_PER_BYTE: int = 10**19

# Protocol account id limits
MIN_ACCOUNT_ID_LEN: int = 2
MAX_ACCOUNT_ID_LEN: int = 64

# Fixed per-entry cost charged by the host store on top of key and value bytes
DATA_RECORD_OVERHEAD: int = 40

# Store key layout
ACCOUNT_KEY_PREFIX: str = "a:"
STATE_KEY: str = "STATE"

# storage_usage is stored as a zero-padded decimal string of u64 width
USAGE_WIDTH: int = 20

# Upper bound of an account record footprint minus the identifier bytes:
#   key prefix (2)
#   + widest v2 record value (106): u128::MAX balance, padded u64 usage
#   + DATA_RECORD_OVERHEAD (40)
ACCOUNT_STORAGE_OVERHEAD: int = 148
