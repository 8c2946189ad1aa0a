# src/rentledger/ledger/account.py
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from rentledger.ledger.constants import MAX_ACCOUNT_ID_LEN, MIN_ACCOUNT_ID_LEN, USAGE_WIDTH
from rentledger.ledger.migrations import CURRENT_ACCOUNT_VERSION, migrate_account_record
from rentledger.util.canon import canon_json

Json = Dict[str, Any]

# Lowercase alphanumeric parts joined by single '-', '_' or '.' separators.
_ACCOUNT_ID_RE = re.compile(r"^(([a-z\d]+[-_])*[a-z\d]+\.)*([a-z\d]+[-_])*[a-z\d]+$")


def validate_account_id(
    account_id: Any,
    *,
    min_len: int = MIN_ACCOUNT_ID_LEN,
    max_len: int = MAX_ACCOUNT_ID_LEN,
) -> bool:
    if not isinstance(account_id, str):
        return False
    if len(account_id) < int(min_len) or len(account_id) > int(max_len):
        return False
    return _ACCOUNT_ID_RE.match(account_id) is not None


@dataclass
class Account:
    """One registered tenant.

    storage_balance: prepaid u128 amount held on the account's behalf
    storage_usage:   u64 byte footprint of the account record, measured at registration
    """

    account_id: str
    storage_balance: int = 0
    storage_usage: int = 0

    def to_record(self) -> Json:
        # account_id is the store key; it is not repeated in the value.
        return {
            "v": CURRENT_ACCOUNT_VERSION,
            "storage_balance": str(int(self.storage_balance)),
            # Fixed width: rewriting the measured usage must not change the record footprint.
            "storage_usage": f"{int(self.storage_usage):0{USAGE_WIDTH}d}",
        }

    def encode(self) -> str:
        return canon_json(self.to_record())

    @classmethod
    def from_record(cls, account_id: str, raw: Any) -> "Account":
        rec = migrate_account_record(raw)
        return cls(
            account_id=account_id,
            storage_balance=int(rec["storage_balance"]),
            storage_usage=int(rec["storage_usage"]),
        )


@dataclass(frozen=True)
class StorageBalance:
    total: int
    available: int

    def to_json(self) -> Json:
        return {"total": str(self.total), "available": str(self.available)}


@dataclass(frozen=True)
class StorageBalanceBounds:
    """max=None means unbounded."""

    min: int
    max: Optional[int] = None

    def to_json(self) -> Json:
        return {"min": str(self.min), "max": None if self.max is None else str(self.max)}


__all__ = ["Account", "StorageBalance", "StorageBalanceBounds", "validate_account_id"]
