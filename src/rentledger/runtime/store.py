# src/rentledger/runtime/store.py
from __future__ import annotations

"""Host key-value store contract.

The accounting core never predicts record sizes; it reads the store's running
byte-usage counter before and after a write (see runtime.tracker). Every
implementation must therefore charge bytes the same way:

    entry cost = len(key) + len(value) (UTF-8 bytes) + DATA_RECORD_OVERHEAD

and expose the sum over all live entries through storage_usage().
"""

from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Protocol, Tuple

from rentledger.ledger.constants import DATA_RECORD_OVERHEAD
from rentledger.runtime.errors import AccountingStateError


def entry_cost(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8")) + DATA_RECORD_OVERHEAD


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> Optional[str]: ...

    def storage_usage(self) -> int: ...

    def transaction(self): ...


class MemoryKVStore:
    """Dict-backed host store.

    transaction() snapshots the entries and the usage counter; an exception inside
    the block restores both, which is the all-or-nothing call semantics the
    accounting core relies on.
    """

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}
        self._usage: int = 0
        self._snapshot: Optional[Tuple[Dict[str, str], int]] = None

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        prev = self._data.get(key)
        if prev is not None:
            self._usage -= entry_cost(key, prev)
        self._data[key] = value
        self._usage += entry_cost(key, value)

    def remove(self, key: str) -> Optional[str]:
        prev = self._data.pop(key, None)
        if prev is not None:
            self._usage -= entry_cost(key, prev)
        return prev

    def storage_usage(self) -> int:
        return self._usage

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    @contextmanager
    def transaction(self) -> Iterator["MemoryKVStore"]:
        if self._snapshot is not None:
            raise AccountingStateError(reason="transaction_already_open")
        self._snapshot = (dict(self._data), self._usage)
        try:
            yield self
        except BaseException:
            self._data, self._usage = self._snapshot
            raise
        finally:
            self._snapshot = None


__all__ = ["KeyValueStore", "MemoryKVStore", "entry_cost"]
