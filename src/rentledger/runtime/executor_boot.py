# src/rentledger/runtime/executor_boot.py
from __future__ import annotations

from typing import Optional

from rentledger.config import RentConfig, load_config
from rentledger.runtime.context import PaymentSink
from rentledger.runtime.executor import RentExecutor
from rentledger.runtime.service import AccountingService
from rentledger.runtime.sqlite_store import SqliteKVStore
from rentledger.runtime.store import KeyValueStore, MemoryKVStore


def build_store(cfg: RentConfig) -> KeyValueStore:
    if not str(cfg.db_path or "").strip():
        return MemoryKVStore()
    return SqliteKVStore(path=cfg.db_path)


def build_executor(cfg: Optional[RentConfig] = None, *, payments: Optional[PaymentSink] = None) -> RentExecutor:
    """
    Build a RentExecutor from an explicit config or, if omitted, from load_config().

    The contract state is initialized on first boot with cfg.owner_id as owner.
    """
    c = cfg or load_config()
    service = AccountingService(
        build_store(c),
        policy=c.balance_policy(),
        min_account_id_len=c.min_account_id_len,
    )
    ex = RentExecutor(service, payments=payments)
    ex.init(owner_id=c.owner_id)
    return ex
