# src/rentledger/ledger/state.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from rentledger.ledger.account import Account
from rentledger.ledger.constants import ACCOUNT_KEY_PREFIX, STATE_KEY
from rentledger.ledger.migrations import CURRENT_STATE_VERSION, migrate_contract_state
from rentledger.runtime.errors import AccountNotFoundError, AccountingStateError
from rentledger.runtime.store import KeyValueStore
from rentledger.util.canon import canon_json


def account_key(account_id: str) -> str:
    return f"{ACCOUNT_KEY_PREFIX}{account_id}"


class AccountLedger:
    """Account records keyed by identifier, persisted in the host store.

    Lookups return decoded copies; a mutation is only visible after save().
    "Not found" is an ordinary outcome: get()/remove() return None, and require()
    raises AccountNotFoundError for callers that need the account.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def contains(self, account_id: str) -> bool:
        return self._store.get(account_key(account_id)) is not None

    def get(self, account_id: str) -> Optional[Account]:
        raw = self._store.get(account_key(account_id))
        if raw is None:
            return None
        return Account.from_record(account_id, raw)

    def require(self, account_id: str) -> Account:
        acct = self.get(account_id)
        if acct is None:
            raise AccountNotFoundError(details={"account_id": account_id})
        return acct

    def insert(self, account_id: str, account: Account) -> None:
        self._store.set(account_key(account_id), account.encode())

    def save(self, account: Account) -> None:
        if not self.contains(account.account_id):
            raise AccountNotFoundError(details={"account_id": account.account_id})
        self._store.set(account_key(account.account_id), account.encode())

    def remove(self, account_id: str) -> Optional[Account]:
        raw = self._store.remove(account_key(account_id))
        if raw is None:
            return None
        return Account.from_record(account_id, raw)


class RunningState(str, Enum):
    RUNNING = "running"
    PAUSED = "paused"


@dataclass
class ContractState:
    owner_id: str
    running_state: RunningState = RunningState.RUNNING

    def to_record(self) -> dict:
        return {
            "state_version": CURRENT_STATE_VERSION,
            "owner_id": self.owner_id,
            "running_state": self.running_state.value,
        }

    @classmethod
    def load(cls, store: KeyValueStore) -> "ContractState":
        raw = store.get(STATE_KEY)
        if raw is None:
            raise AccountingStateError(reason="not_initialized")
        rec = migrate_contract_state(raw)
        return cls(owner_id=str(rec["owner_id"]), running_state=RunningState(rec["running_state"]))

    def save(self, store: KeyValueStore) -> None:
        store.set(STATE_KEY, canon_json(self.to_record()))


__all__ = ["AccountLedger", "ContractState", "RunningState", "account_key"]
