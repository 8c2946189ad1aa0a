from __future__ import annotations

import json

import pytest

from rentledger.ledger.account import Account, validate_account_id
from rentledger.ledger.state import AccountLedger, ContractState, RunningState, account_key
from rentledger.runtime.errors import AccountNotFoundError, AccountingStateError
from rentledger.runtime.store import MemoryKVStore


def test_missing_account_is_none_not_error() -> None:
    ledger = AccountLedger(MemoryKVStore())
    assert ledger.get("alice") is None
    assert ledger.remove("alice") is None
    assert ledger.contains("alice") is False


def test_require_missing_raises_not_found() -> None:
    ledger = AccountLedger(MemoryKVStore())
    with pytest.raises(AccountNotFoundError) as e:
        ledger.require("alice")
    assert e.value.code == "not_found"
    assert e.value.details == {"account_id": "alice"}


def test_insert_get_save_remove() -> None:
    store = MemoryKVStore()
    ledger = AccountLedger(store)

    ledger.insert("alice", Account(account_id="alice", storage_balance=10, storage_usage=99))
    acct = ledger.get("alice")
    assert acct == Account(account_id="alice", storage_balance=10, storage_usage=99)

    # lookups are copies until saved
    acct.storage_balance = 25
    assert ledger.get("alice").storage_balance == 10
    ledger.save(acct)
    assert ledger.get("alice").storage_balance == 25

    removed = ledger.remove("alice")
    assert removed is not None and removed.storage_balance == 25
    assert ledger.get("alice") is None
    assert len(store) == 0


def test_save_unregistered_raises_not_found() -> None:
    ledger = AccountLedger(MemoryKVStore())
    with pytest.raises(AccountNotFoundError):
        ledger.save(Account(account_id="bob", storage_balance=1))


def test_record_encoding_is_versioned_and_keyed_by_id() -> None:
    store = MemoryKVStore()
    AccountLedger(store).insert("alice", Account(account_id="alice", storage_balance=2**128 - 1))

    raw = store.get(account_key("alice"))
    assert raw is not None
    rec = json.loads(raw)
    assert rec == {"v": 2, "storage_balance": str(2**128 - 1), "storage_usage": "0" * 20}


def test_legacy_record_is_upgraded_on_read() -> None:
    store = MemoryKVStore()
    store.set(account_key("carol"), json.dumps({"balance": 500, "usage": 120}))
    acct = AccountLedger(store).get("carol")
    assert acct == Account(account_id="carol", storage_balance=500, storage_usage=120)


def test_contract_state_roundtrip_and_uninitialized() -> None:
    store = MemoryKVStore()
    with pytest.raises(AccountingStateError) as e:
        ContractState.load(store)
    assert e.value.reason == "not_initialized"

    ContractState(owner_id="owner", running_state=RunningState.PAUSED).save(store)
    st = ContractState.load(store)
    assert st.owner_id == "owner"
    assert st.running_state is RunningState.PAUSED


@pytest.mark.parametrize(
    "account_id",
    ["alice", "bob.near", "a1", "user_1.test.near", "sub-account.x"],
)
def test_valid_account_ids(account_id: str) -> None:
    assert validate_account_id(account_id) is True


@pytest.mark.parametrize(
    "account_id",
    ["a", "", "Alice", "bad..dots", ".lead", "trail-", "has space", "a" * 65, None, 42],
)
def test_invalid_account_ids(account_id) -> None:
    assert validate_account_id(account_id) is False
