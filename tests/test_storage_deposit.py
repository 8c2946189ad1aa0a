from __future__ import annotations

import pytest

from rentledger.ledger.account import Account
from rentledger.ledger.constants import COIN
from rentledger.ledger.state import account_key
from rentledger.runtime.amounts import U128_MAX
from rentledger.runtime.context import CallContext, Transfer
from rentledger.runtime.errors import (
    AccountingStateError,
    AccountingValidationError,
    BalanceArithmeticError,
)
from rentledger.runtime.service import AccountingService
from rentledger.runtime.store import MemoryKVStore, entry_cost


def _service() -> AccountingService:
    svc = AccountingService(MemoryKVStore())
    svc.init(CallContext(caller="owner"))
    return svc


def _ctx(caller: str, deposit: int) -> CallContext:
    return CallContext(caller=caller, attached_deposit=deposit)


def test_zero_deposit_is_rejected() -> None:
    svc = _service()
    with pytest.raises(AccountingValidationError) as e:
        svc.storage_deposit(_ctx("alice", 0))
    assert e.value.reason == "no_deposit"
    assert svc.storage_balance_of("alice") is None


def test_register_with_full_deposit_defaults_to_caller() -> None:
    svc = _service()
    ctx = _ctx("alice", COIN)

    view = svc.storage_deposit(ctx)

    assert view.total == COIN
    assert view.available == COIN - svc.policy.required_deposit("alice")
    assert ctx.transfers == []
    assert svc.ledger.get("alice").storage_balance == COIN


def test_register_records_measured_storage_usage() -> None:
    svc = _service()
    before = svc.store.storage_usage()

    svc.storage_deposit(_ctx("alice", COIN), registration_only=False)

    acct = svc.ledger.get("alice")
    assert acct.storage_usage == svc.store.storage_usage() - before
    assert acct.storage_usage == entry_cost(account_key("alice"), svc.store.get(account_key("alice")))
    assert svc.tracker.is_tracking is False


def test_widest_record_footprint_equals_minimum_bytes() -> None:
    svc = _service()
    account_id = "n.aabbccddeeffgghhiijjkkllmmnnooppqqrrssttuuvvwwxxyyzz0123456789"
    before = svc.store.storage_usage()

    svc.storage_deposit(_ctx("payer", U128_MAX), account_id=account_id)

    usage = svc.ledger.get(account_id).storage_usage
    assert usage == svc.store.storage_usage() - before
    assert usage == svc.policy.account_storage_overhead + len(account_id)


def test_registration_footprint_is_covered_by_minimum() -> None:
    # Longest permitted identifier: the policy must still cover the record.
    svc = _service()
    account_id = "n.aabbccddeeffgghhiijjkkllmmnnooppqqrrssttuuvvwwxxyyzz0123456789"
    assert len(account_id) == 64

    svc.storage_deposit(_ctx("payer", COIN), account_id=account_id)

    acct = svc.ledger.get(account_id)
    assert 0 < acct.storage_usage <= svc.policy.account_storage_overhead + len(account_id)


def test_register_other_account_explicitly() -> None:
    svc = _service()
    ctx = _ctx("payer", COIN)

    svc.storage_deposit(ctx, account_id="bob")

    assert svc.storage_balance_of("bob").total == COIN
    assert svc.storage_balance_of("payer") is None


def test_invalid_explicit_account_id_is_rejected() -> None:
    svc = _service()
    with pytest.raises(AccountingValidationError) as e:
        svc.storage_deposit(_ctx("payer", COIN), account_id="Not Valid")
    assert e.value.reason == "invalid_account_id"


def test_registration_only_keeps_minimum_and_refunds_rest() -> None:
    svc = _service()
    ctx = _ctx("alice", COIN)
    min_balance = svc.policy.required_deposit("alice")

    view = svc.storage_deposit(ctx, registration_only=True)

    assert view.total == min_balance
    assert view.available == 0
    assert ctx.transfers == [Transfer(receiver_id="alice", amount=COIN - min_balance)]


def test_registration_only_exact_minimum_has_no_refund() -> None:
    svc = _service()
    min_balance = svc.policy.required_deposit("alice")
    ctx = _ctx("alice", min_balance)

    view = svc.storage_deposit(ctx, registration_only=True)

    assert view.total == min_balance
    assert ctx.transfers == []


def test_registration_only_refund_goes_to_caller_not_target() -> None:
    svc = _service()
    ctx = _ctx("payer", COIN)

    svc.storage_deposit(ctx, account_id="bob", registration_only=True)

    assert [t.receiver_id for t in ctx.transfers] == ["payer"]


def test_registration_only_below_minimum_is_rejected() -> None:
    svc = _service()
    min_balance = svc.policy.required_deposit("alice")

    with pytest.raises(AccountingValidationError) as e:
        svc.storage_deposit(_ctx("alice", min_balance - 1), registration_only=True)

    assert e.value.reason == "insufficient_deposit"
    assert svc.storage_balance_of("alice") is None


def test_registration_only_on_registered_account_refunds_everything() -> None:
    svc = _service()
    svc.storage_deposit(_ctx("alice", COIN))

    ctx = _ctx("alice", 5 * COIN)
    view = svc.storage_deposit(ctx, registration_only=True)

    assert view.total == COIN
    assert ctx.transfers == [Transfer(receiver_id="alice", amount=5 * COIN)]
    assert svc.ledger.get("alice").storage_balance == COIN


def test_deposit_on_registered_account_tops_up() -> None:
    svc = _service()
    svc.storage_deposit(_ctx("alice", COIN))
    usage_before = svc.ledger.get("alice").storage_usage

    ctx = _ctx("alice", 2 * COIN)
    view = svc.storage_deposit(ctx, registration_only=False)

    assert view.total == 3 * COIN
    assert ctx.transfers == []
    # usage is measured once, at registration
    assert svc.ledger.get("alice").storage_usage == usage_before


def test_deposit_overflow_fails_and_leaves_account_unchanged() -> None:
    svc = _service()
    svc.ledger.insert("alice", Account(account_id="alice", storage_balance=U128_MAX))

    with pytest.raises(BalanceArithmeticError) as e:
        svc.storage_deposit(_ctx("alice", COIN))

    assert e.value.reason == "storage_balance_overflow"
    assert svc.ledger.get("alice").storage_balance == U128_MAX


def test_deposit_when_paused_is_rejected() -> None:
    svc = _service()
    svc.pause(CallContext(caller="owner"))

    with pytest.raises(AccountingStateError) as e:
        svc.storage_deposit(_ctx("alice", COIN))
    assert e.value.reason == "contract_paused"
