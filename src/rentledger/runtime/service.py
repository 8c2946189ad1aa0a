# src/rentledger/runtime/service.py
from __future__ import annotations

"""rentledger.runtime.service

Storage-rent accounting.

Every registered account prepays the storage cost of its own record. The service
meters registration with UsageTracker, bills through BalancePolicy, and pays refunds
and withdrawals out through CallContext.transfer().

Key invariants:
  - for every registered account, after any successful call:
        available == total - policy.required_deposit(account_id) >= 0
  - a failing call raises before it queues a transfer or writes the store whenever
    both orders are possible
  - mutating calls require RunningState.RUNNING; reads never do
"""

import logging
from typing import Any, Optional

from rentledger.ledger.account import Account, StorageBalance, StorageBalanceBounds, validate_account_id
from rentledger.ledger.constants import MIN_ACCOUNT_ID_LEN, ONE_UNIT, STATE_KEY
from rentledger.ledger.policy import BalancePolicy
from rentledger.ledger.state import AccountLedger, ContractState, RunningState
from rentledger.runtime.amounts import checked_add, checked_sub, parse_u128
from rentledger.runtime.context import CallContext
from rentledger.runtime.errors import (
    AccountingStateError,
    AccountingValidationError,
    AuthorizationError,
    BalanceArithmeticError,
    InvariantViolationError,
    PolicyViolationError,
)
from rentledger.runtime.store import KeyValueStore
from rentledger.runtime.tracker import UsageTracker
from rentledger.util.jsonl_log import log_event

_log = logging.getLogger("rentledger.accounting")


class AccountingService:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        policy: Optional[BalancePolicy] = None,
        min_account_id_len: int = MIN_ACCOUNT_ID_LEN,
    ) -> None:
        self.store = store
        self.policy = policy or BalancePolicy()
        self.ledger = AccountLedger(store)
        self.tracker = UsageTracker(store)
        self.min_account_id_len = int(min_account_id_len)

    # ------------------------------------------------------------------
    # Contract state / administrative gate
    # ------------------------------------------------------------------

    def is_initialized(self) -> bool:
        return self.store.get(STATE_KEY) is not None

    def init(self, ctx: CallContext, owner_id: Optional[str] = None) -> ContractState:
        """Write the initial contract state. The owner defaults to the caller."""
        if self.is_initialized():
            raise AccountingStateError(reason="already_initialized")
        st = ContractState(owner_id=owner_id or ctx.caller, running_state=RunningState.RUNNING)
        st.save(self.store)
        log_event(_log, "contract_initialized", owner_id=st.owner_id)
        return st

    def contract_state(self) -> ContractState:
        return ContractState.load(self.store)

    def owner(self) -> str:
        return self.contract_state().owner_id

    def running_state(self) -> RunningState:
        return self.contract_state().running_state

    def is_owner(self, account_id: str) -> bool:
        return account_id == self.owner()

    def assert_owner(self, ctx: CallContext) -> None:
        if not self.is_owner(ctx.caller):
            raise AuthorizationError(details={"caller": ctx.caller})

    def assert_running(self) -> None:
        if self.running_state() != RunningState.RUNNING:
            raise AccountingStateError(reason="contract_paused")

    def _set_running_state(self, ctx: CallContext, desired: RunningState) -> RunningState:
        self.assert_owner(ctx)
        st = self.contract_state()
        if st.running_state == desired:
            raise AccountingStateError(
                reason="running_state_unchanged",
                details={"running_state": desired.value},
            )
        st.running_state = desired
        st.save(self.store)
        log_event(_log, "running_state_changed", running_state=desired.value, by=ctx.caller)
        return desired

    def pause(self, ctx: CallContext) -> RunningState:
        return self._set_running_state(ctx, RunningState.PAUSED)

    def resume(self, ctx: CallContext) -> RunningState:
        return self._set_running_state(ctx, RunningState.RUNNING)

    # ------------------------------------------------------------------
    # Storage management
    # ------------------------------------------------------------------

    @staticmethod
    def _assert_one_unit(ctx: CallContext) -> None:
        if ctx.attached_deposit != ONE_UNIT:
            raise AccountingValidationError(
                reason="confirmation_required",
                details={"required": str(ONE_UNIT), "attached": str(ctx.attached_deposit)},
            )

    def _register(self, account_id: str, storage_balance: int) -> StorageBalance:
        account = Account(account_id=account_id, storage_balance=storage_balance)
        view = self.policy.storage_balance(account)

        self.tracker.track()
        self.ledger.insert(account_id, account)
        account.storage_usage = self.tracker.finish(0)

        # The usage field is fixed width, so recording it keeps the measured footprint.
        settled = self.store.storage_usage()
        self.ledger.insert(account_id, account)
        if self.store.storage_usage() != settled:
            raise InvariantViolationError(
                reason="storage_usage_drift",
                details={"account_id": account_id, "storage_usage": account.storage_usage},
            )
        return view

    def storage_deposit(
        self,
        ctx: CallContext,
        account_id: Optional[str] = None,
        registration_only: Optional[bool] = None,
    ) -> StorageBalance:
        """Register an account or top up its balance with the attached deposit.

        Branch order matters; an existing account is matched before an absent one
        and registration_only before a plain deposit:

          1. registered, registration_only:  refund the whole deposit
          2. registered:                     balance += deposit
          3. absent, registration_only:      register with the minimum, refund the rest
          4. absent:                         register with the whole deposit
        """
        self.assert_running()

        deposit = ctx.attached_deposit
        if deposit == 0:
            raise AccountingValidationError(reason="no_deposit")

        if account_id is not None and not validate_account_id(
            account_id,
            min_len=self.min_account_id_len,
            max_len=self.policy.max_account_id_len,
        ):
            raise AccountingValidationError(reason="invalid_account_id", details={"account_id": account_id})

        target = ctx.caller if account_id is None else account_id
        registration_only = bool(registration_only)
        account = self.ledger.get(target)

        if account is not None and registration_only:
            view = self.policy.storage_balance(account)
            ctx.transfer(ctx.caller, deposit)
            branch = "already_registered_refund"

        elif account is not None:
            new_balance = checked_add(account.storage_balance, deposit)
            if new_balance is None:
                raise BalanceArithmeticError(
                    reason="storage_balance_overflow",
                    details={"account_id": target, "deposit": str(deposit)},
                )
            account.storage_balance = new_balance
            view = self.policy.storage_balance(account)
            self.ledger.save(account)
            branch = "top_up"

        elif registration_only:
            min_balance = self.policy.required_deposit(target)
            refund = checked_sub(deposit, min_balance)
            if refund is None:
                raise AccountingValidationError(
                    reason="insufficient_deposit",
                    details={"required": str(min_balance), "attached": str(deposit)},
                )
            view = self._register(target, min_balance)
            if refund > 0:
                ctx.transfer(ctx.caller, refund)
            branch = "register_minimum"

        else:
            view = self._register(target, deposit)
            branch = "register"

        log_event(
            _log,
            "storage_deposit",
            account_id=target,
            caller=ctx.caller,
            branch=branch,
            deposit=str(deposit),
            total=str(view.total),
        )
        return view

    def storage_withdraw(self, ctx: CallContext, amount: Optional[Any] = None) -> StorageBalance:
        """Pay out part of the caller's balance; all of the available balance when amount is None.

        An explicit amount is checked against the total balance only. If it reaches
        into the required minimum, computing the resulting view fails with
        InvariantViolationError and nothing is written or paid.
        """
        self._assert_one_unit(ctx)
        self.assert_running()

        account = self.ledger.require(ctx.caller)

        if amount is None:
            requested = self.policy.available_balance(account)
        else:
            try:
                requested = parse_u128(amount)
            except ValueError as e:
                raise AccountingValidationError(reason="invalid_amount", details={"amount": str(amount)}) from e

        new_balance = checked_sub(account.storage_balance, requested)
        if new_balance is None:
            raise BalanceArithmeticError(
                reason="insufficient_balance",
                details={"total": str(account.storage_balance), "requested": str(requested)},
            )
        account.storage_balance = new_balance
        view = self.policy.storage_balance(account)

        self.ledger.save(account)
        ctx.transfer(ctx.caller, requested)

        log_event(_log, "storage_withdraw", account_id=ctx.caller, amount=str(requested), total=str(view.total))
        return view

    def storage_unregister(self, ctx: CallContext, force: Optional[bool] = None) -> bool:
        """Remove the caller's account and pay out its whole balance.

        Returns False when the caller is not registered. A positive balance needs
        force=True; without it the call fails and the account is left as it was.
        """
        self._assert_one_unit(ctx)
        self.assert_running()

        account = self.ledger.get(ctx.caller)
        if account is None:
            return False

        if account.storage_balance > 0 and not bool(force):
            raise PolicyViolationError(
                reason="positive_balance_requires_force",
                details={"account_id": ctx.caller, "total": str(account.storage_balance)},
            )

        self.ledger.remove(ctx.caller)
        ctx.transfer(ctx.caller, account.storage_balance)

        log_event(
            _log,
            "storage_unregister",
            account_id=ctx.caller,
            forced=bool(force),
            paid_out=str(account.storage_balance),
        )
        return True

    def storage_balance_bounds(self) -> StorageBalanceBounds:
        """min covers an account with the longest permitted identifier; max is unbounded."""
        return StorageBalanceBounds(min=self.policy.required_minimum(None), max=None)

    def storage_balance_of(self, account_id: str) -> Optional[StorageBalance]:
        account = self.ledger.get(account_id)
        if account is None:
            return None
        return self.policy.storage_balance(account)


__all__ = ["AccountingService"]
