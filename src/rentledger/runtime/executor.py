# src/rentledger/runtime/executor.py
from __future__ import annotations

"""RentExecutor: one call, all or nothing.

Per call:
  1. the usage tracker must be idle (a leftover measurement is a bug; fail fast)
  2. the host store opens a transaction
  3. the typed request is dispatched to AccountingService
  4. success: the store commits, then queued transfers are released to the PaymentSink
     failure: the store rolls back, queued transfers are dropped, the error propagates

Transfers are released only after the commit, so a rejected call can never pay out.
"""

import logging
from typing import Any, Dict, Optional

from rentledger.ledger.account import StorageBalance
from rentledger.runtime.context import CallContext, InMemoryPayments, PaymentSink
from rentledger.runtime.errors import AccountingError, AccountingValidationError
from rentledger.runtime.requests import (
    CallRequest,
    PauseRequest,
    READ_ONLY_REQUESTS,
    ResumeRequest,
    StorageBalanceBoundsRequest,
    StorageBalanceOfRequest,
    StorageDepositRequest,
    StorageUnregisterRequest,
    StorageWithdrawRequest,
    parse_request,
)
from rentledger.runtime.service import AccountingService
from rentledger.util.jsonl_log import log_event

Json = Dict[str, Any]

_log = logging.getLogger("rentledger.executor")


def _balance_json(v: Optional[StorageBalance]) -> Optional[Json]:
    return None if v is None else v.to_json()


def dispatch(service: AccountingService, ctx: CallContext, req: CallRequest) -> Any:
    """Route a typed request to the service. Returns a JSON-ready value."""
    if isinstance(req, StorageDepositRequest):
        return service.storage_deposit(ctx, req.account_id, req.registration_only).to_json()

    if isinstance(req, StorageWithdrawRequest):
        return service.storage_withdraw(ctx, req.amount).to_json()

    if isinstance(req, StorageUnregisterRequest):
        return service.storage_unregister(ctx, req.force)

    if isinstance(req, StorageBalanceBoundsRequest):
        return service.storage_balance_bounds().to_json()

    if isinstance(req, StorageBalanceOfRequest):
        return _balance_json(service.storage_balance_of(req.account_id))

    if isinstance(req, PauseRequest):
        return service.pause(ctx).value

    if isinstance(req, ResumeRequest):
        return service.resume(ctx).value

    raise TypeError(f"unsupported request type: {type(req).__name__}")


class RentExecutor:
    def __init__(self, service: AccountingService, *, payments: Optional[PaymentSink] = None) -> None:
        self.service = service
        self.payments: PaymentSink = payments if payments is not None else InMemoryPayments()

    @property
    def store(self):
        return self.service.store

    def init(self, owner_id: str) -> None:
        """Write the initial contract state unless it already exists."""
        if self.service.is_initialized():
            return
        with self.store.transaction():
            self.service.init(CallContext(caller=owner_id), owner_id=owner_id)

    def call(self, ctx: CallContext, request: Any) -> Any:
        req = parse_request(request)

        # A measurement left open by an earlier call is an internal bug, not something to reset.
        self.service.tracker.assert_idle()

        try:
            with self.store.transaction():
                result = dispatch(self.service, ctx, req)
        except AccountingError as e:
            self.service.tracker.reset()
            ctx.transfers.clear()
            log_event(
                _log,
                "call_rejected",
                op=req.op,
                caller=ctx.caller,
                code=e.code,
                reason=e.reason,
            )
            raise
        except Exception as e:
            self.service.tracker.reset()
            ctx.transfers.clear()
            log_event(_log, "call_failed", op=req.op, caller=ctx.caller, error=repr(e))
            raise

        for t in ctx.transfers:
            self.payments.transfer(t.receiver_id, t.amount)
        return result

    def view(self, request: Any) -> Any:
        """Run a read-only request without a caller or a store transaction."""
        req = parse_request(request)
        if not isinstance(req, READ_ONLY_REQUESTS):
            raise AccountingValidationError(reason="not_read_only", details={"op": req.op})
        return dispatch(self.service, CallContext(caller=""), req)


__all__ = ["RentExecutor", "dispatch"]
