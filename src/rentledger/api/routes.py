# src/rentledger/api/routes.py
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from rentledger.api.schemas import CallEnvelope
from rentledger.api.structured_logging import note_call
from rentledger.runtime.context import CallContext
from rentledger.runtime.errors import AccountingStateError, AccountingValidationError
from rentledger.runtime.executor import RentExecutor

Json = Dict[str, Any]

router = APIRouter()


def _executor(request: Request) -> RentExecutor:
    ex = getattr(request.app.state, "executor", None)
    if ex is None:
        raise AccountingStateError(reason="executor_not_ready")
    return ex


@router.get("/health")
def v1_health(request: Request) -> Json:
    ex = getattr(request.app.state, "executor", None)
    return {"ok": True, "ready": ex is not None}


@router.post("/storage/call")
def v1_storage_call(env: CallEnvelope, request: Request) -> Json:
    """Run one mutating or read call on behalf of env.caller.

    The caller identity is trusted as given; authenticate upstream.
    """
    ex = _executor(request)
    note_call(request, op=env.request.get("op"), caller=env.caller)
    try:
        ctx = CallContext(caller=env.caller, attached_deposit=env.attached_deposit)
    except ValueError as e:
        raise AccountingValidationError(
            reason="invalid_attached_deposit",
            details={"attached_deposit": str(env.attached_deposit)},
        ) from e

    result = ex.call(ctx, env.request)
    return {
        "ok": True,
        "result": result,
        "transfers": [t.to_json() for t in ctx.transfers],
    }


@router.get("/storage/bounds")
def v1_storage_bounds(request: Request) -> Json:
    return {"ok": True, "bounds": _executor(request).view({"op": "storage_balance_bounds"})}


@router.get("/storage/balance/{account_id}")
def v1_storage_balance_of(account_id: str, request: Request) -> Json:
    bal = _executor(request).view({"op": "storage_balance_of", "account_id": account_id})
    return {"ok": True, "account_id": account_id, "balance": bal}
