from __future__ import annotations

from typing import Any, Dict

from fastapi import Request
from fastapi.responses import JSONResponse

from rentledger.api.structured_logging import note_error
from rentledger.runtime.errors import AccountingError

# AccountingError.code -> HTTP status
_STATUS_BY_CODE: Dict[str, int] = {
    "invalid_request": 400,
    "not_found": 404,
    "invalid_state": 409,
    "arithmetic": 422,
    "policy_violation": 422,
    "forbidden": 403,
    "internal": 500,
}


def status_for(err: AccountingError) -> int:
    return int(_STATUS_BY_CODE.get(err.code, 400))


def error_body(err: AccountingError) -> Dict[str, Any]:
    return {
        "ok": False,
        "error": {"code": err.code, "reason": err.reason, "details": err.details or {}},
    }


async def accounting_error_handler(request: Request, exc: AccountingError) -> JSONResponse:
    note_error(request, code=exc.code, reason=exc.reason)
    return JSONResponse(status_code=status_for(exc), content=error_body(exc))
