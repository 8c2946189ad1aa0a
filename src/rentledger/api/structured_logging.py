from __future__ import annotations

import logging
import os
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from rentledger.util.jsonl_log import log_event

_OFF = {"0", "false", "no", "n", "off"}


def configure_structured_logging() -> None:
    """Send JSONL events to stdout at RENTLEDGER_LOG_LEVEL (default INFO). Idempotent."""
    level_name = (os.environ.get("RENTLEDGER_LOG_LEVEL") or "INFO").strip().upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    if getattr(root, "_rentledger_configured", False):  # type: ignore[attr-defined]
        root.setLevel(level)
        return

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))

    root.handlers = [handler]
    root.setLevel(level)
    setattr(root, "_rentledger_configured", True)  # type: ignore[attr-defined]


def note_call(request: Request, *, op: object, caller: str) -> None:
    """Attach the decoded call to the request so the access log can name it."""
    request.state.call_op = str(op) if op is not None else None
    request.state.caller = caller


def note_error(request: Request, *, code: str, reason: str) -> None:
    request.state.error_code = code
    request.state.error_reason = reason


class RequestLogMiddleware(BaseHTTPMiddleware):
    """One `http_request` event per request: status, latency, and for storage calls the op,
    caller and accounting error reason. RENTLEDGER_LOG_REQUESTS=0 disables it.
    """

    def __init__(self, app) -> None:
        super().__init__(app)
        raw = (os.environ.get("RENTLEDGER_LOG_REQUESTS") or "1").strip().lower()
        self._enabled = raw not in _OFF
        self._logger = logging.getLogger("rentledger.http")

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id

        if not self._enabled:
            response = await call_next(request)
            response.headers.setdefault("x-request-id", request_id)
            return response

        started = time.monotonic()
        status = 500
        try:
            response = await call_next(request)
            status = int(response.status_code)
            response.headers.setdefault("x-request-id", request_id)
            return response
        finally:
            state = request.state
            log_event(
                self._logger,
                "http_request",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                status=status,
                duration_ms=int((time.monotonic() - started) * 1000),
                op=getattr(state, "call_op", None),
                caller=getattr(state, "caller", None),
                error_code=getattr(state, "error_code", None),
                error_reason=getattr(state, "error_reason", None),
            )
