# src/rentledger/api/app.py
from __future__ import annotations

from fastapi import FastAPI

from rentledger.api.errors import accounting_error_handler
from rentledger.api.routes import router
from rentledger.api.structured_logging import RequestLogMiddleware, configure_structured_logging
from rentledger.config import load_config
from rentledger.runtime.errors import AccountingError
from rentledger.runtime.executor_boot import build_executor as _build_executor


def build_executor():
    """Build a RentExecutor for the API runtime.

    This wrapper exists so tests can monkeypatch `rentledger.api.app.build_executor`
    without reaching into runtime modules.
    """
    return _build_executor(load_config())


def create_app(*, boot_runtime: bool = True) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): load config + attach executor
      - False: no executor; routes that need one answer 409 executor_not_ready
    """
    configure_structured_logging()

    cfg = load_config() if boot_runtime else None
    if cfg is not None and cfg.mode == "prod":
        app = FastAPI(title="rentledger", docs_url=None, redoc_url=None, openapi_url=None)
    else:
        app = FastAPI(title="rentledger")

    app.state.executor = build_executor() if boot_runtime else None

    app.add_middleware(RequestLogMiddleware)
    app.add_exception_handler(AccountingError, accounting_error_handler)

    app.include_router(router, prefix="/v1")
    return app
