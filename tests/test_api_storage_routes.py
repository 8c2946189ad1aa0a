from __future__ import annotations

import json
import logging

import pytest
from fastapi.testclient import TestClient

from rentledger.api.app import create_app
from rentledger.ledger.constants import COIN, ONE_UNIT


@pytest.fixture()
def client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    monkeypatch.delenv("RENTLEDGER_CONFIG_PATH", raising=False)
    monkeypatch.setenv("RENTLEDGER_MODE", "dev")
    monkeypatch.setenv("RENTLEDGER_OWNER_ID", "owner")
    monkeypatch.setenv("RENTLEDGER_DB_PATH", "")
    return TestClient(create_app())


def _call(c: TestClient, caller: str, deposit: int, request: dict):
    return c.post(
        "/v1/storage/call",
        json={"caller": caller, "attached_deposit": str(deposit), "request": request},
    )


def test_health_reports_ready(client: TestClient) -> None:
    r = client.get("/v1/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True, "ready": True}
    assert r.headers.get("x-request-id")


def test_deposit_then_balance_and_bounds(client: TestClient) -> None:
    r = _call(client, "alice", COIN, {"op": "storage_deposit", "registration_only": True})
    assert r.status_code == 200
    j = r.json()
    assert j["ok"] is True
    minimum = int(j["result"]["total"])
    assert j["result"]["available"] == "0"
    assert j["transfers"] == [{"receiver_id": "alice", "amount": str(COIN - minimum)}]

    r = client.get("/v1/storage/balance/alice")
    assert r.status_code == 200
    assert r.json()["balance"] == {"total": str(minimum), "available": "0"}

    r = client.get("/v1/storage/bounds")
    assert r.status_code == 200
    assert int(r.json()["bounds"]["min"]) >= minimum
    assert r.json()["bounds"]["max"] is None


def test_unknown_account_balance_is_null(client: TestClient) -> None:
    r = client.get("/v1/storage/balance/nobody")
    assert r.status_code == 200
    assert r.json()["balance"] is None


def test_errors_map_to_status_codes(client: TestClient) -> None:
    r = _call(client, "alice", 0, {"op": "storage_deposit"})
    assert r.status_code == 400
    assert r.json()["error"]["reason"] == "no_deposit"

    r = _call(client, "alice", ONE_UNIT, {"op": "storage_withdraw"})
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "not_found"

    _call(client, "alice", COIN, {"op": "storage_deposit"})
    r = _call(client, "alice", ONE_UNIT, {"op": "storage_unregister", "force": False})
    assert r.status_code == 422
    assert r.json()["error"]["reason"] == "positive_balance_requires_force"

    r = _call(client, "mallory", 0, {"op": "pause"})
    assert r.status_code == 403

    r = _call(client, "owner", 0, {"op": "pause"})
    assert r.status_code == 200
    r = _call(client, "alice", COIN, {"op": "storage_deposit"})
    assert r.status_code == 409
    assert r.json()["error"]["reason"] == "contract_paused"


def test_bad_attached_deposit_and_bad_request(client: TestClient) -> None:
    r = client.post(
        "/v1/storage/call",
        json={"caller": "alice", "attached_deposit": "-5", "request": {"op": "storage_deposit"}},
    )
    assert r.status_code == 400
    assert r.json()["error"]["reason"] == "invalid_attached_deposit"

    r = _call(client, "alice", COIN, {"op": "storage_steal"})
    assert r.status_code == 400
    assert r.json()["error"]["reason"] == "invalid_request"


def test_without_runtime_routes_answer_409() -> None:
    c = TestClient(create_app(boot_runtime=False))
    assert c.get("/v1/health").json() == {"ok": True, "ready": False}
    r = c.get("/v1/storage/bounds")
    assert r.status_code == 409
    assert r.json()["error"]["reason"] == "executor_not_ready"


class _Collect(logging.Handler):
    def __init__(self) -> None:
        super().__init__(level=logging.INFO)
        self.events: list = []

    def emit(self, record: logging.LogRecord) -> None:
        self.events.append(json.loads(record.getMessage()))


def test_request_log_names_the_call_and_its_rejection(client: TestClient) -> None:
    sink = _Collect()
    logger = logging.getLogger("rentledger.http")
    logger.addHandler(sink)
    try:
        _call(client, "alice", COIN, {"op": "storage_deposit"})
        _call(client, "alice", ONE_UNIT, {"op": "storage_unregister"})
        client.get("/v1/storage/bounds", headers={"x-request-id": "req-7"})
    finally:
        logger.removeHandler(sink)

    ok, rejected, bounds = [e for e in sink.events if e["event"] == "http_request"]

    assert ok["op"] == "storage_deposit"
    assert ok["caller"] == "alice"
    assert ok["status"] == 200
    assert ok["error_reason"] is None

    assert rejected["op"] == "storage_unregister"
    assert rejected["status"] == 422
    assert rejected["error_code"] == "policy_violation"
    assert rejected["error_reason"] == "positive_balance_requires_force"

    assert bounds["request_id"] == "req-7"
    assert bounds["op"] is None
