# src/rentledger/ledger/migrations.py
from __future__ import annotations

"""Versioned record encoding.

Two persisted shapes evolve independently:

  - account records (key "a:<account_id>"), versioned by "v"
  - contract state (key "STATE"), versioned by "state_version"

Readers always upgrade to the current version. A version newer than this build
supports is refused rather than silently downgraded.
"""

import json
from typing import Any, Callable, Dict

Json = Dict[str, Any]

# Increment these when you add a new migration step.
CURRENT_ACCOUNT_VERSION = 2
CURRENT_STATE_VERSION = 1


def _as_int(v: Any, default: int = 0) -> int:
    try:
        if isinstance(v, bool):
            return default
        return int(v)
    except Exception:
        return default


def _as_str(v: Any) -> str:
    return str(v) if v is not None else ""


def _load(raw: Any) -> Json:
    if isinstance(raw, str):
        raw = json.loads(raw)
    if not isinstance(raw, dict):
        raise ValueError(f"record must be a JSON object, got {type(raw).__name__}")
    return dict(raw)


def _migrate_account_v0_to_v1(rec: Json) -> Json:
    """
    v0 -> v1: explicit "v" tag, u128 balance as a decimal string.

    v0 characteristics:
      - no "v"
      - balance stored under "balance" as a JSON number
      - usage optional under "usage"
    """
    balance = _as_int(rec.get("storage_balance", rec.get("balance")), 0)
    usage = _as_int(rec.get("storage_usage", rec.get("usage")), 0)
    return {
        "v": 1,
        "storage_balance": str(max(0, balance)),
        "storage_usage": max(0, usage),
    }


def _migrate_account_v1_to_v2(rec: Json) -> Json:
    """
    v1 -> v2: storage_usage becomes a zero-padded decimal string (see Account.to_record).

    The value is unchanged; only its encoding width is fixed.
    """
    return {
        "v": 2,
        "storage_balance": str(max(0, _as_int(rec.get("storage_balance"), 0))),
        "storage_usage": max(0, _as_int(rec.get("storage_usage"), 0)),
    }


def _migrate_state_v0_to_v1(st: Json) -> Json:
    """
    v0 -> v1: introduce state_version; running state as an explicit string.

    v0 stored a boolean "paused" flag.
    """
    owner = _as_str(st.get("owner_id")).strip()
    rs = _as_str(st.get("running_state")).strip().lower()
    if rs not in {"running", "paused"}:
        rs = "paused" if bool(st.get("paused", False)) else "running"
    return {"state_version": 1, "owner_id": owner, "running_state": rs}


_ACCOUNT_MIGRATIONS: Dict[int, Callable[[Json], Json]] = {
    0: _migrate_account_v0_to_v1,
    1: _migrate_account_v1_to_v2,
}

_STATE_MIGRATIONS: Dict[int, Callable[[Json], Json]] = {
    0: _migrate_state_v0_to_v1,
}


def _upgrade(
    rec: Json,
    *,
    version_key: str,
    current: int,
    steps: Dict[int, Callable[[Json], Json]],
    what: str,
) -> Json:
    v = _as_int(rec.get(version_key), 0)
    if v > current:
        # Written by a newer binary; refuse to downgrade silently.
        raise ValueError(f"{what} version {v} is newer than this binary supports (max {current}).")

    while v < current:
        step = steps.get(v)
        if step is None:
            raise ValueError(f"No migration path from {what} version {v} to {current}.")
        rec = step(rec)
        v = _as_int(rec.get(version_key), v + 1)

    rec[version_key] = current
    return rec


def migrate_account_record(raw: Any) -> Json:
    """Upgrade a stored account record (JSON text or dict) to CURRENT_ACCOUNT_VERSION."""
    rec = _upgrade(
        _load(raw),
        version_key="v",
        current=CURRENT_ACCOUNT_VERSION,
        steps=_ACCOUNT_MIGRATIONS,
        what="account record",
    )
    rec["storage_balance"] = str(_as_int(rec.get("storage_balance"), 0))
    rec["storage_usage"] = _as_int(rec.get("storage_usage"), 0)
    return rec


def migrate_contract_state(raw: Any) -> Json:
    """Upgrade the stored contract state (JSON text or dict) to CURRENT_STATE_VERSION."""
    return _upgrade(
        _load(raw),
        version_key="state_version",
        current=CURRENT_STATE_VERSION,
        steps=_STATE_MIGRATIONS,
        what="contract state",
    )


__all__ = [
    "CURRENT_ACCOUNT_VERSION",
    "CURRENT_STATE_VERSION",
    "migrate_account_record",
    "migrate_contract_state",
]
