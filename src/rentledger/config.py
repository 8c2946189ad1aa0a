# src/rentledger/config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

from rentledger.ledger.constants import (
    ACCOUNT_STORAGE_OVERHEAD,
    DEFAULT_PRICE_PER_BYTE,
    MAX_ACCOUNT_ID_LEN,
    MIN_ACCOUNT_ID_LEN,
)
from rentledger.ledger.policy import BalancePolicy
from rentledger.runtime.amounts import U128_MAX

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    try:
        if isinstance(v, bool):
            return int(default)
        return int(v)
    except Exception:
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    return str(v).strip()


@dataclass(frozen=True)
class RentConfig:
    mode: str  # "dev" | "testnet" | "prod"
    owner_id: str

    # Empty db_path selects the in-memory store.
    db_path: str

    price_per_byte: int
    min_account_id_len: int
    max_account_id_len: int
    account_storage_overhead: int

    api_host: str
    api_port: int

    log_level: str

    def balance_policy(self) -> BalancePolicy:
        return BalancePolicy(
            price_per_byte=self.price_per_byte,
            account_storage_overhead=self.account_storage_overhead,
            max_account_id_len=self.max_account_id_len,
        )


_ALLOWED_MODES = {"dev", "testnet", "prod"}


def validate_config(cfg: RentConfig) -> None:
    """Fail fast on settings that would make the accounting unsafe or unusable."""
    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {sorted(_ALLOWED_MODES)}; got: {cfg.mode!r}")

    if mode == "prod" and not str(cfg.owner_id or "").strip():
        raise ValueError("owner_id must be set in prod mode")

    if int(cfg.price_per_byte) <= 0:
        raise ValueError(f"price_per_byte must be > 0; got: {cfg.price_per_byte}")

    if int(cfg.min_account_id_len) < 1:
        raise ValueError(f"min_account_id_len must be >= 1; got: {cfg.min_account_id_len}")

    if int(cfg.max_account_id_len) < int(cfg.min_account_id_len):
        raise ValueError(
            f"max_account_id_len ({cfg.max_account_id_len}) must be >= min_account_id_len ({cfg.min_account_id_len})"
        )

    if int(cfg.account_storage_overhead) < 0:
        raise ValueError(f"account_storage_overhead must be >= 0; got: {cfg.account_storage_overhead}")

    # The bounds query must be representable.
    worst = int(cfg.price_per_byte) * (int(cfg.account_storage_overhead) + int(cfg.max_account_id_len))
    if worst > U128_MAX:
        raise ValueError("price_per_byte is too large: minimum balance does not fit in u128")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")


def default_config() -> RentConfig:
    return RentConfig(
        mode="prod",
        owner_id="",
        db_path="./data/rentledger.db",
        price_per_byte=DEFAULT_PRICE_PER_BYTE,
        min_account_id_len=MIN_ACCOUNT_ID_LEN,
        max_account_id_len=MAX_ACCOUNT_ID_LEN,
        account_storage_overhead=ACCOUNT_STORAGE_OVERHEAD,
        api_host="127.0.0.1",
        api_port=8080,
        log_level="INFO",
    )


def _merge(base: RentConfig, raw: Json) -> RentConfig:
    return RentConfig(
        mode=_as_str(raw.get("mode"), base.mode).lower(),
        owner_id=_as_str(raw.get("owner_id"), base.owner_id),
        db_path=_as_str(raw.get("db_path"), base.db_path),
        price_per_byte=_as_int(raw.get("price_per_byte"), base.price_per_byte),
        min_account_id_len=_as_int(raw.get("min_account_id_len"), base.min_account_id_len),
        max_account_id_len=_as_int(raw.get("max_account_id_len"), base.max_account_id_len),
        account_storage_overhead=_as_int(raw.get("account_storage_overhead"), base.account_storage_overhead),
        api_host=_as_str(raw.get("api_host"), base.api_host),
        api_port=_as_int(raw.get("api_port"), base.api_port),
        log_level=_as_str(raw.get("log_level"), base.log_level).upper(),
    )


def read_config_file(path: str) -> RentConfig:
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("rentledger config must be a JSON object")
    return _merge(default_config(), raw)


_ENV_KEYS = {
    "mode": "RENTLEDGER_MODE",
    "owner_id": "RENTLEDGER_OWNER_ID",
    "db_path": "RENTLEDGER_DB_PATH",
    "price_per_byte": "RENTLEDGER_PRICE_PER_BYTE",
    "min_account_id_len": "RENTLEDGER_MIN_ACCOUNT_ID_LEN",
    "max_account_id_len": "RENTLEDGER_MAX_ACCOUNT_ID_LEN",
    "account_storage_overhead": "RENTLEDGER_ACCOUNT_STORAGE_OVERHEAD",
    "api_host": "RENTLEDGER_API_HOST",
    "api_port": "RENTLEDGER_API_PORT",
    "log_level": "RENTLEDGER_LOG_LEVEL",
}


def apply_env_overrides(cfg: RentConfig) -> RentConfig:
    raw: Json = {}
    for field_name, env_name in _ENV_KEYS.items():
        v = os.environ.get(env_name)
        if v is not None:
            raw[field_name] = v
    return _merge(cfg, raw) if raw else cfg


def load_config(*, config_path: Optional[str] = None) -> RentConfig:
    """File (argument or RENTLEDGER_CONFIG_PATH) or defaults, then RENTLEDGER_* env overrides."""
    p = config_path or os.environ.get("RENTLEDGER_CONFIG_PATH")
    cfg = read_config_file(p) if p else default_config()
    cfg = apply_env_overrides(cfg)
    validate_config(cfg)
    return cfg


def dev_config(**overrides: Any) -> RentConfig:
    """In-memory dev posture; handy for tests and local runs. Overrides are validated."""
    cfg = replace(default_config(), mode="dev", owner_id="owner", db_path="")
    if overrides:
        cfg = replace(cfg, **overrides)
    validate_config(cfg)
    return cfg
