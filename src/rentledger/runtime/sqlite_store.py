# src/rentledger/runtime/sqlite_store.py
from __future__ import annotations

import os
import random
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from rentledger.runtime.errors import AccountingStateError
from rentledger.runtime.store import entry_cost


def _now_ms() -> int:
    return int(time.time() * 1000)


def _env_int(name: str, default: int) -> int:
    try:
        raw = str(os.environ.get(name, "")).strip()
        return int(raw) if raw else int(default)
    except Exception:
        return int(default)


class SqliteKVStore:
    """Durable host store in a single SQLite file.

    Entries live in `kv`; the running byte-usage counter lives in `meta` and is
    updated in the same transaction as the entry it accounts for, so the counter
    and the data can never disagree after a crash.

    Writes use BEGIN IMMEDIATE with a bounded retry on writer-lock contention.
    Inside transaction() every read and write shares one connection; outside it,
    each write is its own transaction.
    """

    SCHEMA_VERSION = 1

    def __init__(self, *, path: str) -> None:
        self.path = str(path)
        self._con: Optional[sqlite3.Connection] = None
        self.init_schema()

    @staticmethod
    def _sqlite_synchronous_pragma() -> str:
        """FULL in prod, NORMAL otherwise; override with RENTLEDGER_SQLITE_SYNCHRONOUS."""
        mode = (os.environ.get("RENTLEDGER_MODE") or "prod").strip().lower()
        default = "FULL" if mode == "prod" else "NORMAL"
        raw = (os.environ.get("RENTLEDGER_SQLITE_SYNCHRONOUS") or default).strip().upper()
        if raw not in {"OFF", "NORMAL", "FULL", "EXTRA"}:
            raw = default
        return raw

    def _connect(self) -> sqlite3.Connection:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        connect_timeout_s = float(_env_int("RENTLEDGER_SQLITE_CONNECT_TIMEOUT_MS", 30_000)) / 1000.0
        con = sqlite3.connect(
            self.path,
            timeout=connect_timeout_s,
            isolation_level=None,  # we manage BEGIN/COMMIT ourselves
            check_same_thread=False,
        )
        con.row_factory = sqlite3.Row
        con.execute("PRAGMA journal_mode=WAL;")
        con.execute(f"PRAGMA synchronous={self._sqlite_synchronous_pragma()};")
        con.execute("PRAGMA temp_store=MEMORY;")
        busy_ms = max(0, _env_int("RENTLEDGER_SQLITE_BUSY_TIMEOUT_MS", int(connect_timeout_s * 1000)))
        con.execute(f"PRAGMA busy_timeout={busy_ms};")
        return con

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        con = self._connect()
        try:
            yield con
        finally:
            con.close()

    @staticmethod
    def _is_locked_error(e: Exception) -> bool:
        msg = str(e).lower()
        return ("database is locked" in msg) or ("database is busy" in msg)

    def _retry(self, con: sqlite3.Connection, sql: str, deadline_ts: int) -> None:
        base_sleep = max(0.001, float(_env_int("RENTLEDGER_SQLITE_WRITE_BACKOFF_BASE_MS", 5)) / 1000.0)
        max_sleep = max(base_sleep, float(_env_int("RENTLEDGER_SQLITE_WRITE_BACKOFF_MAX_MS", 250)) / 1000.0)
        attempt = 0
        while True:
            try:
                con.execute(sql)
                return
            except sqlite3.OperationalError as e:
                if not self._is_locked_error(e) or _now_ms() >= deadline_ts:
                    raise
                # exponential backoff with jitter
                sleep_s = min(max_sleep, base_sleep * (2.0 ** min(attempt, 8)))
                time.sleep(sleep_s * (0.5 + random.random()))
                attempt += 1

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        """Open a write transaction; retry BEGIN/COMMIT until RENTLEDGER_SQLITE_WRITE_DEADLINE_MS."""
        deadline_ms = max(250, _env_int("RENTLEDGER_SQLITE_WRITE_DEADLINE_MS", 30_000))
        deadline_ts = _now_ms() + deadline_ms

        with self.connection() as con:
            self._retry(con, "BEGIN IMMEDIATE;", deadline_ts)
            try:
                yield con
                self._retry(con, "COMMIT;", deadline_ts)
            except BaseException:
                con.execute("ROLLBACK;")
                raise

    def init_schema(self) -> None:
        with self.write_tx() as con:
            con.execute("CREATE TABLE IF NOT EXISTS meta (key TEXT PRIMARY KEY, value TEXT NOT NULL);")
            con.execute("CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL);")

            row = con.execute("SELECT value FROM meta WHERE key='schema_version' LIMIT 1;").fetchone()
            if row is None:
                con.execute(
                    "INSERT INTO meta(key, value) VALUES('schema_version', ?);",
                    (str(self.SCHEMA_VERSION),),
                )
                con.execute("INSERT INTO meta(key, value) VALUES('storage_usage', '0');")
            elif str(row["value"]) != str(self.SCHEMA_VERSION):
                raise RuntimeError(
                    f"sqlite schema_version mismatch: have={row['value']} want={self.SCHEMA_VERSION}. "
                    "Refuse to start to avoid corrupting data."
                )

    # ---- transaction scope ----

    @contextmanager
    def transaction(self) -> Iterator["SqliteKVStore"]:
        if self._con is not None:
            raise AccountingStateError(reason="transaction_already_open")
        with self.write_tx() as con:
            self._con = con
            try:
                yield self
            finally:
                self._con = None

    @contextmanager
    def _scoped(self) -> Iterator[sqlite3.Connection]:
        if self._con is not None:
            yield self._con
        else:
            with self.write_tx() as con:
                yield con

    # ---- KeyValueStore ----

    @staticmethod
    def _get(con: sqlite3.Connection, key: str) -> Optional[str]:
        row = con.execute("SELECT value FROM kv WHERE key=?;", (key,)).fetchone()
        return None if row is None else str(row["value"])

    @staticmethod
    def _add_usage(con: sqlite3.Connection, delta: int) -> None:
        if delta:
            con.execute(
                "UPDATE meta SET value = CAST(CAST(value AS INTEGER) + ? AS TEXT) WHERE key='storage_usage';",
                (int(delta),),
            )

    def get(self, key: str) -> Optional[str]:
        if self._con is not None:
            return self._get(self._con, key)
        with self.connection() as con:
            return self._get(con, key)

    def set(self, key: str, value: str) -> None:
        with self._scoped() as con:
            prev = self._get(con, key)
            con.execute(
                "INSERT INTO kv(key, value) VALUES(?, ?) ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                (key, value),
            )
            delta = entry_cost(key, value) - (entry_cost(key, prev) if prev is not None else 0)
            self._add_usage(con, delta)

    def remove(self, key: str) -> Optional[str]:
        with self._scoped() as con:
            prev = self._get(con, key)
            if prev is None:
                return None
            con.execute("DELETE FROM kv WHERE key=?;", (key,))
            self._add_usage(con, -entry_cost(key, prev))
            return prev

    def storage_usage(self) -> int:
        if self._con is not None:
            row = self._con.execute("SELECT value FROM meta WHERE key='storage_usage';").fetchone()
        else:
            with self.connection() as con:
                row = con.execute("SELECT value FROM meta WHERE key='storage_usage';").fetchone()
        return int(str(row["value"])) if row is not None else 0


__all__ = ["SqliteKVStore"]
