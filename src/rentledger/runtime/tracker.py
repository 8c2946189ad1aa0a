# src/rentledger/runtime/tracker.py
from __future__ import annotations

"""Storage usage tracking.

The host store reports one running byte counter shared by every write in a call.
To attribute bytes to a single logical mutation we snapshot the counter before the
write and diff it after, instead of predicting record sizes:

    tracker.track()
    ledger.insert(...)
    usage = tracker.finish(0)

State machine: Idle -> track() -> Tracking(baseline) -> finish() -> Idle.
"""

from typing import Optional

from rentledger.runtime.amounts import U64_MAX, checked_add, checked_sub
from rentledger.runtime.errors import AccountingStateError, BalanceArithmeticError
from rentledger.runtime.store import KeyValueStore


class UsageTracker:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._baseline: Optional[int] = None

    @property
    def is_tracking(self) -> bool:
        return self._baseline is not None

    @property
    def baseline(self) -> Optional[int]:
        return self._baseline

    def assert_idle(self) -> None:
        if self._baseline is not None:
            raise AccountingStateError(reason="tracking_already_enabled", details={"baseline": self._baseline})

    def track(self) -> None:
        """Start tracking. Fails if a measurement is already open."""
        self.assert_idle()
        self._baseline = int(self._store.storage_usage())

    def finish(self, base_value: int) -> int:
        """Close the measurement and return base_value adjusted by the usage delta.

        Raises:
            AccountingStateError: not tracking.
            BalanceArithmeticError: the adjusted value leaves the u64 range.
        """
        if self._baseline is None:
            raise AccountingStateError(reason="tracking_not_enabled")
        baseline = self._baseline
        self._baseline = None

        now = int(self._store.storage_usage())
        if now >= baseline:
            out = checked_add(base_value, now - baseline, U64_MAX)
        else:
            out = checked_sub(base_value, baseline - now)

        if out is None:
            raise BalanceArithmeticError(
                reason="storage_computation_overflow",
                details={"base_value": int(base_value), "baseline": baseline, "now": now},
            )
        return out

    def reset(self) -> None:
        """Drop an open measurement. Only the executor's rollback path calls this."""
        self._baseline = None


__all__ = ["UsageTracker"]
