from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class AccountingError(Exception):
    """Canonical error type for accounting failures.

    Every AccountingError aborts the whole call: the executor rolls back store writes
    and drops queued transfers before re-raising.
    """

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"


@dataclass
class AccountingValidationError(AccountingError):
    """Zero/insufficient deposit, missing confirmation token, malformed input."""

    code: str = "invalid_request"
    reason: str = "invalid_request"
    details: Any | None = None


@dataclass
class AccountNotFoundError(AccountingError):
    code: str = "not_found"
    reason: str = "account_not_registered"
    details: Any | None = None


@dataclass
class AccountingStateError(AccountingError):
    """Paused subsystem or usage tracker misuse."""

    code: str = "invalid_state"
    reason: str = "invalid_state"
    details: Any | None = None


@dataclass
class BalanceArithmeticError(AccountingError):
    """Overflow/underflow in balance or usage math."""

    code: str = "arithmetic"
    reason: str = "arithmetic"
    details: Any | None = None


@dataclass
class AuthorizationError(AccountingError):
    code: str = "forbidden"
    reason: str = "not_owner"
    details: Any | None = None


@dataclass
class PolicyViolationError(AccountingError):
    code: str = "policy_violation"
    reason: str = "policy_violation"
    details: Any | None = None


@dataclass
class InvariantViolationError(AccountingError):
    """A broken internal invariant. Never caused by caller input."""

    code: str = "internal"
    reason: str = "invariant_violation"
    details: Any | None = None


__all__ = [
    "AccountingError",
    "AccountingValidationError",
    "AccountNotFoundError",
    "AccountingStateError",
    "BalanceArithmeticError",
    "AuthorizationError",
    "PolicyViolationError",
    "InvariantViolationError",
]
