# src/rentledger/ledger/policy.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from rentledger.ledger.account import Account, StorageBalance
from rentledger.ledger.constants import (
    ACCOUNT_STORAGE_OVERHEAD,
    DEFAULT_PRICE_PER_BYTE,
    MAX_ACCOUNT_ID_LEN,
)
from rentledger.runtime.amounts import checked_mul, checked_sub
from rentledger.runtime.errors import BalanceArithmeticError, InvariantViolationError


@dataclass(frozen=True)
class BalancePolicy:
    """Maps an account's byte footprint to the balance it must keep prepaid.

    The footprint is estimated from the identifier length alone: a fixed record
    overhead plus one byte per identifier character. Pure; holds no ledger state.
    """

    price_per_byte: int = DEFAULT_PRICE_PER_BYTE
    account_storage_overhead: int = ACCOUNT_STORAGE_OVERHEAD
    max_account_id_len: int = MAX_ACCOUNT_ID_LEN

    def required_minimum(self, identifier_len: Optional[int] = None) -> int:
        """price_per_byte * (overhead + identifier_len).

        identifier_len=None means "any account": the protocol maximum id length is used,
        which makes the result an upper bound for every registrable identifier.
        """
        n = self.max_account_id_len if identifier_len is None else int(identifier_len)
        out = checked_mul(self.price_per_byte, self.account_storage_overhead + n)
        if out is None:
            raise BalanceArithmeticError(
                reason="storage_computation_overflow",
                details={"identifier_len": n, "price_per_byte": str(self.price_per_byte)},
            )
        return out

    def required_deposit(self, account_id: Optional[str] = None) -> int:
        return self.required_minimum(None if account_id is None else len(account_id))

    def available_balance(self, account: Account) -> int:
        available = checked_sub(account.storage_balance, self.required_deposit(account.account_id))
        if available is None:
            raise InvariantViolationError(
                reason="available_balance_underflow",
                details={
                    "account_id": account.account_id,
                    "storage_balance": str(account.storage_balance),
                },
            )
        return available

    def storage_balance(self, account: Account) -> StorageBalance:
        return StorageBalance(total=account.storage_balance, available=self.available_balance(account))


__all__ = ["BalancePolicy"]
