# src/rentledger/runtime/context.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Protocol

from rentledger.runtime.amounts import parse_u128


@dataclass(frozen=True)
class Transfer:
    receiver_id: str
    amount: int

    def to_json(self) -> Dict[str, str]:
        return {"receiver_id": self.receiver_id, "amount": str(self.amount)}


@dataclass
class CallContext:
    """What the host tells the core about the current call.

    caller:           authenticated identity of the predecessor
    attached_deposit: currency attached to the call (u128)

    transfer() only queues a payout. The executor releases queued transfers to the
    PaymentSink after the call succeeds and drops them if it aborts.
    """

    caller: str
    attached_deposit: int = 0
    transfers: List[Transfer] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.attached_deposit = parse_u128(self.attached_deposit)

    def transfer(self, receiver_id: str, amount: int) -> None:
        self.transfers.append(Transfer(receiver_id=str(receiver_id), amount=int(amount)))


class PaymentSink(Protocol):
    def transfer(self, receiver_id: str, amount: int) -> None: ...


class InMemoryPayments:
    """Payment book for dev nodes and tests: records every payout, keeps per-receiver totals."""

    def __init__(self) -> None:
        self.history: List[Transfer] = []
        self.totals: Dict[str, int] = {}

    def transfer(self, receiver_id: str, amount: int) -> None:
        self.history.append(Transfer(receiver_id=receiver_id, amount=int(amount)))
        self.totals[receiver_id] = int(self.totals.get(receiver_id, 0)) + int(amount)

    def received(self, receiver_id: str) -> int:
        return int(self.totals.get(receiver_id, 0))


__all__ = ["CallContext", "InMemoryPayments", "PaymentSink", "Transfer"]
