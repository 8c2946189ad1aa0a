from __future__ import annotations

"""Call request schemas.

The call surface is a closed set of request variants discriminated by "op".
Dispatch layers (HTTP, CLI, tests) decode raw input with parse_request() and hand
the typed request to RentExecutor; the accounting core never sees raw call names.

Unknown keys are rejected. u128 amounts are accepted as ints or decimal strings.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from rentledger.runtime.amounts import parse_u128
from rentledger.runtime.errors import AccountingValidationError


class _StrictModel(BaseModel):
    """Strict model: reject unknown keys."""

    model_config = ConfigDict(extra="forbid", frozen=True)


class StorageDepositRequest(_StrictModel):
    op: Literal["storage_deposit"] = "storage_deposit"
    account_id: Optional[str] = None
    registration_only: Optional[bool] = None


class StorageWithdrawRequest(_StrictModel):
    op: Literal["storage_withdraw"] = "storage_withdraw"
    amount: Optional[int] = None

    @field_validator("amount", mode="before")
    @classmethod
    def _u128(cls, v: Any) -> Optional[int]:
        return None if v is None else parse_u128(v)


class StorageUnregisterRequest(_StrictModel):
    op: Literal["storage_unregister"] = "storage_unregister"
    force: Optional[bool] = None


class StorageBalanceBoundsRequest(_StrictModel):
    op: Literal["storage_balance_bounds"] = "storage_balance_bounds"


class StorageBalanceOfRequest(_StrictModel):
    op: Literal["storage_balance_of"] = "storage_balance_of"
    account_id: str = Field(..., min_length=1)


class PauseRequest(_StrictModel):
    op: Literal["pause"] = "pause"


class ResumeRequest(_StrictModel):
    op: Literal["resume"] = "resume"


CallRequest = Union[
    StorageDepositRequest,
    StorageWithdrawRequest,
    StorageUnregisterRequest,
    StorageBalanceBoundsRequest,
    StorageBalanceOfRequest,
    PauseRequest,
    ResumeRequest,
]

READ_ONLY_REQUESTS = (StorageBalanceBoundsRequest, StorageBalanceOfRequest)

_ADAPTER: TypeAdapter = TypeAdapter(Annotated[CallRequest, Field(discriminator="op")])


def parse_request(obj: Any) -> CallRequest:
    """Decode a raw mapping into a typed request.

    Raises:
        AccountingValidationError: unknown op, unknown keys, or wrong field types.
    """
    if isinstance(obj, BaseModel):
        return obj  # type: ignore[return-value]
    if not isinstance(obj, dict):
        raise AccountingValidationError(reason="request_not_object", details={"type": type(obj).__name__})
    try:
        return _ADAPTER.validate_python(obj)
    except ValidationError as e:
        errors = [
            {"loc": ".".join(str(p) for p in err.get("loc", ())), "msg": str(err.get("msg", ""))}
            for err in e.errors()
        ]
        raise AccountingValidationError(reason="invalid_request", details={"errors": errors}) from e


__all__ = [
    "CallRequest",
    "PauseRequest",
    "READ_ONLY_REQUESTS",
    "ResumeRequest",
    "StorageBalanceBoundsRequest",
    "StorageBalanceOfRequest",
    "StorageDepositRequest",
    "StorageUnregisterRequest",
    "StorageWithdrawRequest",
    "parse_request",
]
