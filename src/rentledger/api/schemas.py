from __future__ import annotations

"""Pydantic request schemas for the HTTP API.

The call payload itself ("request") is decoded by rentledger.runtime.requests so the
HTTP layer and every other dispatch path share one set of request variants.
"""

from typing import Any, Dict, Union

from pydantic import BaseModel, Field


class CallEnvelope(BaseModel):
    caller: str = Field(..., min_length=1, description="Caller identity asserted by the upstream gateway")
    attached_deposit: Union[int, str] = Field(default="0", description="Attached amount (u128, decimal string)")
    request: Dict[str, Any] = Field(..., description='Request variant, e.g. {"op": "storage_deposit"}')

    model_config = {"extra": "forbid"}
