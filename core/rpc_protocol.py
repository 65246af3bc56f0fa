"""Wire shapes exchanged with the isolated execution context."""

from __future__ import annotations

import json
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from core.errors import BadRequestError

JOB_STATUS_SUCCESS = "success"
JOB_STATUS_BUSY = "busy"


class RpcRequest(BaseModel):
    """One-way invocation sent into the isolated context."""

    model_config = ConfigDict(extra="forbid")

    method: str = Field(min_length=1)
    args: List[Any] = Field(default_factory=list)
    id: str = Field(min_length=1)


class RpcResponse(BaseModel):
    """Result emitted back by the isolated context, tagged with the request id."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    value: Any = None


def encode_request(request: RpcRequest) -> bytes:
    return json.dumps(request.model_dump(mode="json"), default=str).encode("utf-8")


def decode_response(raw: bytes | str | dict) -> RpcResponse:
    try:
        if isinstance(raw, dict):
            return RpcResponse.model_validate(raw)
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return RpcResponse.model_validate(json.loads(raw))
    except (ValueError, ValidationError) as exc:
        raise BadRequestError("malformed js-rpc response", detail=str(exc)) from exc
