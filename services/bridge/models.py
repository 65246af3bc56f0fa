from __future__ import annotations

from typing import Any, Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field


class JobStartResponse(BaseModel):
    status: Literal["success", "busy"]


class RpcTriggerRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    method: str = Field(min_length=1)
    # The desktop renderer sent the argument list as `paramList`.
    args: List[Any] = Field(default_factory=list, alias="paramList")


class RpcTriggerResponse(BaseModel):
    value: Any = None


class RpcDeliverRequest(BaseModel):
    id: str = Field(min_length=1)
    value: Any = None


class RpcDeliverResponse(BaseModel):
    ack: bool = True
    matched: bool


class HttpGetRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str = Field(min_length=1, alias="rawUrl")
    params: Dict[str, Any] = Field(default_factory=dict)


class HttpGetResponse(BaseModel):
    value: Any = None


class PathConfigResponse(BaseModel):
    config_path: str
    output_path: str


class HealthResponse(BaseModel):
    status: str
    job_running: bool
    pending_rpc: int
    broker_closed: bool
