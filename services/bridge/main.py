"""Host control surface: the HTTP face the desktop UI talks to."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException

from core.app_config import config_to_dict, load_app_config
from core.config_defaults import DEFAULT_API_LISTEN_HOST, DEFAULT_API_PORT
from core.errors import InternalError, http_detail_from_exception, http_status_from_exception
from core.utils import set_loop_policy
from infra.service_runtime import ServiceRuntime
from services.bridge.control import BridgeControl
from services.bridge.models import (
    HealthResponse,
    HttpGetRequest,
    HttpGetResponse,
    JobStartResponse,
    PathConfigResponse,
    RpcDeliverRequest,
    RpcDeliverResponse,
    RpcTriggerRequest,
    RpcTriggerResponse,
)

set_loop_policy()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("BridgeAPI")


def _raise_http_exception(exc: Exception, *, default_code: str = "internal_error") -> None:
    raise HTTPException(
        status_code=http_status_from_exception(exc),
        detail=http_detail_from_exception(exc, default_code=default_code),
    ) from exc


class AppState:
    runtime: Optional[ServiceRuntime] = None
    control: Optional[BridgeControl] = None


app_state = AppState()


@asynccontextmanager
async def lifespan(_: FastAPI):
    cfg = config_to_dict(load_app_config())
    rpc_cfg = cfg.get("rpc") or {}
    logger.info(
        "init js-rpc bridge (transport=%s context=%s timeout=%ss)",
        rpc_cfg.get("transport"),
        rpc_cfg.get("context"),
        rpc_cfg.get("timeout_seconds") or "none",
    )
    runtime = ServiceRuntime.from_config(cfg, service_name="JsRpcBridge")
    await runtime.open()
    app_state.runtime = runtime
    app_state.control = BridgeControl.from_runtime(runtime)
    try:
        yield
    finally:
        if app_state.control is not None:
            await app_state.control.shutdown()
        await runtime.close()
        app_state.control = None
        app_state.runtime = None


app = FastAPI(title="js-rpc bridge", lifespan=lifespan)


def get_control() -> BridgeControl:
    if not app_state.control:
        _raise_http_exception(InternalError("bridge not initialized"))
    return app_state.control


@app.get("/health", response_model=HealthResponse)
async def health(control: BridgeControl = Depends(get_control)) -> HealthResponse:
    return HealthResponse(**control.health())


@app.post("/job/start", response_model=JobStartResponse)
async def start_job(control: BridgeControl = Depends(get_control)) -> JobStartResponse:
    return JobStartResponse(status=control.request_job_start())


@app.post("/rpc/trigger", response_model=RpcTriggerResponse)
async def trigger_rpc(
    payload: RpcTriggerRequest,
    control: BridgeControl = Depends(get_control),
) -> RpcTriggerResponse:
    value = await control.request_rpc_trigger(payload.method, payload.args)
    return RpcTriggerResponse(value=value)


@app.post("/rpc/response", response_model=RpcDeliverResponse)
async def deliver_rpc_response(
    payload: RpcDeliverRequest,
    control: BridgeControl = Depends(get_control),
) -> RpcDeliverResponse:
    matched = control.deliver_rpc_response(payload.id, payload.value)
    return RpcDeliverResponse(ack=True, matched=matched)


@app.post("/http/get", response_model=HttpGetResponse)
async def http_get(
    payload: HttpGetRequest,
    control: BridgeControl = Depends(get_control),
) -> HttpGetResponse:
    try:
        value = await control.http_get(payload.url, payload.params)
    except Exception as exc:  # noqa: BLE001
        logger.exception("GET %s failed", payload.url)
        _raise_http_exception(exc)
    return HttpGetResponse(value=value)


@app.get("/config/paths", response_model=PathConfigResponse)
async def path_config(control: BridgeControl = Depends(get_control)) -> PathConfigResponse:
    return PathConfigResponse(**control.path_config())


@app.post("/session/clear")
async def clear_session(control: BridgeControl = Depends(get_control)) -> dict:
    try:
        await control.clear_session()
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)
    return {"ok": True}


def main() -> None:
    cfg = config_to_dict(load_app_config())
    api_cfg = cfg.get("api") or {}
    host = str(api_cfg.get("listen_host") or DEFAULT_API_LISTEN_HOST)
    port = int(api_cfg.get("port") or DEFAULT_API_PORT)
    uvicorn.run(
        "services.bridge.main:app",
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":
    main()
