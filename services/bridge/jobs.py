from __future__ import annotations

import importlib
import inspect
import logging
from typing import Any, Awaitable, Callable

from core.errors import BadRequestError
from infra.rpc.broker import RpcBroker

logger = logging.getLogger("BridgeJobs")

JobFunc = Callable[[RpcBroker], Awaitable[Any]]


async def idle_job(broker: RpcBroker) -> None:
    _ = broker
    logger.info("No job.entrypoint configured; nothing to run")


def import_job(entrypoint: str) -> JobFunc:
    """Resolve ``package.module:function`` to an ``async def job(broker)``."""
    text = (entrypoint or "").strip()
    if not text:
        return idle_job
    module_name, sep, attr = text.partition(":")
    if not sep or not module_name or not attr:
        raise BadRequestError("job.entrypoint must look like 'package.module:function'", detail=text)
    module = importlib.import_module(module_name)
    func = getattr(module, attr, None)
    if func is None:
        raise BadRequestError(f"job.entrypoint {text!r} not found")
    if not inspect.iscoroutinefunction(func):
        raise BadRequestError(f"job.entrypoint {text!r} must be an async function")
    return func


def bind_job(func: JobFunc, broker: RpcBroker) -> Callable[[], Awaitable[Any]]:
    async def _body() -> Any:
        return await func(broker)

    return _body
