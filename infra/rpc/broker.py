"""Correlates one-way js-rpc requests with the responses the isolated context emits."""

from __future__ import annotations

import asyncio
import itertools
import logging
import random
from typing import Any, Callable, Optional, Protocol, Sequence

from core.errors import BrokerClosedError, ChannelSendError, RpcTimeoutError
from core.rpc_protocol import RpcRequest
from infra.observability.otel import get_tracer, set_span_attrs, traced
from infra.rpc.registry import CorrelationRegistry, PendingCall

logger = logging.getLogger("RpcBroker")
_TRACER = get_tracer("infra.rpc.broker")


class RpcChannel(Protocol):
    """Outbound half of the isolated-context channel (fire-and-forget)."""

    async def send(self, request: RpcRequest) -> None: ...


def _invoke_span_attrs(args: dict) -> dict:
    return {"rpc.system": "jsrpc", "rpc.method": str(args.get("method"))}


class RpcBroker:
    def __init__(
        self,
        channel: Optional[RpcChannel] = None,
        *,
        timeout_s: Optional[float] = None,
        debug: bool = False,
        id_suffix: Optional[Callable[[], str]] = None,
    ) -> None:
        self.channel = channel
        self.timeout_s = timeout_s if timeout_s and timeout_s > 0 else None
        self.debug = debug
        self.registry = CorrelationRegistry()
        self._counter = itertools.count(1)
        self._id_suffix = id_suffix or (lambda: f"{random.random()}")
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_count(self) -> int:
        return len(self.registry)

    def attach_channel(self, channel: RpcChannel) -> None:
        self.channel = channel

    def next_call_id(self) -> str:
        # Counter keeps ids unique while pending; the random tail only keeps
        # ids from colliding across broker restarts.
        return f"task-{next(self._counter)}-{self._id_suffix()}"

    @traced(_TRACER, "rpc.invoke", attributes_getter=_invoke_span_attrs, span_arg="_span")
    async def invoke(
        self,
        method: str,
        args: Sequence[Any] = (),
        *,
        timeout: Optional[float] = None,
        _span: Any = None,
    ) -> Any:
        """Dispatch ``method(*args)`` into the isolated context and wait for its value.

        With no timeout configured the caller waits until a matching response
        arrives. With one, the pending call is evicted and RpcTimeoutError raised.
        """
        if self._closed:
            raise BrokerClosedError()
        if self.channel is None:
            raise ChannelSendError("no js-rpc channel attached")

        loop = asyncio.get_running_loop()
        call_id = self.next_call_id()
        call = PendingCall(id=call_id, method=method, args=list(args), completion=loop.create_future())
        self.registry.put(call_id, call)
        set_span_attrs(_span, {"rpc.id": call_id})

        request = RpcRequest(method=method, args=call.args, id=call_id)
        try:
            await self.channel.send(request)
        except asyncio.CancelledError:
            self.registry.take(call_id)
            call.completion.cancel()
            raise
        except Exception as exc:
            self.registry.take(call_id)
            raise ChannelSendError(f"failed to send js-rpc request {method}", detail={"id": call_id}) from exc

        if self.debug:
            logger.info("Dispatched js-rpc request id=%s %s", call_id, request.model_dump(mode="json"))

        deadline = timeout if timeout is not None else self.timeout_s
        try:
            if deadline:
                result = await asyncio.wait_for(asyncio.shield(call.completion), timeout=deadline)
            else:
                result = await call.completion
        except asyncio.TimeoutError:
            self.registry.take(call_id)
            call.completion.cancel()
            logger.warning("js-rpc request id=%s method=%s timed out after %ss", call_id, method, deadline)
            raise RpcTimeoutError(
                f"no response for js-rpc request {method} within {deadline}s",
                detail={"id": call_id, "method": method},
            ) from None
        except asyncio.CancelledError:
            self.registry.take(call_id)
            call.completion.cancel()
            raise

        if self.debug:
            logger.info("js-rpc request id=%s completed", call_id)
        return result

    def on_response(self, call_id: str, value: Any) -> bool:
        """Complete the pending call for ``call_id``; unknown or repeated ids are dropped."""
        call = self.registry.take(call_id)
        if call is None:
            logger.warning("No pending js-rpc call for id=%s (late or duplicate response)", call_id)
            return False
        if not call.resolve(value):
            logger.warning("js-rpc call id=%s already settled; response dropped", call_id)
            return False
        return True

    def shutdown(self) -> int:
        """Reject new calls and fail every pending one with BrokerClosedError."""
        self._closed = True
        calls = self.registry.drain()
        for call in calls:
            call.fail(BrokerClosedError(detail={"id": call.id, "method": call.method}))
        if calls:
            logger.info("RpcBroker shutdown failed %d pending call(s)", len(calls))
        return len(calls)
