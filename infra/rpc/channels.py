from __future__ import annotations

import logging
from typing import Any, Optional

from core.errors import BadRequestError
from core.rpc_protocol import RpcRequest, decode_response, encode_request
from core.subject import rpc_request_subject, rpc_response_subject
from core.config_defaults import DEFAULT_PROTOCOL_VERSION
from core.utils import safe_target_label
from infra.nats_client import NATSClient
from infra.rpc.broker import RpcBroker

logger = logging.getLogger("NatsRpcChannel")


class NatsRpcChannel:
    """js-rpc over core NATS: requests out on ``cmd.request``, results back on ``evt.response``.

    The script runner on the other side is opaque; it only has to echo the id
    it received next to the value it computed.
    """

    def __init__(
        self,
        nats: NATSClient,
        *,
        context: str,
        protocol_version: str = DEFAULT_PROTOCOL_VERSION,
    ) -> None:
        self.nats = nats
        self.context = safe_target_label(context)
        self.request_subject = rpc_request_subject(self.context, protocol_version)
        self.response_subject = rpc_response_subject(self.context, protocol_version)
        self._broker: Optional[RpcBroker] = None
        self._subscription: Any = None

    async def send(self, request: RpcRequest) -> None:
        await self.nats.publish_core(self.request_subject, encode_request(request))

    async def bind(self, broker: RpcBroker) -> None:
        """Attach to ``broker`` and start routing responses into it."""
        self._broker = broker
        broker.attach_channel(self)
        if self._subscription is None:
            self._subscription = await self.nats.subscribe_core(self.response_subject, self._on_message)
            logger.info("Listening for js-rpc responses on %s", self.response_subject)

    async def _on_message(self, msg: Any) -> None:
        if self._broker is None:
            return
        try:
            response = decode_response(msg.data)
        except BadRequestError as exc:
            logger.warning("Dropping malformed js-rpc response on %s: %s", msg.subject, exc.detail)
            return
        self._broker.on_response(response.id, response.value)
