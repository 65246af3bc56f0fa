import asyncio
import json
from types import SimpleNamespace
from typing import Any, Callable, List, Tuple

import pytest

from core.errors import BrokerClosedError, ChannelSendError
from infra.nats_client import NATSClient
from infra.rpc.broker import RpcBroker
from infra.rpc.channels import NatsRpcChannel


class FakeNATS:
    def __init__(self) -> None:
        self.published: List[Tuple[str, bytes]] = []
        self.subscriptions: List[Tuple[str, Callable]] = []

    async def publish_core(self, subject: str, payload: bytes) -> None:
        self.published.append((subject, payload))

    async def subscribe_core(self, subject: str, callback: Callable) -> Any:
        self.subscriptions.append((subject, callback))
        return object()


def _msg(subject: str, payload: Any) -> SimpleNamespace:
    data = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
    return SimpleNamespace(subject=subject, data=data)


@pytest.mark.asyncio
async def test_bind_subscribes_once_to_response_subject():
    nats = FakeNATS()
    channel = NatsRpcChannel(nats, context="signer")
    broker = RpcBroker()

    await channel.bind(broker)
    await channel.bind(broker)

    assert broker.channel is channel
    assert [s for s, _ in nats.subscriptions] == ["jsrpc.v1.signer.evt.response"]


@pytest.mark.asyncio
async def test_request_and_response_round_trip_through_nats():
    nats = FakeNATS()
    channel = NatsRpcChannel(nats, context="signer")
    broker = RpcBroker()
    await channel.bind(broker)

    task = asyncio.create_task(broker.invoke("sign", ["body"]))
    for _ in range(100):
        if nats.published:
            break
        await asyncio.sleep(0)

    subject, payload = nats.published[0]
    assert subject == "jsrpc.v1.signer.cmd.request"
    request = json.loads(payload)
    assert request["method"] == "sign"
    assert request["args"] == ["body"]

    _, callback = nats.subscriptions[0]
    await callback(_msg("jsrpc.v1.signer.evt.response", {"id": request["id"], "value": "sig"}))

    assert await task == "sig"


@pytest.mark.asyncio
async def test_malformed_response_is_dropped():
    nats = FakeNATS()
    channel = NatsRpcChannel(nats, context="signer")
    broker = RpcBroker()
    await channel.bind(broker)

    task = asyncio.create_task(broker.invoke("sign"))
    for _ in range(100):
        if nats.published:
            break
        await asyncio.sleep(0)

    _, callback = nats.subscriptions[0]
    await callback(_msg("jsrpc.v1.signer.evt.response", b"{not json"))

    assert broker.pending_count == 1
    assert not task.done()
    broker.shutdown()
    with pytest.raises(BrokerClosedError):
        await task


def test_context_is_normalized_into_subject_token():
    channel = NatsRpcChannel(FakeNATS(), context="sig ner.x")
    assert channel.request_subject == "jsrpc.v1.sig_ner_x.cmd.request"


@pytest.mark.asyncio
async def test_disconnected_nats_surfaces_as_channel_send_error():
    client = NATSClient(config={"servers": [" nats://relay:4222 ", ""]})
    assert client.servers == ["nats://relay:4222"]
    assert client.is_connected is False

    channel = NatsRpcChannel(client, context="signer")
    broker = RpcBroker(channel)

    with pytest.raises(ChannelSendError):
        await broker.invoke("sign")
    assert broker.pending_count == 0
