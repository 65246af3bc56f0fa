import asyncio
from typing import Any, List

import pytest

from core.errors import ChannelSendError
from infra.browser_sandbox import BrowserSandbox, resolve_page_url
from infra.config_store import ConfigStore
from infra.rpc.broker import RpcBroker
from infra.service_runtime import ServiceRuntime, persisted_config_defaults


class FakePage:
    def __init__(self) -> None:
        self.evaluated: List[Any] = []

    async def evaluate(self, expression: str, arg: Any = None) -> None:
        self.evaluated.append(arg)


class FakeContext:
    def __init__(self, cookies) -> None:
        self._cookies = cookies
        self.cleared = False

    async def cookies(self):
        return list(self._cookies)

    async def clear_cookies(self) -> None:
        self.cleared = True


def _sandbox() -> BrowserSandbox:
    return BrowserSandbox(page_url="about:blank")


@pytest.mark.asyncio
async def test_browser_channel_dispatches_and_binding_resolves():
    sandbox = _sandbox()
    sandbox.page = FakePage()
    broker = RpcBroker()
    await sandbox.channel().bind(broker)

    task = asyncio.create_task(broker.invoke("sign", ["body"]))
    for _ in range(100):
        if sandbox.page.evaluated:
            break
        await asyncio.sleep(0)

    method, args, call_id = sandbox.page.evaluated[0]
    assert (method, args) == ("sign", ["body"])

    assert sandbox._on_response_binding(None, call_id, "sig") is True
    assert await task == "sig"


@pytest.mark.asyncio
async def test_send_without_page_fails_cleanly():
    broker = RpcBroker()
    await _sandbox().channel().bind(broker)

    with pytest.raises(ChannelSendError):
        await broker.invoke("sign")
    assert broker.pending_count == 0


def test_binding_before_broker_is_ignored():
    assert _sandbox()._on_response_binding(None, "task-1-x", 1) is False


@pytest.mark.asyncio
async def test_session_credentials_keep_cookie_order():
    sandbox = _sandbox()
    sandbox.context = FakeContext(
        [{"name": "a", "value": "1", "domain": "x"}, {"name": "b", "value": "2", "domain": "x"}]
    )

    assert await sandbox.read_session_credentials() == [
        {"name": "a", "value": "1"},
        {"name": "b", "value": "2"},
    ]


@pytest.mark.asyncio
async def test_clear_session_clears_cookies_and_storage():
    sandbox = _sandbox()
    sandbox.context = FakeContext([])
    sandbox.page = FakePage()

    await sandbox.clear_session()

    assert sandbox.context.cleared is True
    assert len(sandbox.page.evaluated) == 1


@pytest.mark.asyncio
async def test_closed_sandbox_has_no_session():
    with pytest.raises(ChannelSendError):
        await _sandbox().read_session_credentials()


def test_relative_page_url_becomes_file_uri():
    assert resolve_page_url("https://example.test/") == "https://example.test/"
    assert resolve_page_url("./public/js-rpc/index.html").startswith("file://")


def test_runtime_uses_browser_transport_by_default():
    runtime = ServiceRuntime.from_config({"rpc": {"timeout_seconds": 3}})

    assert runtime.nats is None
    assert runtime.broker.timeout_s == 3.0
    assert runtime.config_store.path.name == "config.json"
    assert persisted_config_defaults(runtime.cfg)["request"]["cookie"] == ""


def test_runtime_builds_nats_client_for_nats_transport():
    runtime = ServiceRuntime.from_config({"rpc": {"transport": "nats"}})
    assert runtime.nats is not None


class FailingSandbox:
    def __init__(self) -> None:
        self.closed = False

    async def open(self) -> None:
        raise RuntimeError("chromium executable not found")

    async def close(self) -> None:
        self.closed = True


class RecordingHttp:
    def __init__(self) -> None:
        self.closed = False

    async def close(self) -> None:
        self.closed = True


@pytest.mark.asyncio
async def test_failed_open_releases_started_resources(tmp_path):
    sandbox = FailingSandbox()
    http = RecordingHttp()
    runtime = ServiceRuntime(
        cfg={},
        broker=RpcBroker(),
        config_store=ConfigStore(tmp_path / "config.json"),
        sandbox=sandbox,
        http=http,
    )

    with pytest.raises(RuntimeError):
        await runtime.open()

    assert sandbox.closed is True
    assert http.closed is True
    assert runtime.broker.closed is True

    # A second close after the failed open is a no-op.
    await runtime.close()
