import json
from pathlib import Path
from typing import Dict, List

import pytest

from infra.config_store import ConfigStore
from services.bridge.auth_sync import AuthSync, encode_cookie_header


class FakeSession:
    def __init__(self, credentials: List[Dict[str, str]]) -> None:
        self.credentials = credentials
        self.reads = 0

    async def read_session_credentials(self) -> List[Dict[str, str]]:
        self.reads += 1
        return list(self.credentials)


class BrokenSession:
    async def read_session_credentials(self) -> List[Dict[str, str]]:
        raise RuntimeError("context closed")


class RecordingStore(ConfigStore):
    def __init__(self, path: Path) -> None:
        super().__init__(path, defaults={"request": {"cookie": "", "user_agent": "UA"}})
        self.calls: List[str] = []

    async def write_config(self, config):
        self.calls.append("write")
        await super().write_config(config)

    async def reload_config(self):
        self.calls.append("reload")
        return await super().reload_config()


def test_encode_cookie_header_keeps_enumeration_order():
    assert encode_cookie_header([{"name": "a", "value": "1"}, {"name": "b", "value": "2"}]) == "a=1;b=2;"
    assert encode_cookie_header([]) == ""


@pytest.mark.asyncio
async def test_sync_writes_cookie_then_reloads(tmp_path: Path):
    store = RecordingStore(tmp_path / "config.json")
    session = FakeSession([{"name": "a", "value": "1"}, {"name": "b", "value": "2"}])

    cookie = await AuthSync(session, store).sync()

    assert cookie == "a=1;b=2;"
    assert store.calls == ["write", "reload"]
    assert store.get(["request", "cookie"]) == "a=1;b=2;"
    on_disk = json.loads((tmp_path / "config.json").read_text(encoding="utf-8"))
    assert on_disk["request"] == {"cookie": "a=1;b=2;", "user_agent": "UA"}


@pytest.mark.asyncio
async def test_sync_with_empty_session_clears_cookie(tmp_path: Path):
    store = ConfigStore(tmp_path / "config.json", defaults={"request": {"cookie": "old=1;"}})

    assert await AuthSync(FakeSession([]), store).sync() == ""
    assert store.get(["request", "cookie"]) == ""


@pytest.mark.asyncio
async def test_session_failure_propagates_without_writing(tmp_path: Path):
    store = RecordingStore(tmp_path / "config.json")

    with pytest.raises(RuntimeError):
        await AuthSync(BrokenSession(), store).sync()

    assert store.calls == []
    assert not (tmp_path / "config.json").exists()
