import asyncio

import pytest

from core.errors import DuplicateCallIdError
from infra.rpc.registry import CorrelationRegistry, PendingCall


def _call(loop: asyncio.AbstractEventLoop, call_id: str) -> PendingCall:
    return PendingCall(id=call_id, method="sign", args=[call_id], completion=loop.create_future())


def test_put_then_take_removes_entry() -> None:
    loop = asyncio.new_event_loop()
    try:
        registry = CorrelationRegistry()
        call = _call(loop, "task-1-a")
        registry.put(call.id, call)

        assert "task-1-a" in registry
        assert len(registry) == 1
        assert registry.take("task-1-a") is call
        assert "task-1-a" not in registry
        assert registry.take("task-1-a") is None
    finally:
        loop.close()


def test_put_rejects_id_already_pending() -> None:
    loop = asyncio.new_event_loop()
    try:
        registry = CorrelationRegistry()
        registry.put("dup", _call(loop, "dup"))
        with pytest.raises(DuplicateCallIdError):
            registry.put("dup", _call(loop, "dup"))
        assert len(registry) == 1
    finally:
        loop.close()


def test_take_unknown_id_reports_not_found() -> None:
    assert CorrelationRegistry().take("never") is None


def test_pending_call_resolves_only_once() -> None:
    loop = asyncio.new_event_loop()
    try:
        call = _call(loop, "x")
        assert call.resolve("first") is True
        assert call.resolve("second") is False
        assert call.fail(RuntimeError("late")) is False
        assert call.completion.result() == "first"
    finally:
        loop.close()


def test_drain_empties_registry() -> None:
    loop = asyncio.new_event_loop()
    try:
        registry = CorrelationRegistry()
        for call_id in ("a", "b", "c"):
            registry.put(call_id, _call(loop, call_id))
        drained = registry.drain()
        assert sorted(c.id for c in drained) == ["a", "b", "c"]
        assert len(registry) == 0
    finally:
        loop.close()
