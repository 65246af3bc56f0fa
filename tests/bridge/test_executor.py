import asyncio
from typing import List

import pytest

from services.bridge.executor import SingleFlightExecutor


class FakeAuthSync:
    def __init__(self, events: List[str], *, fail: bool = False) -> None:
        self.events = events
        self.fail = fail

    async def sync(self) -> str:
        self.events.append("sync")
        if self.fail:
            raise RuntimeError("cookie store unavailable")
        return ""


@pytest.mark.asyncio
async def test_run_job_syncs_then_runs_body():
    events: List[str] = []
    finished: List[bool] = []

    async def body():
        events.append("body")

    executor = SingleFlightExecutor(FakeAuthSync(events), body, on_finished=lambda: finished.append(True))

    assert await executor.run_job() == "success"
    assert events == ["sync", "body"]
    assert finished == [True]
    assert executor.is_running is False


@pytest.mark.asyncio
async def test_second_start_while_running_is_busy_and_skips_sync():
    events: List[str] = []
    release = asyncio.Event()

    async def body():
        events.append("body")
        await release.wait()

    executor = SingleFlightExecutor(FakeAuthSync(events), body)

    first = asyncio.create_task(executor.run_job())
    for _ in range(100):
        if "body" in events:
            break
        await asyncio.sleep(0)

    assert executor.is_running is True
    assert await executor.run_job() == "busy"
    assert executor.launch_job() == "busy"
    assert events == ["sync", "body"]

    release.set()
    assert await first == "success"
    assert executor.is_running is False


@pytest.mark.asyncio
async def test_failing_body_returns_to_idle():
    events: List[str] = []

    async def body():
        raise ValueError("job broke")

    executor = SingleFlightExecutor(FakeAuthSync(events), body)

    with pytest.raises(ValueError):
        await executor.run_job()

    assert executor.is_running is False
    assert isinstance(executor.last_error, ValueError)


@pytest.mark.asyncio
async def test_failing_sync_skips_body_and_returns_to_idle():
    events: List[str] = []

    async def body():
        events.append("body")

    executor = SingleFlightExecutor(FakeAuthSync(events, fail=True), body)

    with pytest.raises(RuntimeError):
        await executor.run_job()

    assert events == ["sync"]
    assert executor.is_running is False


@pytest.mark.asyncio
async def test_launch_job_returns_before_body_completes():
    events: List[str] = []
    release = asyncio.Event()

    async def body():
        events.append("body")
        await release.wait()
        events.append("done")

    executor = SingleFlightExecutor(FakeAuthSync(events), body)

    assert executor.launch_job() == "success"
    assert executor.is_running is True
    assert events == []

    release.set()
    await executor.wait_idle()
    assert events == ["sync", "body", "done"]
    assert executor.is_running is False


@pytest.mark.asyncio
async def test_launched_failure_is_logged_and_executor_stays_usable():
    calls: List[str] = []

    async def body():
        calls.append("body")
        if len(calls) == 1:
            raise RuntimeError("first run fails")

    executor = SingleFlightExecutor(FakeAuthSync([]), body)

    assert executor.launch_job() == "success"
    await executor.wait_idle()
    assert executor.is_running is False
    assert isinstance(executor.last_error, RuntimeError)

    assert await executor.run_job() == "success"
    assert executor.last_error is None


@pytest.mark.asyncio
async def test_shutdown_cancels_running_job():
    release = asyncio.Event()

    async def body():
        await release.wait()

    executor = SingleFlightExecutor(FakeAuthSync([]), body)
    executor.launch_job()
    await asyncio.sleep(0)

    await executor.shutdown()

    assert executor.is_running is False
