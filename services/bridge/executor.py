from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from core.rpc_protocol import JOB_STATUS_BUSY, JOB_STATUS_SUCCESS
from infra.observability.otel import get_tracer, start_span
from services.bridge.auth_sync import AuthSync

logger = logging.getLogger("BridgeExecutor")
_TRACER = get_tracer("services.bridge.executor")

JobBody = Callable[[], Awaitable[Any]]


class SingleFlightExecutor:
    """Runs at most one job at a time; a second start while running is ``busy``.

    Every run is: auth sync, then the job body, then back to idle no matter
    how either step ended.
    """

    def __init__(
        self,
        auth_sync: AuthSync,
        job_body: JobBody,
        *,
        on_finished: Optional[Callable[[], None]] = None,
    ) -> None:
        self.auth_sync = auth_sync
        self.job_body = job_body
        self.on_finished = on_finished
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self.last_error: Optional[BaseException] = None

    @property
    def is_running(self) -> bool:
        return self._running

    def _claim(self) -> bool:
        # Check and flip with no await in between.
        if self._running:
            return False
        self._running = True
        return True

    async def _run_claimed(self) -> None:
        try:
            with start_span(_TRACER, "job.run", mark_error_on_exception=True):
                logger.info("Job starting")
                await self.auth_sync.sync()
                logger.info("Auth synced, running job body")
                await self.job_body()
            self.last_error = None
            logger.info("Job finished")
            if self.on_finished is not None:
                self.on_finished()
        except Exception as exc:
            self.last_error = exc
            raise
        finally:
            self._running = False

    async def run_job(self) -> str:
        """Run a whole job in the caller's task; failures re-raise after going idle."""
        if not self._claim():
            logger.info("Job start rejected: another job is running")
            return JOB_STATUS_BUSY
        await self._run_claimed()
        return JOB_STATUS_SUCCESS

    def launch_job(self) -> str:
        """Claim the flag and run the job in the background; returns without suspending."""
        if not self._claim():
            logger.info("Job start rejected: another job is running")
            return JOB_STATUS_BUSY
        self._task = asyncio.create_task(self._run_claimed(), name="bridge_job")
        self._task.add_done_callback(self._on_task_done)
        return JOB_STATUS_SUCCESS

    @staticmethod
    def _on_task_done(task: asyncio.Task) -> None:
        if task.cancelled():
            logger.warning("Job cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Job failed: %s", exc, exc_info=exc)

    async def wait_idle(self) -> None:
        task = self._task
        if task is not None and not task.done():
            await asyncio.gather(task, return_exceptions=True)

    async def shutdown(self) -> None:
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            # A task cancelled before its first step never reaches the finally.
            self._running = False
        self._task = None
