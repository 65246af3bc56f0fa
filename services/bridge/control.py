from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol, Sequence

from core.utils import resolve_repo_path
from infra.http_client import AuthenticatedHttpClient
from infra.rpc.broker import RpcBroker
from infra.service_runtime import ServiceRuntime
from services.bridge.auth_sync import AuthSync
from services.bridge.executor import SingleFlightExecutor
from services.bridge.jobs import bind_job, import_job

logger = logging.getLogger("BridgeControl")


class SessionAdmin(Protocol):
    async def clear_session(self) -> None: ...


class BridgeControl:
    """The operations the host UI drives: job start, js-rpc trigger/response, authed GET."""

    def __init__(
        self,
        *,
        broker: RpcBroker,
        executor: SingleFlightExecutor,
        auth_sync: AuthSync,
        http: AuthenticatedHttpClient,
        session: SessionAdmin,
        paths: Optional[Dict[str, str]] = None,
    ) -> None:
        self.broker = broker
        self.executor = executor
        self.auth_sync = auth_sync
        self.http = http
        self.session = session
        self.paths = dict(paths or {})

    @classmethod
    def from_runtime(cls, runtime: ServiceRuntime) -> "BridgeControl":
        paths_cfg = runtime.cfg.get("paths") or {}
        job_cfg = runtime.cfg.get("job") or {}
        paths = {
            "config_path": str(runtime.config_store.path),
            "output_path": str(resolve_repo_path(paths_cfg.get("output_path"))),
        }
        auth_sync = AuthSync(runtime.sandbox, runtime.config_store)
        job_body = bind_job(import_job(str(job_cfg.get("entrypoint") or "")), runtime.broker)

        def _on_finished() -> None:
            logger.info("All tasks finished, output at %s", paths["output_path"])

        executor = SingleFlightExecutor(auth_sync, job_body, on_finished=_on_finished)
        return cls(
            broker=runtime.broker,
            executor=executor,
            auth_sync=auth_sync,
            http=runtime.http,
            session=runtime.sandbox,
            paths=paths,
        )

    def request_job_start(self) -> str:
        return self.executor.launch_job()

    async def request_rpc_trigger(self, method: str, args: Sequence[Any] = ()) -> Any:
        """Invoke through the broker; internal failures come back as ``None``."""
        try:
            return await self.broker.invoke(method, list(args))
        except Exception as exc:  # noqa: BLE001
            logger.warning("js-rpc trigger %s failed: %s", method, exc)
            return None

    def deliver_rpc_response(self, call_id: str, value: Any) -> bool:
        return self.broker.on_response(call_id, value)

    async def http_get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        await self.auth_sync.sync()
        return await self.http.get(url, params)

    def path_config(self) -> Dict[str, str]:
        return dict(self.paths)

    async def clear_session(self) -> None:
        await self.session.clear_session()

    def health(self) -> Dict[str, Any]:
        return {
            "status": "ok",
            "job_running": self.executor.is_running,
            "pending_rpc": self.broker.pending_count,
            "broker_closed": self.broker.closed,
        }

    async def shutdown(self) -> None:
        await self.executor.shutdown()
