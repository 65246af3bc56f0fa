from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from core.app_config import AppConfig, config_to_dict
from core.config_defaults import DEFAULT_BROWSER_USER_AGENT
from core.utils import resolve_repo_path
from infra.browser_sandbox import BrowserSandbox
from infra.config_store import ConfigStore
from infra.http_client import AuthenticatedHttpClient
from infra.nats_client import NATSClient
from infra.observability.otel import init_otel, shutdown_otel
from infra.rpc.broker import RpcBroker
from infra.rpc.channels import NatsRpcChannel


logger = logging.getLogger(__name__)


def persisted_config_defaults(cfg: Dict[str, Any]) -> Dict[str, Any]:
    browser_cfg = cfg.get("browser") or {}
    return {
        "request": {
            "cookie": "",
            "user_agent": browser_cfg.get("user_agent") or DEFAULT_BROWSER_USER_AGENT,
        },
    }


@dataclass
class ServiceRuntime:
    """Owns the broker and its collaborators; opens and closes them in order."""

    cfg: Dict[str, Any]
    broker: RpcBroker
    config_store: ConfigStore
    sandbox: BrowserSandbox
    http: AuthenticatedHttpClient
    nats: Optional[NATSClient] = None
    service_name: Optional[str] = None
    channel: Any = None
    _opened: bool = False
    _otel_ready: bool = False

    @classmethod
    def from_config(
        cls,
        config: Optional[AppConfig | Dict[str, Any]] = None,
        *,
        service_name: Optional[str] = None,
    ) -> "ServiceRuntime":
        cfg = config_to_dict(config)
        rpc_cfg = cfg.get("rpc") or {}
        paths_cfg = cfg.get("paths") or {}
        http_cfg = cfg.get("http") or {}

        config_store = ConfigStore(
            resolve_repo_path(paths_cfg.get("config_path")),
            defaults=persisted_config_defaults(cfg),
        )
        nats = NATSClient(config=cfg.get("nats") or {}) if rpc_cfg.get("transport") == "nats" else None
        return cls(
            cfg=cfg,
            broker=RpcBroker(
                timeout_s=float(rpc_cfg.get("timeout_seconds") or 0.0),
                debug=bool(rpc_cfg.get("debug")),
            ),
            config_store=config_store,
            sandbox=BrowserSandbox.from_config(cfg.get("browser") or {}),
            http=AuthenticatedHttpClient(
                config_store,
                timeout_s=float(http_cfg.get("timeout_seconds") or 20.0),
            ),
            nats=nats,
            service_name=service_name,
        )

    async def open(self) -> None:
        if self._opened:
            return
        # Marked open up front so close() releases whatever a failed open started.
        self._opened = True
        try:
            self._otel_ready = init_otel(cfg=self.cfg, service_name=self.service_name)
            await self.config_store.reload_config()
            # The browser always runs: it holds the login session even when
            # js-rpc requests travel over NATS.
            await self.sandbox.open()
            if self.nats is not None:
                await self.nats.connect()
                rpc_cfg = self.cfg.get("rpc") or {}
                protocol_cfg = self.cfg.get("protocol") or {}
                self.channel = NatsRpcChannel(
                    self.nats,
                    context=str(rpc_cfg.get("context") or "signer"),
                    protocol_version=str(protocol_cfg.get("version")),
                )
            else:
                self.channel = self.sandbox.channel()
            await self.channel.bind(self.broker)
        except BaseException:
            logger.error("ServiceRuntime open failed; closing partially opened resources")
            await self.close()
            raise

    async def close(self) -> None:
        if not self._opened:
            return
        self.broker.shutdown()
        if self.nats is not None:
            try:
                await self.nats.close()
            except Exception as exc:
                logger.warning("ServiceRuntime NATS close failed: %s", exc, exc_info=True)
        try:
            await self.sandbox.close()
        except Exception as exc:
            logger.warning("ServiceRuntime browser close failed: %s", exc, exc_info=True)
        try:
            await self.http.close()
        finally:
            if self._otel_ready:
                shutdown_otel()
                self._otel_ready = False
            self._opened = False
