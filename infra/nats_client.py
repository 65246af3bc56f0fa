import os
import ssl
import logging
from typing import Callable, Dict, Any, Optional, Set

from nats.aio.client import Client as NATS

from core.config_defaults import DEFAULT_NATS_CERT_DIR, DEFAULT_NATS_SERVERS
from core.subject import parse_subject
from infra.observability.otel import get_tracer, traced


logger = logging.getLogger("NATSClient")
_TRACER = get_tracer("infra.nats_client")


def _publish_span_attrs(args: Dict[str, Any]) -> Dict[str, Any]:
    subject = str(args.get("subject"))
    attrs: Dict[str, Any] = {
        "messaging.system": "nats",
        "messaging.destination": subject,
        "messaging.operation": "publish",
    }
    parts = parse_subject(subject)
    if parts:
        attrs["jsrpc.context"] = parts.context
        attrs["jsrpc.category"] = parts.category
    return attrs


class NATSClient:
    """Thin wrapper around core NATS pub/sub with optional TLS.

    TLS, the cert directory and server addresses all come from config so local
    plain-text runs need no certificates.
    """

    def __init__(
        self,
        servers: Optional[list[str]] = None,
        cert_dir: Optional[str] = None,
        tls_enabled: Optional[bool] = None,
        config: Optional[Dict[str, Any]] = None,
    ):
        cfg = config or {}

        raw_servers = (
            servers
            if isinstance(servers, list)
            else (cfg.get("servers") if isinstance(cfg.get("servers"), list) else None)
        )
        normalized_servers = [
            s.strip() for s in (raw_servers or []) if isinstance(s, str) and s.strip()
        ]
        self.servers = normalized_servers or list(DEFAULT_NATS_SERVERS)

        self.tls_enabled = bool(tls_enabled if tls_enabled is not None else cfg.get("tls_enabled", False))
        self.cert_dir = cert_dir or cfg.get("cert_dir") or DEFAULT_NATS_CERT_DIR

        self.nc = NATS()
        self._subscriptions: Set[Any] = set()

    @property
    def is_connected(self) -> bool:
        return bool(self.nc.is_connected)

    def _build_ssl_context(self) -> Optional[ssl.SSLContext]:
        if not self.tls_enabled:
            return None
        ca_file = os.path.join(self.cert_dir, "ca.crt")
        client_cert = os.path.join(self.cert_dir, "client.crt")
        client_key = os.path.join(self.cert_dir, "client.key")

        if not os.path.exists(ca_file):
            logger.warning("Certs not found at %s, TLS handshake may fail", self.cert_dir)

        ssl_ctx = ssl.create_default_context(purpose=ssl.Purpose.SERVER_AUTH)
        try:
            ssl_ctx.load_verify_locations(ca_file)
            ssl_ctx.load_cert_chain(certfile=client_cert, keyfile=client_key)
            ssl_ctx.check_hostname = False
        except FileNotFoundError:
            logger.warning("TLS files not found, switching to non-TLS connection for dev mode")
            return None
        return ssl_ctx

    async def connect(self) -> None:
        ssl_ctx = self._build_ssl_context()
        await self.nc.connect(servers=self.servers, tls=ssl_ctx)
        proto = "tls" if ssl_ctx else "plain"
        logger.info("Connected to %s (%s)", self.servers, proto)

    async def close(self) -> None:
        for sub in list(self._subscriptions):
            try:
                await sub.unsubscribe()
            except Exception as exc:  # noqa: BLE001
                logger.warning("NATS unsubscribe failed: %s", exc)
        self._subscriptions.clear()
        if self.nc.is_connected:
            await self.nc.drain()

    @traced(_TRACER, "nats.publish", attributes_getter=_publish_span_attrs)
    async def publish_core(self, subject: str, payload: bytes) -> None:
        """
        Publish a message using core NATS (fire-and-forget, non-persistent).

        There is no acknowledgement: delivery is whatever the transport offers,
        which is exactly the contract of the isolated-context channel.
        """
        if not self.nc.is_connected:
            raise ConnectionError("NATS not connected")
        await self.nc.publish(subject, payload)

    async def subscribe_core(self, subject: str, callback: Callable):
        """
        Subscribe to a subject using core NATS (non-persistent, at-most-once delivery).

        Args:
            subject (str): The NATS subject to subscribe to.
            callback (Callable): Async callback function with signature (msg) -> Awaitable.

        Returns:
            Subscription: The NATS subscription object. It is also tracked so
            that close() unsubscribes it.
        """
        if not self.nc.is_connected:
            raise ConnectionError("NATS not connected")
        sub = await self.nc.subscribe(subject, cb=callback)
        self._subscriptions.add(sub)
        return sub

