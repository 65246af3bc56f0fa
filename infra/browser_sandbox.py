"""Headless Chromium page that hosts the signing script (the isolated context).

The page is expected to define ``window.__jsRpc.dispatch(method, args, id)`` and
to answer by calling the exposed binding, by default
``window.jsRpcResponse(id, value)``. The page never sees the broker; it only
echoes the id it was handed.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from core.config_defaults import (
    DEFAULT_BROWSER_RESPONSE_BINDING,
    DEFAULT_BROWSER_USER_AGENT,
    DEFAULT_BROWSER_VIEWPORT_HEIGHT,
    DEFAULT_BROWSER_VIEWPORT_WIDTH,
)
from core.errors import ChannelSendError
from core.rpc_protocol import RpcRequest
from core.utils import resolve_repo_path
from infra.rpc.broker import RpcBroker

logger = logging.getLogger("BrowserSandbox")

# Deferred with setTimeout so evaluate() returns before the script runs: the
# send stays one-way even when dispatch() itself awaits for a long time.
_DISPATCH_JS = """([method, args, id]) => {
    setTimeout(() => window.__jsRpc.dispatch(method, args, id), 0);
}"""

_CLEAR_STORAGE_JS = """() => {
    try { window.localStorage.clear(); } catch (e) {}
    try { window.sessionStorage.clear(); } catch (e) {}
}"""


def resolve_page_url(raw: str) -> str:
    text = (raw or "").strip()
    if text.startswith(("http://", "https://", "file://", "about:")):
        return text
    return resolve_repo_path(text).as_uri()


class BrowserRpcChannel:
    def __init__(self, sandbox: "BrowserSandbox") -> None:
        self.sandbox = sandbox

    async def send(self, request: RpcRequest) -> None:
        page = self.sandbox.page
        if page is None:
            raise ChannelSendError("js-rpc sandbox page is not open")
        await page.evaluate(_DISPATCH_JS, [request.method, request.args, request.id])

    async def bind(self, broker: RpcBroker) -> None:
        self.sandbox.broker = broker
        broker.attach_channel(self)


class BrowserSandbox:
    def __init__(
        self,
        *,
        page_url: str,
        headless: bool = True,
        user_agent: str = DEFAULT_BROWSER_USER_AGENT,
        viewport_width: int = DEFAULT_BROWSER_VIEWPORT_WIDTH,
        viewport_height: int = DEFAULT_BROWSER_VIEWPORT_HEIGHT,
        response_binding: str = DEFAULT_BROWSER_RESPONSE_BINDING,
    ) -> None:
        self.page_url = resolve_page_url(page_url)
        self.headless = headless
        self.user_agent = user_agent
        self.viewport = {"width": int(viewport_width), "height": int(viewport_height)}
        self.response_binding = response_binding
        self.broker: Optional[RpcBroker] = None
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    @classmethod
    def from_config(cls, browser_cfg: Dict[str, Any]) -> "BrowserSandbox":
        return cls(
            page_url=str(browser_cfg.get("page_url") or ""),
            headless=bool(browser_cfg.get("headless", True)),
            user_agent=str(browser_cfg.get("user_agent") or DEFAULT_BROWSER_USER_AGENT),
            viewport_width=int(browser_cfg.get("viewport_width") or DEFAULT_BROWSER_VIEWPORT_WIDTH),
            viewport_height=int(browser_cfg.get("viewport_height") or DEFAULT_BROWSER_VIEWPORT_HEIGHT),
            response_binding=str(browser_cfg.get("response_binding") or DEFAULT_BROWSER_RESPONSE_BINDING),
        )

    def channel(self) -> BrowserRpcChannel:
        return BrowserRpcChannel(self)

    async def open(self) -> None:
        if self.page is not None:
            return
        self.playwright = await async_playwright().start()
        self.browser = await self.playwright.chromium.launch(headless=self.headless)
        self.context = await self.browser.new_context(user_agent=self.user_agent, viewport=self.viewport)
        await self.context.expose_binding(self.response_binding, self._on_response_binding)
        self.page = await self.context.new_page()
        await self.page.goto(self.page_url)
        logger.info("js-rpc sandbox loaded %s (headless=%s)", self.page_url, self.headless)

    async def close(self) -> None:
        if self.context is not None:
            await self.context.close()
        if self.browser is not None:
            await self.browser.close()
        if self.playwright is not None:
            await self.playwright.stop()
        self.page = None
        self.context = None
        self.browser = None
        self.playwright = None

    def _on_response_binding(self, source: Any, call_id: Any, value: Any = None) -> bool:
        _ = source
        if self.broker is None:
            logger.warning("js-rpc response id=%s arrived before a broker was bound", call_id)
            return False
        return self.broker.on_response(str(call_id), value)

    async def read_session_credentials(self) -> List[Dict[str, str]]:
        if self.context is None:
            raise ChannelSendError("js-rpc sandbox is not open")
        cookies = await self.context.cookies()
        return [
            {"name": str(c["name"]), "value": str(c.get("value", ""))}
            for c in cookies
            if "name" in c
        ]

    async def clear_session(self) -> None:
        if self.context is None:
            raise ChannelSendError("js-rpc sandbox is not open")
        await self.context.clear_cookies()
        if self.page is not None:
            await self.page.evaluate(_CLEAR_STORAGE_JS)
        logger.info("Cleared sandbox cookies and web storage")
