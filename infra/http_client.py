from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from core.config_defaults import DEFAULT_BROWSER_USER_AGENT, DEFAULT_HTTP_TIMEOUT_SECONDS
from infra.config_store import ConfigStore
from infra.observability.otel import get_tracer, mark_span_error, start_span

logger = logging.getLogger("HttpClient")
_TRACER = get_tracer("infra.http_client")


@dataclass(frozen=True)
class HttpResult:
    ok: bool
    value: Any = None
    status_code: Optional[int] = None
    error: Optional[str] = None


class AuthenticatedHttpClient:
    """Outbound GETs carrying the cookie and user agent from the persisted config.

    The headers are read from the ConfigStore's in-memory copy on every call,
    so a reload after auth sync takes effect for the next request.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        *,
        timeout_s: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config_store = config_store
        self.http_client = httpx.AsyncClient(timeout=timeout_s, transport=transport, follow_redirects=True)

    async def close(self) -> None:
        await self.http_client.aclose()

    def _headers(self) -> Dict[str, str]:
        headers = {
            "User-Agent": str(
                self.config_store.get(["request", "user_agent"]) or DEFAULT_BROWSER_USER_AGENT
            ),
        }
        cookie = self.config_store.get(["request", "cookie"])
        if cookie:
            headers["Cookie"] = str(cookie)
        return headers

    async def get_result(self, url: str, params: Optional[Dict[str, Any]] = None) -> HttpResult:
        with start_span(_TRACER, "http.get", attributes={"url.full": url}) as span:
            try:
                response = await self.http_client.get(url, params=params or None, headers=self._headers())
                span.set_attribute("http.status_code", int(response.status_code))
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                mark_span_error(span, exc)
                logger.warning("GET %s failed with HTTP %s", url, exc.response.status_code)
                return HttpResult(ok=False, status_code=exc.response.status_code, error=str(exc))
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                mark_span_error(span, exc)
                logger.warning("GET %s failed: %s", url, exc)
                return HttpResult(ok=False, error=str(exc))

            content_type = str(response.headers.get("content-type") or "").lower()
            if "json" in content_type:
                try:
                    return HttpResult(ok=True, value=response.json(), status_code=response.status_code)
                except ValueError:
                    pass
            return HttpResult(ok=True, value=response.text, status_code=response.status_code)

    async def get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Best-effort GET: any failure comes back as an empty dict."""
        result = await self.get_result(url, params)
        return result.value if result.ok else {}
