from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Protocol

from infra.config_store import ConfigStore, set_path

logger = logging.getLogger("AuthSync")

COOKIE_PATH = ("request", "cookie")


class SessionSource(Protocol):
    async def read_session_credentials(self) -> List[Dict[str, str]]: ...


def encode_cookie_header(credentials: Iterable[Mapping[str, Any]]) -> str:
    """``name=value;`` per pair, in the order the session store yields them."""
    return "".join(f"{item['name']}={item.get('value', '')};" for item in credentials)


class AuthSync:
    """Copies the live session cookies into the persisted request config.

    Runs before any call that needs to be authenticated. Failures from the
    session or the store propagate unchanged.
    """

    def __init__(self, session: SessionSource, config_store: ConfigStore) -> None:
        self.session = session
        self.config_store = config_store

    async def sync(self) -> str:
        credentials = await self.session.read_session_credentials()
        cookie = encode_cookie_header(credentials)

        config = self.config_store.get_config()
        set_path(config, COOKIE_PATH, cookie)
        await self.config_store.write_config(config)
        logger.info("Reloading cookie config (%d cookie(s))", len(credentials))
        await self.config_store.reload_config()
        return cookie
