from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

logger = logging.getLogger("ConfigStore")


class ConfigStore:
    """Durable JSON configuration plus the in-memory copy readers use.

    Writes go to disk only; readers keep seeing the previous document until
    ``reload_config()`` pulls the file back in.
    """

    def __init__(self, path: Path | str, *, defaults: Optional[Dict[str, Any]] = None) -> None:
        self.path = Path(path)
        self._defaults = copy.deepcopy(defaults or {})
        self._config: Dict[str, Any] = copy.deepcopy(self._defaults)
        self._lock = asyncio.Lock()

    def get_config(self) -> Dict[str, Any]:
        return copy.deepcopy(self._config)

    def get(self, path: Sequence[str], default: Any = None) -> Any:
        cursor: Any = self._config
        for segment in path:
            if not isinstance(cursor, dict) or segment not in cursor:
                return default
            cursor = cursor[segment]
        return cursor

    async def write_config(self, config: Dict[str, Any]) -> None:
        payload = json.dumps(config, ensure_ascii=False, indent=4)
        async with self._lock:
            await asyncio.to_thread(self._atomic_write, payload)

    def _atomic_write(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            tmp.write_text(payload, encoding="utf-8")
            os.replace(tmp, self.path)
        finally:
            tmp.unlink(missing_ok=True)

    async def reload_config(self) -> Dict[str, Any]:
        async with self._lock:
            loaded = await asyncio.to_thread(self._read)
        merged = copy.deepcopy(self._defaults)
        merged.update(loaded)
        self._config = merged
        logger.info("Reloaded config from %s", self.path)
        return self.get_config()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        if not isinstance(data, dict):
            raise ValueError(f"config file {self.path} must hold a JSON object")
        return data


def set_path(config: Dict[str, Any], path: Sequence[str], value: Any) -> Dict[str, Any]:
    cursor = config
    for segment in path[:-1]:
        node = cursor.get(segment)
        if not isinstance(node, dict):
            node = {}
            cursor[segment] = node
        cursor = node
    cursor[path[-1]] = value
    return config
