"""In-process table of js-rpc calls waiting for the isolated context to answer."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.errors import DuplicateCallIdError


@dataclass
class PendingCall:
    id: str
    method: str
    args: List[Any]
    completion: asyncio.Future = field(repr=False)

    def resolve(self, value: Any) -> bool:
        if self.completion.done():
            return False
        self.completion.set_result(value)
        return True

    def fail(self, exc: BaseException) -> bool:
        if self.completion.done():
            return False
        self.completion.set_exception(exc)
        return True


class CorrelationRegistry:
    """Maps a call id to its PendingCall.

    Every method is synchronous: callers on the event loop get insert-then-return
    and lookup-then-remove as single steps with no suspension point in between.
    """

    def __init__(self) -> None:
        self._calls: Dict[str, PendingCall] = {}

    def put(self, call_id: str, call: PendingCall) -> None:
        if call_id in self._calls:
            raise DuplicateCallIdError(call_id)
        self._calls[call_id] = call

    def take(self, call_id: str) -> Optional[PendingCall]:
        return self._calls.pop(call_id, None)

    def drain(self) -> List[PendingCall]:
        calls = list(self._calls.values())
        self._calls.clear()
        return calls

    def __contains__(self, call_id: object) -> bool:
        return call_id in self._calls

    def __len__(self) -> int:
        return len(self._calls)
