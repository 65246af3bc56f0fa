from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple


@dataclass
class BridgeError(Exception):
    """Base application error with a stable error code and HTTP status."""

    message: str
    code: str = "internal_error"
    http_status: int = 500
    detail: Any = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.message


class BadRequestError(BridgeError):
    def __init__(self, message: str, *, detail: Any = None):
        super().__init__(message=message, code="bad_request", http_status=400, detail=detail)


class ConflictError(BridgeError):
    def __init__(self, message: str, *, detail: Any = None):
        super().__init__(message=message, code="conflict", http_status=409, detail=detail)


class DuplicateCallIdError(ConflictError):
    def __init__(self, call_id: str):
        super().__init__(f"rpc call id already pending: {call_id}", detail={"id": call_id})


class UpstreamUnavailableError(BridgeError):
    def __init__(self, message: str, *, detail: Any = None):
        super().__init__(message=message, code="upstream_unavailable", http_status=503, detail=detail)


class ChannelSendError(UpstreamUnavailableError):
    """The isolated context channel refused or failed to accept a request."""


class BrokerClosedError(BridgeError):
    def __init__(self, message: str = "rpc broker is closed", *, detail: Any = None):
        super().__init__(message=message, code="broker_closed", http_status=503, detail=detail)


class RpcTimeoutError(BridgeError):
    def __init__(self, message: str, *, detail: Any = None):
        super().__init__(message=message, code="rpc_timeout", http_status=504, detail=detail)


class InternalError(BridgeError):
    def __init__(self, message: str, *, detail: Any = None):
        super().__init__(message=message, code="internal_error", http_status=500, detail=detail)


def classify_exception(exc: Exception, *, default_code: str = "internal_error") -> Tuple[str, str, Any]:
    if isinstance(exc, BridgeError):
        return exc.code, exc.message, exc.detail
    if isinstance(exc, KeyError):
        return "not_found", str(exc), None
    if isinstance(exc, ValueError):
        return "bad_request", str(exc), None
    return default_code, str(exc), None


def http_status_from_exception(exc: Exception) -> int:
    if isinstance(exc, BridgeError):
        return exc.http_status
    if isinstance(exc, KeyError):
        return 404
    if isinstance(exc, ValueError):
        return 400
    return 500


def http_detail_from_exception(exc: Exception, *, default_code: str = "internal_error") -> Dict[str, Any]:
    code, message, detail = classify_exception(exc, default_code=default_code)
    data: Dict[str, Any] = {"error_code": code, "error_message": message}
    if detail is not None:
        data["detail"] = detail
    return data
