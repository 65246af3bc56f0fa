from __future__ import annotations

from contextlib import contextmanager
from functools import wraps
import inspect
import logging
import os
import threading
from typing import Any, Callable, Dict, Iterator, Mapping, Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from opentelemetry.trace import Status, StatusCode


logger = logging.getLogger("OTel")


_state_lock = threading.Lock()
_otel_initialized = False
_otel_enabled = False
_otel_provider: Any = None
_otel_ref_count = 0


def _coerce_bool(value: Any, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    return default


def _coerce_ratio(value: Any, *, default: float) -> float:
    try:
        ratio = float(value)
    except (TypeError, ValueError):
        return default
    return min(1.0, max(0.0, ratio))


def _coerce_str(value: Any, *, default: str = "") -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text if text else default


def _resolve_otel_cfg(cfg: Mapping[str, Any] | None) -> Dict[str, Any]:
    if not isinstance(cfg, Mapping):
        return {}
    obs = cfg.get("observability")
    if not isinstance(obs, Mapping):
        return {}
    otel_cfg = obs.get("otel")
    if not isinstance(otel_cfg, Mapping):
        return {}
    return dict(otel_cfg)


def init_otel(
    *,
    cfg: Mapping[str, Any] | None = None,
    service_name: Optional[str] = None,
) -> bool:
    global _otel_initialized
    global _otel_enabled
    global _otel_provider
    global _otel_ref_count

    with _state_lock:
        if _otel_initialized and _otel_enabled:
            _otel_ref_count += 1
            return _otel_enabled
        if _otel_initialized and not _otel_enabled:
            return False

        _otel_initialized = True
        otel_cfg = _resolve_otel_cfg(cfg)
        if not _coerce_bool(otel_cfg.get("enabled"), default=False):
            _otel_enabled = False
            return False

        resolved_service_name = (
            _coerce_str(service_name)
            or _coerce_str(otel_cfg.get("service_name"))
            or _coerce_str(os.getenv("OTEL_SERVICE_NAME"))
            or "JsRpcBridge"
        )
        service_namespace = (
            _coerce_str(otel_cfg.get("service_namespace"))
            or _coerce_str(os.getenv("OTEL_SERVICE_NAMESPACE"))
            or "jsrpc"
        )
        service_version = _coerce_str(otel_cfg.get("service_version")) or "0.1.0"
        otlp_endpoint = (
            _coerce_str(otel_cfg.get("otlp_endpoint"))
            or _coerce_str(os.getenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT"))
            or _coerce_str(os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT"))
        )
        sampler_ratio = _coerce_ratio(otel_cfg.get("sampler_ratio"), default=1.0)

        resource = Resource.create(
            {
                "service.name": resolved_service_name,
                "service.namespace": service_namespace,
                "service.version": service_version,
            }
        )
        provider = TracerProvider(resource=resource, sampler=ParentBased(TraceIdRatioBased(sampler_ratio)))
        exporter_kwargs: Dict[str, Any] = {}
        if otlp_endpoint:
            exporter_kwargs["endpoint"] = otlp_endpoint
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(**exporter_kwargs)))

        try:
            trace.set_tracer_provider(provider)
        except Exception as exc:  # noqa: BLE001
            logger.warning("OpenTelemetry set_tracer_provider failed: %s", exc)

        _otel_provider = provider
        _otel_enabled = True
        _otel_ref_count = 1
        logger.info(
            "OpenTelemetry enabled service=%s endpoint=%s sampler_ratio=%s",
            resolved_service_name,
            otlp_endpoint or "default",
            sampler_ratio,
        )
        return True


def shutdown_otel() -> None:
    global _otel_ref_count

    with _state_lock:
        if _otel_ref_count > 0:
            _otel_ref_count -= 1
        if _otel_ref_count > 0:
            return
        provider = _otel_provider

    if provider and hasattr(provider, "force_flush"):
        try:
            provider.force_flush()
        except Exception as exc:  # noqa: BLE001
            logger.warning("OpenTelemetry flush failed: %s", exc)


def get_tracer(name: str) -> Any:
    return trace.get_tracer(name)


def _clean_span_attributes(attributes: Mapping[str, Any] | None) -> Dict[str, Any]:
    cleaned: Dict[str, Any] = {}
    if not attributes:
        return cleaned
    for key, value in attributes.items():
        if value is None:
            continue
        cleaned[str(key)] = value
    return cleaned


def set_span_attrs(span: Any, attributes: Mapping[str, Any] | None) -> None:
    if span is None or not attributes:
        return
    for key, value in _clean_span_attributes(attributes).items():
        try:
            span.set_attribute(key, value)
        except Exception:
            continue


@contextmanager
def start_span(
    tracer: Any,
    name: str,
    *,
    attributes: Mapping[str, Any] | None = None,
    mark_error_on_exception: bool = False,
    **kwargs: Any,
) -> Iterator[Any]:
    span_kwargs: Dict[str, Any] = dict(kwargs)
    cleaned_attrs = _clean_span_attributes(attributes)
    if cleaned_attrs:
        span_kwargs["attributes"] = cleaned_attrs
    with tracer.start_as_current_span(name, **span_kwargs) as span:
        try:
            yield span
        except Exception as exc:
            if mark_error_on_exception:
                mark_span_error(span, exc)
            raise


def traced(
    tracer: Any,
    name: str,
    *,
    attributes_getter: Optional[Callable[[Mapping[str, Any]], Mapping[str, Any] | None]] = None,
    mark_error_on_exception: bool = True,
    span_arg: Optional[str] = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Wrap a coroutine function in a span; optionally pass the span as ``span_arg``."""

    def _decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        if not inspect.iscoroutinefunction(func):
            raise TypeError("traced only wraps coroutine functions")
        signature = inspect.signature(func)

        @wraps(func)
        async def _wrapped_async(*args: Any, **kwargs: Any) -> Any:
            attributes = None
            if attributes_getter is not None:
                bound = signature.bind_partial(*args, **kwargs)
                attributes = attributes_getter(dict(bound.arguments))
            with start_span(
                tracer,
                name,
                attributes=attributes,
                mark_error_on_exception=mark_error_on_exception,
            ) as span:
                if span_arg:
                    kwargs = dict(kwargs)
                    kwargs[span_arg] = span
                return await func(*args, **kwargs)

        return _wrapped_async

    return _decorator


def compact_error_message(exc: BaseException, *, max_len: int = 512) -> str:
    text = str(exc).strip()
    if "\n" in text:
        text = text.splitlines()[0].strip()
    if not text:
        text = type(exc).__name__
    return text[:max_len]


def mark_span_error(span: Any, exc: BaseException) -> None:
    if span is None:
        return
    summary = compact_error_message(exc)
    try:
        span.record_exception(exc)
        span.set_attribute("jsrpc.error.type", str(type(exc).__name__))
        span.set_attribute("jsrpc.error.message", summary)
        span.set_status(Status(StatusCode.ERROR, description=summary))
    except Exception:
        pass
