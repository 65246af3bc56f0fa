from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.config_defaults import (
    DEFAULT_API_LISTEN_HOST,
    DEFAULT_API_PORT,
    DEFAULT_BROWSER_HEADLESS,
    DEFAULT_BROWSER_PAGE_URL,
    DEFAULT_BROWSER_RESPONSE_BINDING,
    DEFAULT_BROWSER_USER_AGENT,
    DEFAULT_BROWSER_VIEWPORT_HEIGHT,
    DEFAULT_BROWSER_VIEWPORT_WIDTH,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DEFAULT_JOB_ENTRYPOINT,
    DEFAULT_NATS_CERT_DIR,
    DEFAULT_NATS_SERVERS,
    DEFAULT_NATS_TLS_ENABLED,
    DEFAULT_OBS_OTEL_ENABLED,
    DEFAULT_OBS_OTEL_OTLP_ENDPOINT,
    DEFAULT_OBS_OTEL_SAMPLER_RATIO,
    DEFAULT_OBS_OTEL_SERVICE_NAME,
    DEFAULT_OBS_OTEL_SERVICE_NAMESPACE,
    DEFAULT_OBS_OTEL_SERVICE_VERSION,
    DEFAULT_PATHS_CONFIG_PATH,
    DEFAULT_PATHS_OUTPUT_PATH,
    DEFAULT_PROTOCOL_VERSION,
    DEFAULT_RPC_CONTEXT,
    DEFAULT_RPC_DEBUG,
    DEFAULT_RPC_TIMEOUT_SECONDS,
    DEFAULT_RPC_TRANSPORT,
    default_config,
)
from core.config_loader import (
    _load_raw_config,
    apply_defaults,
    apply_env_overrides,
    apply_shortcut_env_overrides,
)


class ProtocolConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    version: str = DEFAULT_PROTOCOL_VERSION


class NatsConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    servers: list[str] = Field(default_factory=lambda: list(DEFAULT_NATS_SERVERS))
    tls_enabled: bool = DEFAULT_NATS_TLS_ENABLED
    cert_dir: str = DEFAULT_NATS_CERT_DIR


class RpcConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    transport: Literal["browser", "nats"] = DEFAULT_RPC_TRANSPORT
    context: str = DEFAULT_RPC_CONTEXT
    # 0 disables the deadline: a call waits until the isolated context answers.
    timeout_seconds: float = Field(default=DEFAULT_RPC_TIMEOUT_SECONDS, ge=0.0)
    debug: bool = DEFAULT_RPC_DEBUG


class BrowserConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    headless: bool = DEFAULT_BROWSER_HEADLESS
    page_url: str = DEFAULT_BROWSER_PAGE_URL
    user_agent: str = DEFAULT_BROWSER_USER_AGENT
    viewport_width: int = DEFAULT_BROWSER_VIEWPORT_WIDTH
    viewport_height: int = DEFAULT_BROWSER_VIEWPORT_HEIGHT
    response_binding: str = DEFAULT_BROWSER_RESPONSE_BINDING


class JobConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    entrypoint: str = DEFAULT_JOB_ENTRYPOINT


class PathsConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    config_path: str = DEFAULT_PATHS_CONFIG_PATH
    output_path: str = DEFAULT_PATHS_OUTPUT_PATH


class HttpConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS


class ApiConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    listen_host: str = DEFAULT_API_LISTEN_HOST
    port: int = DEFAULT_API_PORT


class ObservabilityOTelConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    enabled: bool = DEFAULT_OBS_OTEL_ENABLED
    service_namespace: str = DEFAULT_OBS_OTEL_SERVICE_NAMESPACE
    service_name: str = DEFAULT_OBS_OTEL_SERVICE_NAME
    service_version: str = DEFAULT_OBS_OTEL_SERVICE_VERSION
    otlp_endpoint: str = DEFAULT_OBS_OTEL_OTLP_ENDPOINT
    sampler_ratio: float = DEFAULT_OBS_OTEL_SAMPLER_RATIO


class ObservabilityConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    otel: ObservabilityOTelConfig = Field(default_factory=ObservabilityOTelConfig)


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    protocol: ProtocolConfig = Field(default_factory=ProtocolConfig)
    nats: NatsConfig = Field(default_factory=NatsConfig)
    rpc: RpcConfig = Field(default_factory=RpcConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    job: JobConfig = Field(default_factory=JobConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


def load_app_config(path: Optional[Path] = None) -> AppConfig:
    raw = _load_raw_config(path=path)
    return AppConfig.model_validate(raw)


def normalize_config(config: Optional[AppConfig | Dict[str, Any]]) -> AppConfig:
    if config is None:
        return load_app_config()
    if isinstance(config, AppConfig):
        return config
    if isinstance(config, dict):
        raw = apply_shortcut_env_overrides(dict(config))
        raw = apply_env_overrides(raw)
        raw = apply_defaults(raw, default_config())
        return AppConfig.model_validate(raw)
    raise TypeError("config must be AppConfig, dict, or None")


def config_to_dict(config: Optional[AppConfig | Dict[str, Any]]) -> Dict[str, Any]:
    return normalize_config(config).model_dump(mode="python")
