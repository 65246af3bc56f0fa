from __future__ import annotations

from typing import Any, Dict


DEFAULT_PROTOCOL_VERSION = "v1"

DEFAULT_NATS_SERVERS = ["nats://localhost:4222"]
DEFAULT_NATS_TLS_ENABLED = False
DEFAULT_NATS_CERT_DIR = "./nats-js-test"

DEFAULT_RPC_TRANSPORT = "browser"
DEFAULT_RPC_CONTEXT = "signer"
DEFAULT_RPC_TIMEOUT_SECONDS = 0.0
DEFAULT_RPC_DEBUG = False

DEFAULT_BROWSER_HEADLESS = True
DEFAULT_BROWSER_PAGE_URL = "./public/js-rpc/index.html"
DEFAULT_BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/71.0.3578.98 Safari/537.36"
)
DEFAULT_BROWSER_VIEWPORT_WIDTH = 760
DEFAULT_BROWSER_VIEWPORT_HEIGHT = 10
DEFAULT_BROWSER_RESPONSE_BINDING = "jsRpcResponse"

DEFAULT_JOB_ENTRYPOINT = ""

DEFAULT_PATHS_CONFIG_PATH = "./runtime/config.json"
DEFAULT_PATHS_OUTPUT_PATH = "./runtime/output"

DEFAULT_HTTP_TIMEOUT_SECONDS = 20.0

DEFAULT_API_LISTEN_HOST = "127.0.0.1"
DEFAULT_API_PORT = 8099

DEFAULT_OBS_OTEL_ENABLED = False
DEFAULT_OBS_OTEL_SERVICE_NAMESPACE = "jsrpc"
DEFAULT_OBS_OTEL_SERVICE_NAME = "JsRpcBridge"
DEFAULT_OBS_OTEL_SERVICE_VERSION = "0.1.0"
DEFAULT_OBS_OTEL_OTLP_ENDPOINT = ""
DEFAULT_OBS_OTEL_SAMPLER_RATIO = 1.0


def default_config() -> Dict[str, Any]:
    return {
        "protocol": {"version": DEFAULT_PROTOCOL_VERSION},
        "nats": {
            "servers": list(DEFAULT_NATS_SERVERS),
            "tls_enabled": DEFAULT_NATS_TLS_ENABLED,
            "cert_dir": DEFAULT_NATS_CERT_DIR,
        },
        "rpc": {
            "transport": DEFAULT_RPC_TRANSPORT,
            "context": DEFAULT_RPC_CONTEXT,
            "timeout_seconds": DEFAULT_RPC_TIMEOUT_SECONDS,
            "debug": DEFAULT_RPC_DEBUG,
        },
        "browser": {
            "headless": DEFAULT_BROWSER_HEADLESS,
            "page_url": DEFAULT_BROWSER_PAGE_URL,
            "user_agent": DEFAULT_BROWSER_USER_AGENT,
            "viewport_width": DEFAULT_BROWSER_VIEWPORT_WIDTH,
            "viewport_height": DEFAULT_BROWSER_VIEWPORT_HEIGHT,
            "response_binding": DEFAULT_BROWSER_RESPONSE_BINDING,
        },
        "job": {"entrypoint": DEFAULT_JOB_ENTRYPOINT},
        "paths": {
            "config_path": DEFAULT_PATHS_CONFIG_PATH,
            "output_path": DEFAULT_PATHS_OUTPUT_PATH,
        },
        "http": {"timeout_seconds": DEFAULT_HTTP_TIMEOUT_SECONDS},
        "api": {
            "listen_host": DEFAULT_API_LISTEN_HOST,
            "port": DEFAULT_API_PORT,
        },
        "observability": {
            "otel": {
                "enabled": DEFAULT_OBS_OTEL_ENABLED,
                "service_namespace": DEFAULT_OBS_OTEL_SERVICE_NAMESPACE,
                "service_name": DEFAULT_OBS_OTEL_SERVICE_NAME,
                "service_version": DEFAULT_OBS_OTEL_SERVICE_VERSION,
                "otlp_endpoint": DEFAULT_OBS_OTEL_OTLP_ENDPOINT,
                "sampler_ratio": DEFAULT_OBS_OTEL_SAMPLER_RATIO,
            },
        },
    }
