"""Helpers for constructing and parsing js-rpc NATS subjects with protocol version."""

from dataclasses import dataclass
from typing import Optional

from .config_defaults import DEFAULT_PROTOCOL_VERSION

SUBJECT_ROOT = "jsrpc"


@dataclass
class SubjectParts:
    protocol_version: str
    context: str
    category: str
    suffix: str


def format_subject(
    context: str,
    category: str,
    suffix: str,
    protocol_version: str = DEFAULT_PROTOCOL_VERSION,
) -> str:
    return ".".join([SUBJECT_ROOT, protocol_version, context, category, suffix])


def rpc_request_subject(context: str, protocol_version: str = DEFAULT_PROTOCOL_VERSION) -> str:
    return format_subject(context, "cmd", "request", protocol_version)


def rpc_response_subject(context: str, protocol_version: str = DEFAULT_PROTOCOL_VERSION) -> str:
    return format_subject(context, "evt", "response", protocol_version)


def parse_subject(subject: str) -> Optional[SubjectParts]:
    parts = subject.split(".")
    if len(parts) < 5 or parts[0] != SUBJECT_ROOT:
        return None

    return SubjectParts(
        protocol_version=parts[1],
        context=parts[2],
        category=parts[3],
        suffix=".".join(parts[4:]),
    )
