from pathlib import Path
import sys, asyncio
import re
from typing import Any

REPO_ROOT = Path(__file__).resolve().parents[1]
_TARGET_SAFE_RE = re.compile(r"[^A-Za-z0-9_-]+")

def set_loop_policy():
    if sys.platform.startswith("win"):
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

def safe_target_label(value: Any) -> str:
    """
    Normalize a label for NATS subject tokens.
    Non [A-Za-z0-9_-] chars are replaced with "_".
    """
    text = "" if value is None else str(value)
    safe = _TARGET_SAFE_RE.sub("_", text)
    return safe or "_"

def resolve_repo_path(raw: Any) -> Path:
    """Resolve a configured path; relative paths are anchored at the repo root."""
    path = Path(str(raw or "")).expanduser()
    if not path.is_absolute():
        path = REPO_ROOT / path
    return path.resolve()
