"""Session search configuration."""
import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _resolve_claude_home() -> Path:
    override = (os.getenv("CLAUDE_HOME") or "").strip()
    if override:
        return Path(override).expanduser()
    return Path.home() / ".claude"


# Root of the Claude Code data directory (history.jsonl + projects/).
# Resolved once here and passed explicitly to every service call.
CLAUDE_HOME = _resolve_claude_home()

SERVER_NAME = "claude-session-search"
SERVER_VERSION = "0.1.0"

LOG_LEVEL = os.getenv("SESSION_SEARCH_LOG_LEVEL", "INFO").upper()

# Observability
OTEL_ENABLED = _env_bool("SESSION_SEARCH_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("SESSION_SEARCH_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("SESSION_SEARCH_OTEL_SERVICE_NAME", "session-search")

# Server settings
HOST = os.getenv("SESSION_SEARCH_HOST", "127.0.0.1")
PORT = _env_int("SESSION_SEARCH_PORT", 8000)
