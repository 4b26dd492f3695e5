"""Tide Watch Configuration."""
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


def _env_path(name: str, default: Path) -> Path:
    value = os.getenv(name)
    if not value or not value.strip():
        return default
    return Path(value.strip()).expanduser()


def _env_list(name: str) -> list[str]:
    value = os.getenv(name) or ""
    return [item.strip() for item in value.split(",") if item.strip()]

# OpenClaw runtime layout
OPENCLAW_HOME = _env_path("TIDE_WATCH_OPENCLAW_HOME", Path.home() / ".openclaw")
OPENCLAW_CONFIG_PATH = OPENCLAW_HOME / "openclaw.json"
AGENTS_BASE_DIR = OPENCLAW_HOME / "agents"
DEFAULT_AGENT_ID = "main"
DEFAULT_SESSION_DIR = AGENTS_BASE_DIR / DEFAULT_AGENT_ID / "sessions"

# Session directory contents
TRANSCRIPT_SUFFIX = ".jsonl"
REGISTRY_FILENAME = "sessions.json"
ARCHIVE_DIRNAME = "archive"

# Model limit resolution
OPENCLAW_BIN = os.getenv("TIDE_WATCH_OPENCLAW_BIN", "openclaw")
MODEL_LIST_TIMEOUT_SECONDS = _env_int("TIDE_WATCH_MODEL_LIST_TIMEOUT", 5)
DEFAULT_CONTEXT_WINDOW = 200_000

# Aggregation
MULTI_AGENT_ENABLED = _env_bool("TIDE_WATCH_MULTI_AGENT", True)
EXCLUDED_AGENTS = _env_list("TIDE_WATCH_EXCLUDE_AGENTS")

# User settings file (refresh / gateway intervals)
SETTINGS_PATH = _env_path(
    "TIDE_WATCH_SETTINGS_PATH",
    Path.home() / ".config" / "tide-watch" / "config.json",
)

# Observability
OTEL_ENABLED = _env_bool("TIDE_WATCH_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("TIDE_WATCH_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("TIDE_WATCH_OTEL_SERVICE_NAME", "tide-watch")
PROM_PORT = _env_int("TIDE_WATCH_PROM_PORT", 9464)

# CORS
FRONTEND_ORIGIN = os.getenv("TIDE_WATCH_FRONTEND_ORIGIN", "http://localhost:3000")
