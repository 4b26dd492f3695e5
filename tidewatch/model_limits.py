"""Resolve the context-window size of a model identifier.

Three tiers are tried in order and the first positive answer wins:

1. the host runtime's ``openclaw models list`` table (``195k`` style column),
2. the provider model lists in ``~/.openclaw/openclaw.json``,
3. a static table of well-known models, then ``DEFAULT_CONTEXT_WINDOW``.

Every tier returns ``None`` for "not found" instead of raising, so
``resolve_model_limit`` always yields a positive integer.
"""
from __future__ import annotations

import json
import logging
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from tidewatch import config
from tidewatch.model_identity import model_lookup_candidates
from tidewatch.observability import record_limit_resolution

logger = logging.getLogger("tidewatch")

_CONTEXT_COLUMN_PATTERN = re.compile(r"\s(\d+)k(?:\s|$)")
_UNKNOWN_MODEL = "unknown"

DEFAULT_MODEL_LIMITS: dict[str, int] = {
    "anthropic/claude-sonnet-4-5": 200_000,
    "anthropic/claude-sonnet-4-6": 200_000,
    "anthropic/claude-opus-4-5": 200_000,
    "anthropic/claude-opus-4-6": 200_000,
    "anthropic/claude-haiku-4-5": 200_000,
    "openai/gpt-4": 128_000,
    "openai/gpt-4-turbo": 128_000,
    "openai/gpt-5.2": 200_000,
    "openai/o1": 200_000,
    "google/gemini-2.5-flash": 1_000_000,
    "google/gemini-3.1-pro": 2_000_000,
    "gemini-2.5-flash": 1_000_000,
    "gemini-3.1-pro": 2_000_000,
    "gemini-3.1-pro-preview": 2_000_000,
    "deepseek/deepseek-chat": 64_000,
    "ollama/llama3.2": 128_000,
    "ollama/qwen2.5:14b": 128_000,
}

CommandRunner = Callable[[list[str], float], Optional[str]]


def run_command(argv: list[str], timeout: float) -> str | None:
    """Run *argv* and return stdout, or ``None`` on any failure or timeout."""
    try:
        completed = subprocess.run(
            argv,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("Model listing command %s unavailable: %s", argv, exc)
        return None
    if completed.returncode != 0:
        logger.debug("Model listing command %s exited with %s", argv, completed.returncode)
        return None
    return completed.stdout


@dataclass
class ResolverContext:
    """Collaborators and memoised lookups for one resolution pass.

    A context is built by the caller (typically once per aggregation) and
    threaded through the parser; the command output and provider config are
    read at most once per context.
    """

    command: list[str] = field(default_factory=lambda: [config.OPENCLAW_BIN, "models", "list"])
    timeout_seconds: float = float(config.MODEL_LIST_TIMEOUT_SECONDS)
    config_path: Path = config.OPENCLAW_CONFIG_PATH
    runner: CommandRunner = run_command
    static_limits: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_MODEL_LIMITS))
    default_limit: int = config.DEFAULT_CONTEXT_WINDOW

    _listing: Optional[str] = field(default=None, init=False, repr=False)
    _listing_loaded: bool = field(default=False, init=False, repr=False)
    _providers: Optional[dict[str, Any]] = field(default=None, init=False, repr=False)

    def model_listing(self) -> str | None:
        if not self._listing_loaded:
            self._listing_loaded = True
            try:
                self._listing = self.runner(list(self.command), self.timeout_seconds)
            except Exception as exc:  # noqa: BLE001 - injected runners must not break resolution
                logger.debug("Model listing runner failed: %s", exc)
                self._listing = None
        return self._listing

    def provider_configs(self) -> dict[str, Any]:
        if self._providers is None:
            self._providers = _load_provider_configs(self.config_path)
        return self._providers


def _load_provider_configs(config_path: Path) -> dict[str, Any]:
    try:
        if not config_path.exists():
            return {}
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.debug("Provider config %s unreadable: %s", config_path, exc)
        return {}
    if not isinstance(data, dict):
        return {}
    models = data.get("models")
    if not isinstance(models, dict):
        return {}
    providers = models.get("providers")
    return providers if isinstance(providers, dict) else {}


def limit_from_cli(model: str, context: ResolverContext) -> int | None:
    """Tier 1: find the model's row in the runtime's model table."""
    output = context.model_listing()
    if not output:
        return None
    for line in output.splitlines():
        if model not in line:
            continue
        match = _CONTEXT_COLUMN_PATTERN.search(line)
        if match:
            return int(match.group(1)) * 1000
    return None


def limit_from_config(model: str, context: ResolverContext) -> int | None:
    """Tier 2: search every configured provider for an exact or partial id match."""
    for provider in context.provider_configs().values():
        if not isinstance(provider, dict):
            continue
        model_defs = provider.get("models")
        if not isinstance(model_defs, list):
            continue
        for model_def in model_defs:
            if not isinstance(model_def, dict):
                continue
            model_id = str(model_def.get("id") or "")
            if not model_id:
                continue
            if model_id == model or model in model_id or model_id in model:
                window = model_def.get("contextWindow")
                if isinstance(window, int) and not isinstance(window, bool) and window > 0:
                    return window
    return None


def limit_from_defaults(model: str, context: ResolverContext) -> int:
    """Tier 3: static table, exact match first, then substring either way."""
    table = context.static_limits
    candidates = [c for c in model_lookup_candidates(model) if c != _UNKNOWN_MODEL]
    for candidate in candidates:
        if candidate in table:
            return table[candidate]
    for candidate in candidates:
        for key, value in table.items():
            if key in candidate or candidate in key:
                return value
    return context.default_limit


def resolve_model_limit(model: str | None, context: ResolverContext | None = None) -> int:
    """Return the context-window size for *model*; never raises, always > 0."""
    ctx = context or ResolverContext()
    name = model.strip() if isinstance(model, str) else ""

    if name and name != _UNKNOWN_MODEL:
        for tier, lookup in (("cli", limit_from_cli), ("config", limit_from_config)):
            limit = lookup(name, ctx)
            if limit is not None and limit > 0:
                record_limit_resolution(tier)
                return limit

    limit = limit_from_defaults(name, ctx)
    record_limit_resolution("defaults")
    if limit > 0:
        return limit
    return config.DEFAULT_CONTEXT_WINDOW
