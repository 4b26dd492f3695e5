"""User settings for refresh and gateway polling intervals.

Precedence, lowest to highest: built-in defaults, the JSON settings file,
``TIDE_WATCH_*`` environment variables, explicit overrides.
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional

from tidewatch import config

logger = logging.getLogger("tidewatch")

DEFAULT_SETTINGS: dict[str, int] = {
    "refreshInterval": 10,
    "gatewayInterval": 30,
    "gatewayTimeout": 3,
}

# key -> (minimum, maximum, description); all values are seconds
SETTINGS_RULES: dict[str, tuple[int, int, str]] = {
    "refreshInterval": (1, 300, "Dashboard refresh interval"),
    "gatewayInterval": (5, 600, "Gateway status check interval"),
    "gatewayTimeout": (1, 30, "Gateway command timeout"),
}

_ENV_KEYS: dict[str, str] = {
    "TIDE_WATCH_REFRESH_INTERVAL": "refreshInterval",
    "TIDE_WATCH_GATEWAY_INTERVAL": "gatewayInterval",
    "TIDE_WATCH_GATEWAY_TIMEOUT": "gatewayTimeout",
}


class SettingsError(ValueError):
    """Raised for unknown settings keys or out-of-range values."""


def validate_settings(values: Mapping[str, Any]) -> dict[str, int]:
    validated: dict[str, int] = {}
    for key, value in values.items():
        rule = SETTINGS_RULES.get(key)
        if rule is None:
            raise SettingsError(
                f"Unknown config key: {key} (expected one of {', '.join(SETTINGS_RULES)})"
            )
        minimum, maximum, description = rule
        try:
            number = int(value)
        except (TypeError, ValueError):
            number = None
        if isinstance(value, bool) or number is None or not minimum <= number <= maximum:
            raise SettingsError(
                f"Invalid {key}: must be between {minimum} and {maximum} seconds ({description})"
            )
        validated[key] = number
    return validated


def _load_settings_file(path: Path) -> dict[str, int]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise SettingsError("settings file must contain a JSON object")
        return validate_settings(data)
    except (OSError, ValueError) as exc:
        logger.warning("Could not load settings file %s, continuing with defaults: %s", path, exc)
        return {}


def _load_env_settings(environ: Mapping[str, str]) -> dict[str, int]:
    values = {key: environ[name] for name, key in _ENV_KEYS.items() if environ.get(name)}
    return validate_settings(values) if values else {}


def load_settings(
    overrides: Optional[Mapping[str, Any]] = None,
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> dict[str, int]:
    """Merge defaults, file, environment and *overrides* into validated settings.

    An invalid settings file is logged and ignored; invalid environment values
    or overrides raise ``SettingsError``.
    """
    merged = dict(DEFAULT_SETTINGS)
    merged.update(_load_settings_file(path or config.SETTINGS_PATH))
    merged.update(_load_env_settings(os.environ if environ is None else environ))
    if overrides:
        merged.update(validate_settings(overrides))
    return merged


def save_settings(values: Mapping[str, Any], path: Optional[Path] = None) -> Path:
    """Validate *values*, merge them into the settings file and write it user-only."""
    validated = validate_settings(values)
    target = path or config.SETTINGS_PATH
    stored = {**_load_settings_file(target), **validated}
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    target.write_text(json.dumps(stored, indent=2), encoding="utf-8")
    os.chmod(target, 0o600)
    return target
