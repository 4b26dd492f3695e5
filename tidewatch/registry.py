"""Companion ``sessions.json`` registry: load channel/label metadata, drop entries."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from tidewatch import config
from tidewatch.models import RegistryEntry

logger = logging.getLogger("tidewatch")


def registry_path(session_dir: Path) -> Path:
    return Path(session_dir) / config.REGISTRY_FILENAME


def _first_text(*values: Any) -> str:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value
    return ""


def _nested(value: dict[str, Any], key: str, field: str) -> Any:
    inner = value.get(key)
    if isinstance(inner, dict):
        return inner.get(field)
    return None


def _coerce_entry(value: dict[str, Any]) -> RegistryEntry:
    channel = _first_text(
        value.get("channel"),
        _nested(value, "deliveryContext", "channel"),
        value.get("lastChannel"),
    ) or "unknown"
    label = _first_text(value.get("groupChannel"), _nested(value, "origin", "label")) or None
    display_name = _first_text(value.get("displayName")) or None
    return RegistryEntry(channel=channel, label=label, displayName=display_name)


def _read_registry(path: Path) -> dict[str, Any] | None:
    """Raw registry document, ``None`` when absent; raises on unreadable/invalid JSON."""
    if not path.exists():
        return None
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("registry root is not a JSON object")
    return data


def _write_registry(path: Path, data: dict[str, Any]) -> None:
    """Replace *path* atomically so the runtime never sees a half-written registry."""
    tmp_path = path.with_name(f".{path.name}.{os.getpid()}.tmp")
    try:
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


def load_session_registry(session_dir: Path) -> dict[str, RegistryEntry]:
    """Map session id -> registry metadata for *session_dir*.

    A missing file yields an empty map; a malformed one is logged and also
    yields an empty map.
    """
    path = registry_path(session_dir)
    try:
        data = _read_registry(path)
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable session registry %s: %s", path, exc)
        return {}
    if data is None:
        return {}

    entries: dict[str, RegistryEntry] = {}
    for value in data.values():
        if not isinstance(value, dict):
            continue
        session_id = value.get("sessionId")
        if not isinstance(session_id, str) or not session_id:
            continue
        entries[session_id] = _coerce_entry(value)
    return entries


def remove_registry_entries(session_dir: Path, session_id: str) -> int:
    """Drop every registry key pointing at *session_id*; return how many went.

    Failures are logged and reported as ``0`` removals: the registry is an
    index, not the source of truth for which transcripts exist.
    """
    path = registry_path(session_dir)
    try:
        data = _read_registry(path)
        if data is None:
            return 0
        stale = [
            key for key, value in data.items()
            if isinstance(value, dict) and value.get("sessionId") == session_id
        ]
        if not stale:
            return 0
        for key in stale:
            del data[key]
        _write_registry(path, data)
        return len(stale)
    except (OSError, ValueError) as exc:
        logger.warning("Could not update session registry %s: %s", path, exc)
        return 0
