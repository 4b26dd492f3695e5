"""Summarise append-only JSONL session transcripts into SessionSummary models."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from tidewatch.capacity import classify_severity, compute_percentage
from tidewatch.date_utils import normalize_timestamp, utc_now_iso
from tidewatch.model_limits import ResolverContext, resolve_model_limit
from tidewatch.models import RegistryEntry, SessionSummary, UsageBreakdown
from tidewatch.observability import record_parse_failure

logger = logging.getLogger("tidewatch")

_UNKNOWN = "unknown"


def _record_field(record: dict[str, Any], name: str) -> Any:
    """Look *name* up under ``message`` first, then at the record's top level.

    Assistant turns nest ``model``/``usage`` inside ``message``; summary and
    system records carry them at the top level.
    """
    message = record.get("message")
    if isinstance(message, dict):
        value = message.get(name)
        if value is not None and value != "":
            return value
    return record.get(name)


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return max(0, int(value))


@dataclass
class _TranscriptScan:
    """Accumulator for a newest-to-oldest fold over transcript records.

    Each field latches the first non-default value it sees; once latched it
    is never overwritten. The fold stops at the first usage snapshot with a
    non-zero ``totalTokens``.
    """

    session_id: str = ""
    has_session_id: bool = False
    channel: str = _UNKNOWN
    has_channel: bool = False
    label: Optional[str] = None
    has_label: bool = False
    model: str = _UNKNOWN
    has_model: bool = False
    timestamp: str = ""
    has_timestamp: bool = False
    tokens_used: int = 0
    breakdown: UsageBreakdown = field(default_factory=UsageBreakdown)
    has_usage: bool = False

    def observe(self, record: dict[str, Any]) -> bool:
        """Fold one record in; return True once the usage snapshot is latched."""
        if not self.has_session_id:
            session_key = _text(record.get("sessionKey"))
            if session_key:
                self.session_id = session_key
                self.has_session_id = True

        if not self.has_channel:
            channel = _text(record.get("channel"))
            if channel and channel != _UNKNOWN:
                self.channel = channel
                self.has_channel = True

        if not self.has_label:
            label = _text(record.get("label"))
            if label:
                self.label = label
                self.has_label = True

        if not self.has_model:
            model = _text(_record_field(record, "model"))
            if model and model != _UNKNOWN:
                self.model = model
                self.has_model = True

        if not self.has_timestamp:
            timestamp = normalize_timestamp(record.get("timestamp"))
            if timestamp:
                self.timestamp = timestamp
                self.has_timestamp = True

        usage = _record_field(record, "usage")
        if not self.has_usage and isinstance(usage, dict):
            total = _count(usage.get("totalTokens"))
            if total > 0:
                self.tokens_used = total
                self.breakdown = UsageBreakdown(
                    input=_count(usage.get("input")),
                    output=_count(usage.get("output")),
                    cacheRead=_count(usage.get("cacheRead")),
                    cacheWrite=_count(usage.get("cacheWrite")),
                )
                self.has_usage = True
        return self.has_usage


def _load_records(lines: list[str]) -> list[dict[str, Any]]:
    records: list[dict[str, Any]] = []
    for line in lines:
        try:
            record = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(record, dict):
            records.append(record)
    return records


def parse_session_file(
    path: Path,
    registry: Optional[dict[str, RegistryEntry]] = None,
    context: Optional[ResolverContext] = None,
) -> SessionSummary | None:
    """Parse a single JSONL transcript into a SessionSummary.

    Returns ``None`` when the file is unreadable or has no non-empty lines.
    Registry metadata, when given, overrides the transcript's channel and
    label.
    """
    try:
        # Undecodable bytes only spoil their own line, which then fails json.loads.
        content = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.warning("Skipping unreadable transcript %s: %s", path, exc)
        record_parse_failure("unreadable")
        return None

    # Records are newline-delimited; U+2028/U+2029 may appear raw inside JSON strings.
    lines = [line for line in (raw.strip() for raw in content.split("\n")) if line]
    if not lines:
        return None

    records = _load_records(lines)
    scan = _TranscriptScan()
    for record in reversed(records):
        if scan.observe(record):
            break

    session_id = scan.session_id if scan.has_session_id else path.stem
    channel = scan.channel
    label = scan.label
    display_name: Optional[str] = None

    entry = None
    if registry:
        entry = registry.get(session_id) or registry.get(path.stem)
    if entry is not None:
        if entry.channel and entry.channel != _UNKNOWN:
            channel = entry.channel
        label = entry.label or label
        display_name = entry.displayName

    tokens_max = resolve_model_limit(scan.model, context)
    percentage = compute_percentage(scan.tokens_used, tokens_max)

    return SessionSummary(
        sessionId=session_id,
        channel=channel,
        label=label,
        displayName=display_name,
        model=scan.model,
        tokensUsed=scan.tokens_used,
        tokensMax=tokens_max,
        percentage=percentage,
        status=classify_severity(percentage),
        lastActivity=scan.timestamp or utc_now_iso(),
        messageCount=len(records),
        breakdown=scan.breakdown,
        sessionDir=str(path.parent),
        transcriptFile=path.name,
    )
