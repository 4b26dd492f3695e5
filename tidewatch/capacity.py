"""Capacity math, filtering, sorting and severity classification.

Everything here is a pure function over ``SessionSummary`` lists; nothing
touches the filesystem.
"""
from __future__ import annotations

import math
from collections import OrderedDict
from datetime import datetime
from typing import Iterable, Mapping, Optional, Sequence

from tidewatch import config
from tidewatch.date_utils import hours_since
from tidewatch.models import AgentCapacitySummary, CapacityChange, SessionSummary

SEVERITY_BANDS: tuple[tuple[float, str], ...] = (
    (95.0, "critical"),
    (90.0, "high"),
    (85.0, "elevated"),
    (75.0, "warning"),
)
_TREND_EPSILON = 0.1


def _round_half_up(value: float, digits: int = 1) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def compute_percentage(tokens_used: int, tokens_max: int) -> float:
    """Usage as a percentage of the window, one decimal, ``0`` for non-positive windows."""
    if tokens_max <= 0:
        return 0.0
    return _round_half_up(tokens_used / tokens_max * 100)


def classify_severity(percentage: float) -> str:
    for floor, severity in SEVERITY_BANDS:
        if percentage >= floor:
            return severity
    return "ok"


def filter_by_threshold(sessions: Iterable[SessionSummary], threshold: float) -> list[SessionSummary]:
    return [s for s in sessions if s.percentage >= threshold]


def filter_by_activity_age(
    sessions: Iterable[SessionSummary],
    hours: float,
    now: Optional[datetime] = None,
) -> list[SessionSummary]:
    """Keep sessions active within the last *hours* (boundary inclusive)."""
    kept: list[SessionSummary] = []
    for session in sessions:
        age = hours_since(session.lastActivity, now)
        if age is not None and age <= hours:
            kept.append(session)
    return kept


def sessions_older_than(
    sessions: Iterable[SessionSummary],
    hours: float,
    now: Optional[datetime] = None,
) -> list[SessionSummary]:
    """Keep sessions whose last activity is strictly more than *hours* ago."""
    kept: list[SessionSummary] = []
    for session in sessions:
        age = hours_since(session.lastActivity, now)
        if age is not None and age > hours:
            kept.append(session)
    return kept


def sort_by_capacity(sessions: Iterable[SessionSummary]) -> list[SessionSummary]:
    # sorted() is stable under reverse=True, so ties keep their input order.
    return sorted(sessions, key=lambda s: s.percentage, reverse=True)


def session_key(session: SessionSummary) -> tuple[str, str]:
    """Identity of a summary across aggregations: ``(agentId, sessionId)``."""
    return (session.agentId or config.DEFAULT_AGENT_ID, session.sessionId)


def format_size(num: int) -> str:
    """Compact token count: ``950``, ``18.7k``, ``171k``, ``1.0M``."""
    if num >= 1_000_000:
        return f"{num / 1_000_000:.1f}M"
    if num >= 100_000:
        return f"{math.floor(num / 1000 + 0.5)}k"
    if num >= 1000:
        return f"{num / 1000:.1f}k"
    return str(num)


def format_tokens(used: int, maximum: int, raw: bool = False) -> str:
    if raw:
        return f"{used:,}/{maximum:,}"
    return f"{format_size(used)}/{format_size(maximum)}"


def format_channel_label(channel: str, label: Optional[str]) -> str:
    if label:
        return f"{channel}/{label}"
    return channel


def check_threshold_crossed(
    percentage: float,
    thresholds: Sequence[float],
    warned: Iterable[float] = (),
) -> Optional[float]:
    """Highest threshold at or below *percentage* that has not been warned yet."""
    already = set(warned)
    for threshold in sorted(thresholds, reverse=True):
        if percentage >= threshold and threshold not in already:
            return threshold
    return None


def should_trigger_backup(
    percentage: float,
    trigger_at: Sequence[float],
    backed_up: Iterable[float] = (),
    enabled: bool = True,
) -> Optional[float]:
    if not enabled:
        return None
    return check_threshold_crossed(percentage, trigger_at, backed_up)


def diff_capacity(
    previous: Mapping[tuple[str, str], float],
    current: Iterable[SessionSummary],
) -> dict[tuple[str, str], CapacityChange]:
    """Compare a previous ``session_key -> percentage`` snapshot with *current*."""
    changes: dict[tuple[str, str], CapacityChange] = {}
    for session in current:
        key = session_key(session)
        before = previous.get(key)
        if before is None:
            changes[key] = CapacityChange(type="new")
            continue
        delta = session.percentage - before
        if abs(delta) < _TREND_EPSILON:
            changes[key] = CapacityChange(type="unchanged")
        elif delta > 0:
            changes[key] = CapacityChange(type="increased", delta=_round_half_up(delta))
        else:
            changes[key] = CapacityChange(type="decreased", delta=_round_half_up(abs(delta)))
    return changes


def capacity_snapshot(sessions: Iterable[SessionSummary]) -> dict[tuple[str, str], float]:
    return {session_key(s): s.percentage for s in sessions}


def summarize_by_agent(sessions: Iterable[SessionSummary]) -> list[AgentCapacitySummary]:
    """Per-agent count / average / maximum percentage, in first-seen order."""
    grouped: "OrderedDict[str, list[SessionSummary]]" = OrderedDict()
    names: dict[str, str] = {}
    for session in sessions:
        agent_id = session.agentId or config.DEFAULT_AGENT_ID
        grouped.setdefault(agent_id, []).append(session)
        names.setdefault(agent_id, session.agentName or agent_id)

    summaries: list[AgentCapacitySummary] = []
    for agent_id, members in grouped.items():
        percentages = [s.percentage for s in members]
        summaries.append(AgentCapacitySummary(
            agentId=agent_id,
            agentName=names[agent_id],
            count=len(members),
            avgPercentage=_round_half_up(sum(percentages) / len(percentages)),
            maxPercentage=max(percentages),
        ))
    return summaries
