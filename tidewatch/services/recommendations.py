"""Turn classified session capacities into suggested operator actions."""
from __future__ import annotations

from typing import Iterable

from tidewatch import config
from tidewatch.capacity import classify_severity, sort_by_capacity
from tidewatch.models import SessionSummary

ALL_HEALTHY = "All sessions have healthy capacity"
_SWITCH_CEILING = 50.0
_URGENT_TEMPLATES = {
    "critical": "URGENT: Reset {ref} immediately ({pct}%)",
    "high": "Reset {ref} soon ({pct}%)",
    "elevated": "Consider wrapping up {ref} ({pct}%)",
}
_SEVERITY_ORDER = ("critical", "high", "elevated")


def _agent_of(session: SessionSummary) -> str:
    return session.agentId or config.DEFAULT_AGENT_ID


def _session_ref(session: SessionSummary) -> str:
    ref = f"{session.channel}/{session.sessionId[:8]}"
    agent_name = session.agentName or session.agentId
    if agent_name and agent_name != config.DEFAULT_AGENT_ID:
        return f"{agent_name}:{ref}"
    return ref


def get_recommendations(sessions: Iterable[SessionSummary]) -> list[str]:
    """Ordered suggestions, never empty.

    One line per critical, high and elevated session (most urgent first),
    then for each agent holding a high or critical session one suggestion to
    move work to that agent's own least-loaded session under 50%.
    """
    ordered = sort_by_capacity(sessions)
    by_severity: dict[str, list[SessionSummary]] = {severity: [] for severity in _SEVERITY_ORDER}
    for session in ordered:
        severity = classify_severity(session.percentage)
        if severity in by_severity:
            by_severity[severity].append(session)

    recommendations: list[str] = []
    for severity in _SEVERITY_ORDER:
        for session in by_severity[severity]:
            recommendations.append(
                _URGENT_TEMPLATES[severity].format(ref=_session_ref(session), pct=session.percentage)
            )

    pressured_agents: list[str] = []
    for session in by_severity["critical"] + by_severity["high"]:
        agent = _agent_of(session)
        if agent not in pressured_agents:
            pressured_agents.append(agent)

    for agent in pressured_agents:
        candidates = [
            s for s in ordered
            if _agent_of(s) == agent and s.percentage < _SWITCH_CEILING
        ]
        if not candidates:
            continue
        best = min(candidates, key=lambda s: s.percentage)
        recommendations.append(f"Switch active work to {_session_ref(best)} ({best.percentage}%)")

    if not recommendations:
        recommendations.append(ALL_HEALTHY)
    return recommendations
