"""Resolve user-supplied session identifiers (UUID, label, channel, combo)."""
from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, Optional

from tidewatch import config
from tidewatch.capacity import format_channel_label
from tidewatch.model_limits import ResolverContext
from tidewatch.models import SessionMatch, SessionResolution, SessionSummary
from tidewatch.services.sessions import get_all_sessions

_UUID_PREFIX_PATTERN = re.compile(r"^[0-9a-f]{8}-")


def _match_type(session: SessionSummary, value: str) -> Optional[str]:
    """First matching rule for one session, in priority order. Case-sensitive."""
    if session.label and session.label == value:
        return "exact-label"
    if session.channel == value:
        return "channel"
    combo = format_channel_label(session.channel, session.label)
    if combo == value or value in combo:
        return "combo"
    if session.displayName and value in session.displayName:
        return "display-name"
    return None


def match_sessions(value: str, sessions: Iterable[SessionSummary]) -> list[SessionMatch]:
    matches: list[SessionMatch] = []
    for session in sessions:
        match_type = _match_type(session, value)
        if match_type is None:
            continue
        matches.append(SessionMatch(
            sessionId=session.sessionId,
            channel=session.channel,
            label=session.label,
            matchType=match_type,
            agentId=session.agentId,
        ))
    return matches


def resolve_session_id(
    value: str,
    session_dir: Optional[Path] = None,
    *,
    sessions: Optional[list[SessionSummary]] = None,
    multi_agent: bool = config.MULTI_AGENT_ENABLED,
    exclude_agents: Iterable[str] = (),
    context: Optional[ResolverContext] = None,
) -> SessionResolution:
    """Map *value* to exactly one session id, or report why it cannot.

    Strings starting with eight lowercase hex digits and a hyphen are
    treated as (prefixes of) session UUIDs and returned unvalidated. Anything
    else is matched against the aggregated sessions; several matches are
    reported as ambiguous instead of picking one.
    """
    if _UUID_PREFIX_PATTERN.match(value or ""):
        return SessionResolution(sessionId=value)

    if not (value or "").strip():
        return SessionResolution(error="Session identifier is empty")

    candidates = sessions
    if candidates is None:
        candidates = get_all_sessions(
            session_dir,
            multi_agent=multi_agent,
            exclude_agents=exclude_agents,
            context=context,
        )

    matches = match_sessions(value, candidates)
    if not matches:
        return SessionResolution(error=f"No sessions found matching: {value}")
    if len(matches) == 1:
        return SessionResolution(sessionId=matches[0].sessionId, matches=matches)
    return SessionResolution(
        matches=matches,
        ambiguous=True,
        error=f'Multiple sessions match "{value}". Please be more specific.',
    )
