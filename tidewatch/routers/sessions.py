"""HTTP API for session capacity, identifier resolution and archiving."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from tidewatch import config
from tidewatch.agents import discover_agents
from tidewatch.capacity import (
    filter_by_activity_age,
    filter_by_threshold,
    sessions_older_than,
    sort_by_capacity,
    summarize_by_agent,
)
from tidewatch.date_utils import parse_duration_hours
from tidewatch.models import (
    Agent,
    AgentCapacitySummary,
    ArchiveResult,
    SessionResolution,
    SessionSummary,
)
from tidewatch.services.archive import archive_sessions
from tidewatch.services.recommendations import get_recommendations
from tidewatch.services.resolution import resolve_session_id
from tidewatch.services.sessions import get_all_sessions
from tidewatch.settings import SettingsError, load_settings, save_settings

sessions_router = APIRouter(prefix="/api", tags=["sessions"])


class ArchiveRequest(BaseModel):
    sessionIds: list[str] = Field(default_factory=list)
    olderThan: Optional[str] = None
    minCapacity: Optional[float] = None
    dryRun: bool = True
    agent: Optional[str] = None
    multiAgent: bool = config.MULTI_AGENT_ENABLED
    excludeAgents: list[str] = Field(default_factory=list)
    sessionDir: Optional[str] = None


class RecommendationsResponse(BaseModel):
    recommendations: list[str]


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


def _collect(
    session_dir: Optional[str],
    multi_agent: bool,
    exclude_agents: list[str],
    agent: Optional[str],
) -> list[SessionSummary]:
    return get_all_sessions(
        Path(session_dir) if session_dir else None,
        multi_agent=multi_agent,
        exclude_agents=exclude_agents or config.EXCLUDED_AGENTS,
        agent_id=agent or None,
    )


@sessions_router.get("/sessions", response_model=list[SessionSummary])
def list_sessions(
    threshold: float = 0,
    activeHours: Optional[float] = None,
    agent: Optional[str] = None,
    multiAgent: bool = config.MULTI_AGENT_ENABLED,
    excludeAgents: str = "",
    sessionDir: Optional[str] = None,
):
    """Sessions sorted by capacity, highest first."""
    sessions = _collect(sessionDir, multiAgent, _split_csv(excludeAgents), agent)
    if threshold > 0:
        sessions = filter_by_threshold(sessions, threshold)
    if activeHours is not None:
        if activeHours <= 0:
            raise HTTPException(status_code=400, detail="activeHours must be positive")
        sessions = filter_by_activity_age(sessions, activeHours)
    return sort_by_capacity(sessions)


@sessions_router.get("/sessions/resolve", response_model=SessionResolution)
def resolve_session(
    q: str,
    multiAgent: bool = config.MULTI_AGENT_ENABLED,
    excludeAgents: str = "",
    sessionDir: Optional[str] = None,
):
    return resolve_session_id(
        q,
        Path(sessionDir) if sessionDir else None,
        multi_agent=multiAgent,
        exclude_agents=_split_csv(excludeAgents) or config.EXCLUDED_AGENTS,
    )


@sessions_router.get("/sessions/{session_id}", response_model=SessionSummary)
def get_session_detail(
    session_id: str,
    agent: Optional[str] = None,
    multiAgent: bool = config.MULTI_AGENT_ENABLED,
    sessionDir: Optional[str] = None,
):
    sessions = _collect(sessionDir, multiAgent, [], agent)
    matches = [s for s in sessions if s.sessionId == session_id]
    if not matches:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    if len(matches) > 1:
        agents = sorted({s.agentId or config.DEFAULT_AGENT_ID for s in matches})
        raise HTTPException(
            status_code=409,
            detail=f"Session {session_id} exists for several agents ({', '.join(agents)}); pass agent",
        )
    return matches[0]


@sessions_router.get("/recommendations", response_model=RecommendationsResponse)
def list_recommendations(
    agent: Optional[str] = None,
    multiAgent: bool = config.MULTI_AGENT_ENABLED,
    excludeAgents: str = "",
    sessionDir: Optional[str] = None,
):
    sessions = _collect(sessionDir, multiAgent, _split_csv(excludeAgents), agent)
    return RecommendationsResponse(recommendations=get_recommendations(sessions))


@sessions_router.get("/agents", response_model=list[Agent])
def list_agents():
    return discover_agents()


@sessions_router.get("/agents/summary", response_model=list[AgentCapacitySummary])
def agent_summary(
    multiAgent: bool = config.MULTI_AGENT_ENABLED,
    excludeAgents: str = "",
):
    sessions = _collect(None, multiAgent, _split_csv(excludeAgents), None)
    return summarize_by_agent(sort_by_capacity(sessions))


@sessions_router.post("/archive", response_model=ArchiveResult)
def archive(payload: ArchiveRequest):
    if not payload.sessionIds and payload.olderThan is None and payload.minCapacity is None:
        raise HTTPException(
            status_code=400,
            detail="Select sessions with sessionIds, olderThan or minCapacity",
        )

    sessions = _collect(payload.sessionDir, payload.multiAgent, payload.excludeAgents, payload.agent)
    if payload.sessionIds:
        wanted = set(payload.sessionIds)
        sessions = [s for s in sessions if s.sessionId in wanted]
    if payload.olderThan is not None:
        try:
            hours = parse_duration_hours(payload.olderThan)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        sessions = sessions_older_than(sessions, hours)
    if payload.minCapacity is not None:
        sessions = filter_by_threshold(sessions, payload.minCapacity)

    fallback = Path(payload.sessionDir) if payload.sessionDir else None
    return archive_sessions(sessions, fallback, dry_run=payload.dryRun)


@sessions_router.get("/settings")
def get_settings() -> dict[str, int]:
    try:
        return load_settings()
    except SettingsError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@sessions_router.put("/settings")
def update_settings(payload: dict[str, Any]) -> dict[str, int]:
    try:
        save_settings(payload)
        return load_settings()
    except SettingsError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
