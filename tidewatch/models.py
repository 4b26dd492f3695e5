"""Pydantic models shared by the capacity core and the HTTP layer."""
from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Optional

from tidewatch import config

# ── Session-related models ──────────────────────────────────────────

class UsageBreakdown(BaseModel):
    input: int = 0
    output: int = 0
    cacheRead: int = 0
    cacheWrite: int = 0


class SessionSummary(BaseModel):
    sessionId: str
    channel: str = "unknown"
    label: Optional[str] = None
    displayName: Optional[str] = None
    model: str = "unknown"
    tokensUsed: int = 0
    tokensMax: int = config.DEFAULT_CONTEXT_WINDOW
    percentage: float = 0.0
    status: str = "ok"  # "ok" | "warning" | "elevated" | "high" | "critical"
    lastActivity: str = ""
    messageCount: int = 0
    breakdown: UsageBreakdown = Field(default_factory=UsageBreakdown)
    agentId: Optional[str] = None
    agentName: Optional[str] = None
    sessionDir: Optional[str] = None
    transcriptFile: Optional[str] = None


class RegistryEntry(BaseModel):
    channel: str = "unknown"
    label: Optional[str] = None
    displayName: Optional[str] = None


class Agent(BaseModel):
    id: str
    name: str
    sessionDir: str


# ── Identifier resolution ───────────────────────────────────────────

class SessionMatch(BaseModel):
    sessionId: str
    channel: str
    label: Optional[str] = None
    matchType: str  # "exact-label" | "channel" | "combo" | "display-name"
    agentId: Optional[str] = None


class SessionResolution(BaseModel):
    sessionId: Optional[str] = None
    matches: list[SessionMatch] = Field(default_factory=list)
    ambiguous: bool = False
    error: Optional[str] = None


# ── Archiving ───────────────────────────────────────────────────────

class ArchivedSession(BaseModel):
    sessionId: str
    channel: str = "unknown"
    label: Optional[str] = None
    lastActivity: str = ""
    capacity: float = 0.0
    agentId: Optional[str] = None
    sourcePath: str
    archivedTo: str  # hypothetical destination when the run is a dry run


class ArchiveFailure(BaseModel):
    sessionId: str
    reason: str
    sessionDir: Optional[str] = None


class ArchiveResult(BaseModel):
    archived: list[ArchivedSession] = Field(default_factory=list)
    failed: list[ArchiveFailure] = Field(default_factory=list)
    dryRun: bool = False


# ── Watch / summary views ───────────────────────────────────────────

class CapacityChange(BaseModel):
    type: str  # "new" | "increased" | "decreased" | "unchanged"
    delta: float = 0.0


class AgentCapacitySummary(BaseModel):
    agentId: str
    agentName: str
    count: int = 0
    avgPercentage: float = 0.0
    maxPercentage: float = 0.0
