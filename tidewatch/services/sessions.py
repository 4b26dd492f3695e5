"""Aggregate session summaries across one or many agent session directories."""
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Iterable, Optional

from tidewatch import config
from tidewatch.agents import discover_agents
from tidewatch.model_limits import ResolverContext
from tidewatch.models import Agent, SessionSummary
from tidewatch.observability import record_session_scan, start_span
from tidewatch.parsers.transcripts import parse_session_file
from tidewatch.registry import load_session_registry

logger = logging.getLogger("tidewatch")


def _transcript_files(session_dir: Path) -> list[Path]:
    try:
        return sorted(
            path for path in session_dir.iterdir()
            if path.suffix == config.TRANSCRIPT_SUFFIX and path.is_file()
        )
    except OSError as exc:
        logger.warning("Could not list session directory %s: %s", session_dir, exc)
        return []


def scan_session_dir(
    session_dir: Path,
    agent: Optional[Agent] = None,
    context: Optional[ResolverContext] = None,
) -> list[SessionSummary]:
    """Parse every transcript in *session_dir*, tagging summaries with *agent*.

    A missing directory yields an empty list; unparseable files are skipped.
    """
    directory = Path(session_dir)
    if not directory.is_dir():
        return []

    ctx = context or ResolverContext()
    registry = load_session_registry(directory)
    started = time.perf_counter()
    summaries: list[SessionSummary] = []
    skipped = 0

    with start_span("tidewatch.scan_session_dir", {"session_dir": str(directory)}):
        for path in _transcript_files(directory):
            summary = parse_session_file(path, registry, ctx)
            if summary is None:
                skipped += 1
                continue
            if agent is not None:
                summary.agentId = agent.id
                summary.agentName = agent.name
            summaries.append(summary)

    record_session_scan(
        agent.id if agent else "",
        parsed=len(summaries),
        skipped=skipped,
        duration_ms=(time.perf_counter() - started) * 1000,
    )
    return summaries


def _directory_identity(session_dir: str) -> str:
    try:
        return str(Path(session_dir).resolve())
    except OSError:
        return session_dir


def get_all_sessions(
    session_dir: Optional[Path] = None,
    multi_agent: bool = True,
    exclude_agents: Iterable[str] = (),
    *,
    agent_id: Optional[str] = None,
    context: Optional[ResolverContext] = None,
    agent_config_path: Optional[Path] = None,
    agents_base: Optional[Path] = None,
    default_session_dir: Optional[Path] = None,
) -> list[SessionSummary]:
    """Return one summary per transcript file across the selected sources.

    - ``session_dir`` given: scan only that directory, without agent tags.
    - ``multi_agent`` off: scan the default agent's directory as ``main``.
    - otherwise: scan every discovered agent not in ``exclude_agents``
      (or only ``agent_id`` when given). Agents sharing one directory are
      scanned once so each physical file yields a single summary.
    """
    ctx = context or ResolverContext()
    default_dir = Path(default_session_dir or config.DEFAULT_SESSION_DIR)

    if session_dir is not None:
        return scan_session_dir(Path(session_dir), context=ctx)

    if not multi_agent:
        main = Agent(id=config.DEFAULT_AGENT_ID, name=config.DEFAULT_AGENT_ID, sessionDir=str(default_dir))
        return scan_session_dir(default_dir, main, ctx)

    excluded = set(exclude_agents)
    agents = discover_agents(agent_config_path, agents_base, default_dir)
    sessions: list[SessionSummary] = []
    scanned: dict[str, str] = {}

    for agent in agents:
        if agent.id in excluded:
            continue
        if agent_id is not None and agent.id != agent_id:
            continue
        identity = _directory_identity(agent.sessionDir)
        if identity in scanned:
            logger.info(
                "Agent %s shares session directory %s with agent %s; skipping duplicate scan",
                agent.id, agent.sessionDir, scanned[identity],
            )
            continue
        scanned[identity] = agent.id
        sessions.extend(scan_session_dir(Path(agent.sessionDir), agent, ctx))

    return sessions


def get_session(
    session_id: str,
    session_dir: Optional[Path] = None,
    context: Optional[ResolverContext] = None,
) -> SessionSummary | None:
    """Parse ``<session_dir>/<session_id>.jsonl`` with that directory's registry."""
    if not session_id or Path(session_id).name != session_id:
        return None
    directory = Path(session_dir or config.DEFAULT_SESSION_DIR)
    path = directory / f"{session_id}{config.TRANSCRIPT_SUFFIX}"
    if not path.is_file():
        return None
    return parse_session_file(path, load_session_registry(directory), context)
