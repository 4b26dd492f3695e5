"""Discover configured agents and the session directory each one writes to."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from tidewatch import config
from tidewatch.models import Agent

logger = logging.getLogger("tidewatch")

_AGENT_DIR_SUFFIX = "agent"
_SESSIONS_DIRNAME = "sessions"


def default_agent(session_dir: Optional[Path] = None) -> Agent:
    """The synthetic single agent used when nothing else is configured."""
    return Agent(
        id=config.DEFAULT_AGENT_ID,
        name=config.DEFAULT_AGENT_ID,
        sessionDir=str(session_dir or config.DEFAULT_SESSION_DIR),
    )


def resolve_session_dir(agent: dict[str, Any], agents_base: Optional[Path] = None) -> Path:
    """Pick the first existing session directory candidate for *agent*.

    Candidates, in order: ``<agentDir>/sessions``, ``<parent>/sessions`` when
    ``agentDir`` ends in ``/agent``, then ``<agents_base>/<id>/sessions``.
    Existing paths are returned with symlinks resolved; when none exist the
    last (standard) candidate is returned unresolved.
    """
    base = agents_base or config.AGENTS_BASE_DIR
    agent_id = str(agent.get("id") or config.DEFAULT_AGENT_ID)

    candidates: list[Path] = []
    agent_dir = agent.get("agentDir")
    if isinstance(agent_dir, str) and agent_dir.strip():
        configured = Path(agent_dir.strip()).expanduser()
        candidates.append(configured / _SESSIONS_DIRNAME)
        if configured.name == _AGENT_DIR_SUFFIX:
            candidates.append(configured.parent / _SESSIONS_DIRNAME)
    candidates.append(base / agent_id / _SESSIONS_DIRNAME)

    for candidate in candidates:
        try:
            if candidate.exists():
                return candidate.resolve()
        except OSError:
            continue
    return candidates[-1]


def discover_agents(
    config_path: Optional[Path] = None,
    agents_base: Optional[Path] = None,
    default_session_dir: Optional[Path] = None,
) -> list[Agent]:
    """Return configured agents in config order, or the default ``main`` agent.

    Built fresh on every call. A missing, malformed or empty agent list falls
    back to the default agent; discovery never raises.
    """
    path = config_path or config.OPENCLAW_CONFIG_PATH
    fallback = [default_agent(default_session_dir)]

    if not path.exists():
        return fallback

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Could not load OpenClaw config %s: %s", path, exc)
        return fallback

    agents_section = data.get("agents") if isinstance(data, dict) else None
    raw_agents = agents_section.get("list") if isinstance(agents_section, dict) else None
    if not isinstance(raw_agents, list):
        return fallback

    agents: list[Agent] = []
    for raw in raw_agents:
        if not isinstance(raw, dict):
            continue
        agent_id = str(raw.get("id") or "").strip()
        if not agent_id:
            logger.warning("Skipping agent entry without an id in %s", path)
            continue
        name = str(raw.get("name") or "").strip() or agent_id
        agents.append(Agent(
            id=agent_id,
            name=name,
            sessionDir=str(resolve_session_dir(raw, agents_base)),
        ))

    return agents or fallback
