"""Move session transcripts into dated archive folders under their own directory."""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from tidewatch import config
from tidewatch.models import ArchivedSession, ArchiveFailure, ArchiveResult, SessionSummary
from tidewatch.observability import record_archive_outcome, start_span
from tidewatch.registry import remove_registry_entries

logger = logging.getLogger("tidewatch")


def archive_dir_for(session_dir: Path, on: Optional[date] = None) -> Path:
    """``<session_dir>/archive/<YYYY-MM-DD>`` for *on* (default: today, UTC)."""
    day = on or datetime.now(timezone.utc).date()
    return Path(session_dir) / config.ARCHIVE_DIRNAME / day.isoformat()


def _transcript_name(session: SessionSummary) -> str:
    return session.transcriptFile or f"{session.sessionId}{config.TRANSCRIPT_SUFFIX}"


def _group_by_directory(
    sessions: Iterable[SessionSummary],
    fallback_dir: Path,
) -> dict[Path, list[SessionSummary]]:
    """Group by each session's own source directory, dropping repeated files."""
    groups: dict[Path, list[SessionSummary]] = {}
    seen: set[tuple[Path, str]] = set()
    for session in sessions:
        directory = Path(session.sessionDir) if session.sessionDir else fallback_dir
        key = (directory, _transcript_name(session))
        if key in seen:
            continue
        seen.add(key)
        groups.setdefault(directory, []).append(session)
    return groups


def archive_sessions(
    sessions: Iterable[SessionSummary],
    session_dir: Optional[Path] = None,
    dry_run: bool = False,
    on: Optional[date] = None,
) -> ArchiveResult:
    """Archive *sessions*, reporting success or failure per session.

    Each session is moved under its own ``sessionDir``; *session_dir* (then
    the default agent directory) is used only for summaries that lack one.
    A dry run performs the same checks and reports the same destinations
    without creating directories, moving files or rewriting registries.
    """
    fallback_dir = Path(session_dir or config.DEFAULT_SESSION_DIR)
    result = ArchiveResult(dryRun=dry_run)

    for directory, members in _group_by_directory(sessions, fallback_dir).items():
        target_dir = archive_dir_for(directory, on)

        with start_span("tidewatch.archive_group", {"session_dir": str(directory), "dry_run": dry_run}):
            if not dry_run:
                try:
                    target_dir.mkdir(parents=True, exist_ok=True)
                except OSError as exc:
                    logger.warning("Failed to create archive directory %s: %s", target_dir, exc)
                    for session in members:
                        result.failed.append(ArchiveFailure(
                            sessionId=session.sessionId,
                            reason=f"Failed to create archive directory: {exc}",
                            sessionDir=str(directory),
                        ))
                    record_archive_outcome("failed", dry_run=dry_run, count=len(members))
                    continue

            for session in members:
                _archive_one(session, directory, target_dir, dry_run, result)

    return result


def _archive_one(
    session: SessionSummary,
    directory: Path,
    target_dir: Path,
    dry_run: bool,
    result: ArchiveResult,
) -> None:
    name = _transcript_name(session)
    source = directory / name
    target = target_dir / name

    def fail(reason: str) -> None:
        result.failed.append(ArchiveFailure(
            sessionId=session.sessionId,
            reason=reason,
            sessionDir=str(directory),
        ))
        record_archive_outcome("failed", dry_run=dry_run)

    if not source.is_file():
        fail("File not found")
        return
    if target.exists():
        fail(f"Archive target already exists: {target}")
        return

    if not dry_run:
        try:
            source.rename(target)
        except OSError as exc:
            fail(str(exc))
            return
        remove_registry_entries(directory, session.sessionId)

    result.archived.append(ArchivedSession(
        sessionId=session.sessionId,
        channel=session.channel,
        label=session.label,
        lastActivity=session.lastActivity,
        capacity=session.percentage,
        agentId=session.agentId,
        sourcePath=str(source),
        archivedTo=str(target),
    ))
    record_archive_outcome("archived", dry_run=dry_run)
