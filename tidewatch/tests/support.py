"""Shared fixtures for the Tide Watch test modules."""
import json
from pathlib import Path
from typing import Any, Optional

from tidewatch.model_limits import ResolverContext
from tidewatch.models import SessionSummary


def offline_context(
    root: Path,
    listing: Optional[str] = None,
    providers: Optional[dict[str, Any]] = None,
) -> ResolverContext:
    """Resolver context that never touches the real runtime or home directory."""
    config_path = root / "openclaw-models.json"
    if providers is not None:
        config_path.write_text(json.dumps({"models": {"providers": providers}}), encoding="utf-8")
    return ResolverContext(
        command=["openclaw", "models", "list"],
        timeout_seconds=1,
        config_path=config_path,
        runner=lambda argv, timeout: listing,
    )


def write_transcript(path: Path, records: list[Any]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [r if isinstance(r, str) else json.dumps(r) for r in records]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def usage_record(total: int, timestamp: str = "2026-10-18T10:00:00Z", **extra: Any) -> dict[str, Any]:
    record = {
        "type": "message",
        "timestamp": timestamp,
        "message": {
            "role": "assistant",
            "model": "claude-sonnet-4-5",
            "usage": {"totalTokens": total, "input": total // 2, "output": total // 4,
                      "cacheRead": total // 8, "cacheWrite": 0},
        },
    }
    record.update(extra)
    return record


def make_summary(session_id: str, percentage: float = 0.0, **fields: Any) -> SessionSummary:
    defaults: dict[str, Any] = {
        "sessionId": session_id,
        "channel": "discord",
        "percentage": percentage,
        "tokensUsed": int(percentage * 2000),
        "tokensMax": 200_000,
        "lastActivity": "2026-10-18T10:00:00Z",
    }
    defaults.update(fields)
    return SessionSummary(**defaults)
