"""Model identifier normalisation used when matching context-window limits."""
from __future__ import annotations

import re


_DATE_SUFFIX_PATTERN = re.compile(r"(?:-\d{8}|-\d{4}-\d{2}-\d{2})+$")


def split_provider(raw_model: str | None) -> tuple[str, str]:
    """Split ``provider/model`` into its two halves.

    Example:
      anthropic/claude-sonnet-4-5 -> ("anthropic", "claude-sonnet-4-5")
      claude-sonnet-4-5 -> ("", "claude-sonnet-4-5")
    """
    raw = (raw_model or "").strip()
    if "/" not in raw:
        return "", raw
    provider, _, name = raw.partition("/")
    return provider.strip(), name.strip()


def canonical_model_name(raw_model: str | None) -> str:
    """Return a canonical model identifier with build/date suffixes removed.

    Example:
      anthropic/claude-opus-4-5-20251101 -> anthropic/claude-opus-4-5
    """
    raw = (raw_model or "").strip().lower()
    if not raw:
        return ""
    normalized = re.sub(r"[\s_]+", "-", raw)
    normalized = re.sub(r"-{2,}", "-", normalized).strip("-")
    stripped = _DATE_SUFFIX_PATTERN.sub("", normalized).strip("-")
    return stripped or normalized


def model_lookup_candidates(raw_model: str | None) -> list[str]:
    """Build the ordered, de-duplicated spellings tried against limit tables."""
    raw = (raw_model or "").strip()
    if not raw:
        return []

    canonical = canonical_model_name(raw)
    _, bare = split_provider(raw)
    _, canonical_bare = split_provider(canonical)

    unique: list[str] = []
    seen: set[str] = set()
    for candidate in (raw, canonical, bare, canonical_bare):
        if not candidate or candidate in seen:
            continue
        seen.add(candidate)
        unique.append(candidate)
    return unique
