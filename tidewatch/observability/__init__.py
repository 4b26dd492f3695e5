"""Observability helpers."""

from tidewatch.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_session_scan,
    record_parse_failure,
    record_limit_resolution,
    record_archive_outcome,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_session_scan",
    "record_parse_failure",
    "record_limit_resolution",
    "record_archive_outcome",
]
