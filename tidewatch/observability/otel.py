"""OpenTelemetry + Prometheus fallback wiring for Tide Watch."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI

from tidewatch import config

logger = logging.getLogger("tidewatch.observability")


_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None
_fastapi_instrumentor: Any | None = None

_scan_counter: Any | None = None
_scan_latency_hist: Any | None = None
_parse_failure_counter: Any | None = None
_limit_resolution_counter: Any | None = None
_archive_counter: Any | None = None

_prom_enabled = False
_prom_scan_counter: Any | None = None
_prom_scan_latency_hist: Any | None = None
_prom_parse_failure_counter: Any | None = None
_prom_limit_resolution_counter: Any | None = None
_prom_archive_counter: Any | None = None


def _normalize_otlp_endpoint(base_endpoint: str, signal_path: str) -> str:
    endpoint = (base_endpoint or "").strip()
    if not endpoint:
        return ""
    if endpoint.endswith(signal_path):
        return endpoint
    if endpoint.endswith("/"):
        endpoint = endpoint[:-1]
    if endpoint.endswith("/v1"):
        return f"{endpoint}{signal_path[3:]}"
    return f"{endpoint}{signal_path}"


def _prom_labels(**values: str) -> dict[str, str]:
    return {key: (value or "").strip() or "unknown" for key, value in values.items()}


def initialize(app: FastAPI | None = None) -> None:
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider, _fastapi_instrumentor
    global _scan_counter, _scan_latency_hist, _parse_failure_counter
    global _limit_resolution_counter, _archive_counter
    global _prom_enabled
    global _prom_scan_counter, _prom_scan_latency_hist, _prom_parse_failure_counter
    global _prom_limit_resolution_counter, _prom_archive_counter

    if _initialized:
        if _enabled and app and _fastapi_instrumentor:
            _fastapi_instrumentor.instrument_app(app)
        return

    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (TIDE_WATCH_OTEL_ENABLED=false)")
        return

    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as exc:
        logger.warning("OpenTelemetry dependencies unavailable: %s", exc)
        return

    traces_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/traces")
    metrics_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/metrics")
    service_name = config.OTEL_SERVICE_NAME or "tide-watch"

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.namespace": "tidewatch",
        }
    )

    trace_provider = TracerProvider(resource=resource)
    trace_exporter = OTLPSpanExporter(endpoint=traces_endpoint or None)
    trace_provider.add_span_processor(BatchSpanProcessor(trace_exporter))
    trace.set_tracer_provider(trace_provider)
    tracer = trace.get_tracer("tidewatch")

    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=metrics_endpoint or None)
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("tidewatch")

    _scan_counter = meter.create_counter(
        "tidewatch_sessions_scanned_total",
        unit="1",
        description="Transcript files scanned per agent directory",
    )
    _scan_latency_hist = meter.create_histogram(
        "tidewatch_scan_latency_ms",
        unit="ms",
        description="Latency of a single session directory scan",
    )
    _parse_failure_counter = meter.create_counter(
        "tidewatch_transcript_parse_failures_total",
        unit="1",
        description="Transcripts that could not be summarised",
    )
    _limit_resolution_counter = meter.create_counter(
        "tidewatch_limit_resolutions_total",
        unit="1",
        description="Context-window lookups by the tier that answered",
    )
    _archive_counter = meter.create_counter(
        "tidewatch_archive_outcomes_total",
        unit="1",
        description="Per-session archive outcomes",
    )

    _trace_provider = trace_provider
    _meter_provider = meter_provider
    _tracer = tracer
    _fastapi_instrumentor = FastAPIInstrumentor()
    _enabled = True

    if app:
        _fastapi_instrumentor.instrument_app(app)

    if config.PROM_PORT > 0:
        try:
            from prometheus_client import Counter, Histogram, start_http_server

            start_http_server(config.PROM_PORT)
            _prom_enabled = True
            _prom_scan_counter = Counter(
                "tidewatch_sessions_scanned_total",
                "Transcript files scanned per agent directory",
                ["agent", "result"],
            )
            _prom_scan_latency_hist = Histogram(
                "tidewatch_scan_latency_ms",
                "Latency of a single session directory scan",
                ["agent"],
            )
            _prom_parse_failure_counter = Counter(
                "tidewatch_transcript_parse_failures_total",
                "Transcripts that could not be summarised",
                ["reason"],
            )
            _prom_limit_resolution_counter = Counter(
                "tidewatch_limit_resolutions_total",
                "Context-window lookups by the tier that answered",
                ["tier"],
            )
            _prom_archive_counter = Counter(
                "tidewatch_archive_outcomes_total",
                "Per-session archive outcomes",
                ["outcome", "dry_run"],
            )
            logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Prometheus fallback not started: %s", exc)
            _prom_enabled = False

    logger.info(
        "OpenTelemetry initialized (service=%s endpoint=%s)",
        service_name,
        config.OTEL_ENDPOINT,
    )


def shutdown(app: FastAPI | None = None) -> None:
    global _enabled
    if not _initialized:
        return
    try:
        if app and _fastapi_instrumentor:
            _fastapi_instrumentor.uninstrument_app(app)
    except Exception as exc:  # noqa: BLE001
        logger.debug("FastAPI uninstrument failed: %s", exc)
    try:
        if _meter_provider is not None:
            _meter_provider.shutdown()
    except Exception as exc:  # noqa: BLE001
        logger.debug("Meter provider shutdown failed: %s", exc)
    try:
        if _trace_provider is not None:
            _trace_provider.shutdown()
    except Exception as exc:  # noqa: BLE001
        logger.debug("Trace provider shutdown failed: %s", exc)
    _enabled = False


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None):
    if not _enabled or _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name) as span:
        if attributes:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
        yield span


def record_session_scan(agent_id: str, parsed: int, skipped: int, duration_ms: float) -> None:
    agent = agent_id or "unknown"
    for result, count in (("parsed", parsed), ("skipped", skipped)):
        if count <= 0:
            continue
        if _enabled and _scan_counter is not None:
            _scan_counter.add(count, {"agent": agent, "result": result})
        if _prom_enabled and _prom_scan_counter is not None:
            _prom_scan_counter.labels(**_prom_labels(agent=agent, result=result)).inc(count)
    if _enabled and _scan_latency_hist is not None:
        _scan_latency_hist.record(max(0.0, float(duration_ms)), {"agent": agent})
    if _prom_enabled and _prom_scan_latency_hist is not None:
        _prom_scan_latency_hist.labels(**_prom_labels(agent=agent)).observe(max(0.0, float(duration_ms)))


def record_parse_failure(reason: str) -> None:
    if _enabled and _parse_failure_counter is not None:
        _parse_failure_counter.add(1, {"reason": reason or "unknown"})
    if _prom_enabled and _prom_parse_failure_counter is not None:
        _prom_parse_failure_counter.labels(**_prom_labels(reason=reason)).inc()


def record_limit_resolution(tier: str) -> None:
    if _enabled and _limit_resolution_counter is not None:
        _limit_resolution_counter.add(1, {"tier": tier or "unknown"})
    if _prom_enabled and _prom_limit_resolution_counter is not None:
        _prom_limit_resolution_counter.labels(**_prom_labels(tier=tier)).inc()


def record_archive_outcome(outcome: str, *, dry_run: bool, count: int = 1) -> None:
    safe_count = max(0, int(count))
    if safe_count == 0:
        return
    labels = {"outcome": outcome or "unknown", "dry_run": "true" if dry_run else "false"}
    if _enabled and _archive_counter is not None:
        _archive_counter.add(safe_count, labels)
    if _prom_enabled and _prom_archive_counter is not None:
        _prom_archive_counter.labels(**_prom_labels(**labels)).inc(safe_count)
