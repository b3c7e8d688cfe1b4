"""OpenTelemetry helpers for polypipe observability."""

from __future__ import annotations

from obs.otel.bootstrap import OtelBootstrapOptions, OtelProviders, configure_otel
from obs.otel.logging import (
    TraceContextFilter,
    TraceContextFormatter,
    configure_logging,
)
from obs.otel.metrics import (
    record_node_duration,
    record_node_status,
    record_stage_duration,
)
from obs.otel.scopes import (
    SCOPE_EXECUTION,
    SCOPE_OBS,
    SCOPE_PIPELINE,
    SCOPE_SCHEDULING,
    SCOPE_STORAGE,
)
from obs.otel.tracing import get_tracer, record_exception, set_span_attributes, stage_span

__all__ = [
    "SCOPE_EXECUTION",
    "SCOPE_OBS",
    "SCOPE_PIPELINE",
    "SCOPE_SCHEDULING",
    "SCOPE_STORAGE",
    "OtelBootstrapOptions",
    "OtelProviders",
    "TraceContextFilter",
    "TraceContextFormatter",
    "configure_logging",
    "configure_otel",
    "get_tracer",
    "record_exception",
    "record_node_duration",
    "record_node_status",
    "record_stage_duration",
    "set_span_attributes",
    "stage_span",
]
