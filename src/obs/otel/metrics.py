"""Metric instruments for build and node execution."""

from __future__ import annotations

from dataclasses import dataclass

from opentelemetry import metrics

from obs.otel.attributes import normalize_attributes
from obs.otel.scopes import SCOPE_OBS

_STAGE_DURATION = "polypipe.stage.duration"
_NODE_DURATION = "polypipe.node.duration"
_NODE_STATUS_COUNT = "polypipe.node.status.count"


@dataclass
class MetricsRegistry:
    """Registry for polypipe metric instruments."""

    stage_duration: metrics.Histogram
    node_duration: metrics.Histogram
    node_status_count: metrics.Counter


_REGISTRY_CACHE: dict[str, MetricsRegistry | None] = {"value": None}


def _registry() -> MetricsRegistry:
    cached = _REGISTRY_CACHE["value"]
    if cached is not None:
        return cached
    meter = metrics.get_meter(SCOPE_OBS)
    registry = MetricsRegistry(
        stage_duration=meter.create_histogram(
            _STAGE_DURATION,
            unit="s",
            description="Duration of pipeline stages.",
        ),
        node_duration=meter.create_histogram(
            _NODE_DURATION,
            unit="s",
            description="Duration of derivation evaluation.",
        ),
        node_status_count=meter.create_counter(
            _NODE_STATUS_COUNT,
            description="Derivations by final build status.",
        ),
    )
    _REGISTRY_CACHE["value"] = registry
    return registry


def reset_metrics_registry() -> None:
    """Drop cached instruments so a new MeterProvider is picked up."""
    _REGISTRY_CACHE["value"] = None


def record_stage_duration(stage: str, duration_s: float, *, status: str) -> None:
    """Record the duration of a pipeline stage."""
    _registry().stage_duration.record(
        duration_s,
        normalize_attributes({"stage": stage, "status": status}),
    )


def record_node_duration(language: str, duration_s: float, *, status: str) -> None:
    """Record the evaluation time of a single derivation."""
    _registry().node_duration.record(
        duration_s,
        normalize_attributes({"language": language, "status": status}),
    )


def record_node_status(status: str, *, count: int = 1) -> None:
    """Count derivations reaching a final build status."""
    _registry().node_status_count.add(count, normalize_attributes({"status": status}))


__all__ = [
    "MetricsRegistry",
    "record_node_duration",
    "record_node_status",
    "record_stage_duration",
    "reset_metrics_registry",
]
