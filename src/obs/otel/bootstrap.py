"""Bootstrap OpenTelemetry providers for polypipe."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from opentelemetry import metrics, trace
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    ConsoleMetricExporter,
    InMemoryMetricReader,
    MetricReader,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from obs.otel.metrics import reset_metrics_registry

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class OtelBootstrapOptions:
    """Options controlling provider installation."""

    service_name: str = "polypipe"
    test_mode: bool = False
    console: bool = False


@dataclass(frozen=True)
class OtelProviders:
    """Installed providers plus in-memory handles in test mode."""

    tracer_provider: TracerProvider
    meter_provider: MeterProvider
    span_exporter: InMemorySpanExporter | None = None
    metric_reader: InMemoryMetricReader | None = None


_STATE: dict[str, OtelProviders | None] = {"providers": None}


def configure_otel(options: OtelBootstrapOptions | None = None) -> OtelProviders:
    """Install global tracer and meter providers once per process.

    OpenTelemetry refuses to replace global providers, so later calls return
    the providers installed by the first call.

    Returns
    -------
    OtelProviders
        Installed providers.
    """
    existing = _STATE["providers"]
    if existing is not None:
        return existing
    resolved = options or OtelBootstrapOptions()
    resource = Resource.create({"service.name": resolved.service_name})
    tracer_provider = TracerProvider(resource=resource)
    span_exporter: InMemorySpanExporter | None = None
    metric_reader: InMemoryMetricReader | None = None
    readers: list[MetricReader] = []
    if resolved.test_mode:
        span_exporter = InMemorySpanExporter()
        tracer_provider.add_span_processor(SimpleSpanProcessor(span_exporter))
        metric_reader = InMemoryMetricReader()
        readers.append(metric_reader)
    elif resolved.console:
        tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        readers.append(PeriodicExportingMetricReader(ConsoleMetricExporter()))
    meter_provider = MeterProvider(resource=resource, metric_readers=readers)
    trace.set_tracer_provider(tracer_provider)
    metrics.set_meter_provider(meter_provider)
    reset_metrics_registry()
    providers = OtelProviders(
        tracer_provider=tracer_provider,
        meter_provider=meter_provider,
        span_exporter=span_exporter,
        metric_reader=metric_reader,
    )
    _STATE["providers"] = providers
    _LOGGER.debug("Configured OpenTelemetry providers (test_mode=%s).", resolved.test_mode)
    return providers


__all__ = ["OtelBootstrapOptions", "OtelProviders", "configure_otel"]
