"""Contract tests for spans, metrics and log handlers."""

from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest

from derivations import make_pipeline, py_derivation
from engine import EngineContext, build
from obs.otel import configure_logging, configure_otel, stage_span
from obs.otel.bootstrap import OtelProviders
from obs.otel.logging import TraceContextFilter
from obs.otel.scopes import SCOPE_PIPELINE


def _metric_names(providers: OtelProviders) -> set[str]:
    assert providers.metric_reader is not None
    data = providers.metric_reader.get_metrics_data()
    if data is None:
        return set()
    return {
        metric.name
        for resource_metric in data.resource_metrics
        for scope_metric in resource_metric.scope_metrics
        for metric in scope_metric.metrics
    }


@pytest.fixture
def _restore_root_handlers() -> Iterator[None]:
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)


def test_configure_otel_is_idempotent(otel_providers: OtelProviders) -> None:
    """Ensure later bootstrap calls return the first installed providers."""
    assert configure_otel() is otel_providers


def test_stage_span_records_error_status(otel_providers: OtelProviders) -> None:
    """Ensure failing stages mark their span as an error."""
    exporter = otel_providers.span_exporter
    assert exporter is not None
    exporter.clear()

    with (
        pytest.raises(RuntimeError, match="boom"),
        stage_span("stage.fail", stage="fail", scope_name=SCOPE_PIPELINE),
    ):
        raise RuntimeError("boom")

    spans = [span for span in exporter.get_finished_spans() if span.name == "stage.fail"]
    assert len(spans) == 1
    attributes = spans[0].attributes or {}
    assert attributes.get("polypipe.stage") == "fail"
    assert attributes.get("status") == "error"
    assert not spans[0].status.is_ok


def test_build_emits_node_spans_and_metrics(
    otel_providers: OtelProviders,
    engine_context: EngineContext,
) -> None:
    """Ensure a build traces each evaluated node and records node metrics."""
    exporter = otel_providers.span_exporter
    assert exporter is not None
    exporter.clear()

    pipeline = make_pipeline(py_derivation("a", "1"), py_derivation("b", "a + 1"))
    build(pipeline, context=engine_context)

    node_spans = [span for span in exporter.get_finished_spans() if span.name == "node.execute"]
    assert sorted((span.attributes or {}).get("polypipe.node") for span in node_spans) == [
        "a",
        "b",
    ]
    names = _metric_names(otel_providers)
    assert "polypipe.node.duration" in names
    assert "polypipe.node.status.count" in names
    assert "polypipe.stage.duration" in names


@pytest.mark.usefixtures("_restore_root_handlers")
def test_configure_logging_installs_one_handler() -> None:
    """Ensure repeated logging setup reuses the named handler."""
    configure_logging("DEBUG")
    configure_logging("WARNING", with_trace_ids=True)

    root = logging.getLogger()
    handlers = [handler for handler in root.handlers if handler.get_name() == "polypipe"]
    assert len(handlers) == 1
    assert root.level == logging.WARNING
    assert any(isinstance(item, TraceContextFilter) for item in handlers[0].filters)
