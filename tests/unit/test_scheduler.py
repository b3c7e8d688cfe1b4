"""Parallel build scheduler tests."""

from __future__ import annotations

import os
import threading

from buildlog.entries import NodeRecord, NodeStatus
from dag.graph import build_graph
from derivations import Pipeline, make_pipeline, py_derivation
from executor.node import NodeExecutor
from executor.scheduler import BuildScheduler, ScheduleOutcome, resolve_max_workers
from fingerprints.engine import fingerprint_graph
from runtimes.registry import RuntimeRegistry, default_converters
from store.memory import InMemoryArtifactStore


def _schedule(
    pipeline: Pipeline,
    store: InMemoryArtifactStore,
    runtimes: RuntimeRegistry,
    *,
    max_workers: int = 4,
    cancel_event: threading.Event | None = None,
    records: list[NodeRecord] | None = None,
) -> ScheduleOutcome:
    graph = build_graph(pipeline)
    fingerprints = fingerprint_graph(pipeline, graph).mapping()
    executor = NodeExecutor(
        pipeline=pipeline,
        store=store,
        runtimes=runtimes,
        converters=default_converters(),
    )
    scheduler = BuildScheduler(
        store=store,
        executor=executor,
        max_workers=max_workers,
        cancel_event=cancel_event or threading.Event(),
        on_node=records.append if records is not None else None,
    )
    return scheduler.run(graph, fingerprints)


def _statuses(outcome: ScheduleOutcome) -> dict[str, NodeStatus]:
    return {record.name: record.status for record in outcome.records}


def test_scheduler_builds_then_reuses(runtimes: RuntimeRegistry) -> None:
    """Ensure a second run reuses every stored fingerprint."""
    store = InMemoryArtifactStore()
    pipeline = make_pipeline(
        py_derivation("a", "[1, 2, 3]"),
        py_derivation("b", "sum(a)"),
        py_derivation("c", "b * 10"),
    )

    first = _schedule(pipeline, store, runtimes)
    second = _schedule(pipeline, store, runtimes)

    assert [record.name for record in first.records] == ["a", "b", "c"]
    assert set(_statuses(first).values()) == {NodeStatus.REBUILT}
    assert set(_statuses(second).values()) == {NodeStatus.REUSED}
    assert store.put_count == 3
    assert all(record.artifact is not None for record in second.records)
    assert not first.interrupted


def test_scheduler_isolates_failures(runtimes: RuntimeRegistry) -> None:
    """Ensure failures block descendants while unrelated branches finish."""
    store = InMemoryArtifactStore()
    pipeline = make_pipeline(
        py_derivation("bad", "1 / 0"),
        py_derivation("after_bad", "bad + 1"),
        py_derivation("last", "after_bad + 1"),
        py_derivation("good", "'fine'"),
    )

    outcome = _schedule(pipeline, store, runtimes)
    statuses = _statuses(outcome)

    assert statuses == {
        "bad": NodeStatus.FAILED,
        "after_bad": NodeStatus.BLOCKED,
        "last": NodeStatus.BLOCKED,
        "good": NodeStatus.REBUILT,
    }
    failed = next(record for record in outcome.records if record.name == "bad")
    blocked = next(record for record in outcome.records if record.name == "last")
    assert failed.error is not None
    assert "ZeroDivisionError" in failed.error
    assert failed.artifact is None
    assert blocked.error == "Upstream derivation 'bad' failed."
    assert not store.contains(failed.fingerprint)


def test_scheduler_builds_shared_fingerprints_once(runtimes: RuntimeRegistry) -> None:
    """Ensure nodes sharing a fingerprint trigger a single evaluation."""
    store = InMemoryArtifactStore()
    pipeline = make_pipeline(
        py_derivation("left", "list(range(1000))"),
        py_derivation("right", "list(range(1000))"),
    )

    outcome = _schedule(pipeline, store, runtimes)

    assert store.put_count == 1
    assert sorted(_statuses(outcome).values()) == [NodeStatus.REBUILT, NodeStatus.REUSED]
    assert outcome.records[0].fingerprint == outcome.records[1].fingerprint


def test_scheduler_cancellation_marks_unstarted_nodes(runtimes: RuntimeRegistry) -> None:
    """Ensure setting the cancel event stops new work and marks the rest."""
    store = InMemoryArtifactStore()
    cancel = threading.Event()
    records: list[NodeRecord] = []
    pipeline = make_pipeline(
        py_derivation("a", "1"),
        py_derivation("b", "a + 1"),
        py_derivation("c", "b + 1"),
    )

    def _cancel_after_first(record: NodeRecord) -> None:
        records.append(record)
        cancel.set()

    graph = build_graph(pipeline)
    scheduler = BuildScheduler(
        store=store,
        executor=NodeExecutor(
            pipeline=pipeline,
            store=store,
            runtimes=runtimes,
            converters=default_converters(),
        ),
        max_workers=1,
        cancel_event=cancel,
        on_node=_cancel_after_first,
    )
    outcome = scheduler.run(graph, fingerprint_graph(pipeline, graph).mapping())

    assert outcome.interrupted
    assert _statuses(outcome) == {
        "a": NodeStatus.REBUILT,
        "b": NodeStatus.CANCELLED,
        "c": NodeStatus.CANCELLED,
    }
    assert [record.name for record in records] == ["a", "b", "c"]


def test_scheduler_reports_each_node(runtimes: RuntimeRegistry) -> None:
    """Ensure the node callback sees every settled record."""
    store = InMemoryArtifactStore()
    records: list[NodeRecord] = []
    pipeline = make_pipeline(py_derivation("a", "1"), py_derivation("b", "2"))

    _schedule(pipeline, store, runtimes, max_workers=2, records=records)

    assert sorted(record.name for record in records) == ["a", "b"]
    assert all(record.duration_s >= 0 for record in records)


def test_resolve_max_workers() -> None:
    """Ensure worker bounds default to the CPU count and stay positive."""
    assert resolve_max_workers(3) == 3
    assert resolve_max_workers(0) == 1
    assert resolve_max_workers(None) == max(1, os.cpu_count() or 1)
