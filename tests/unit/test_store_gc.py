"""Garbage collection tests for the artifact store."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

import pytest

from buildlog.entries import BuildStatus, NodeRecord, NodeStatus
from buildlog.log import InMemoryBuildLog
from store.artifacts import Artifact
from store.gc import collect_garbage
from store.memory import InMemoryArtifactStore


def _record(store: InMemoryArtifactStore, name: str, fingerprint: str) -> NodeRecord:
    artifact = Artifact.from_payload(name.encode(), language="python", fmt="text")
    ref = store.put(fingerprint, artifact)
    return NodeRecord(
        name=name,
        fingerprint=fingerprint,
        status=NodeStatus.REBUILT,
        language="python",
        artifact=ref,
    )


@pytest.fixture
def populated(
    clock: Callable[[], datetime],
) -> tuple[InMemoryArtifactStore, InMemoryBuildLog]:
    """Return a store with three logged builds and one orphan.

    Returns
    -------
    tuple[InMemoryArtifactStore, InMemoryBuildLog]
        Store and log, oldest build first.
    """
    store = InMemoryArtifactStore()
    log = InMemoryBuildLog(clock=clock)
    for index, fingerprint in enumerate(("f-old", "f-mid", "f-new")):
        log.record([_record(store, f"n{index}", fingerprint)], status=BuildStatus.SUCCESS)
    store.put("f-orphan", Artifact.from_payload(b"x", language="python", fmt="text"))
    return store, log


def test_gc_without_rules_removes_orphans_only(
    populated: tuple[InMemoryArtifactStore, InMemoryBuildLog],
) -> None:
    """Ensure every log entry is retained when no rule is given."""
    store, log = populated

    report = collect_garbage(store, log)

    assert report.deleted == ("f-orphan",)
    assert report.kept == ("f-mid", "f-new", "f-old")
    assert len(report.retained_logs) == 3
    assert sorted(store.fingerprints()) == ["f-mid", "f-new", "f-old"]


def test_gc_keep_last(populated: tuple[InMemoryArtifactStore, InMemoryBuildLog]) -> None:
    """Ensure only the newest entries pin artifacts under keep_last."""
    store, log = populated

    report = collect_garbage(store, log, keep_last=1)

    assert report.kept == ("f-new",)
    assert report.deleted == ("f-mid", "f-old", "f-orphan")
    assert report.retained_logs == (log.list().ids()[0],)
    assert list(store.fingerprints()) == ["f-new"]


def test_gc_keep_since(populated: tuple[InMemoryArtifactStore, InMemoryBuildLog]) -> None:
    """Ensure entries at or after the cutoff stay pinned."""
    store, log = populated

    report = collect_garbage(store, log, keep_since=datetime(2025, 8, 15, 11, 31, tzinfo=UTC))

    assert report.kept == ("f-mid", "f-new")
    assert report.deleted == ("f-old", "f-orphan")


def test_gc_rules_combine_as_union(
    populated: tuple[InMemoryArtifactStore, InMemoryBuildLog],
) -> None:
    """Ensure an entry kept by either rule survives."""
    store, log = populated

    report = collect_garbage(
        store,
        log,
        keep_last=1,
        keep_since=datetime(2025, 8, 15, 11, 31, tzinfo=UTC),
    )

    assert report.kept == ("f-mid", "f-new")


def test_gc_dry_run_deletes_nothing(
    populated: tuple[InMemoryArtifactStore, InMemoryBuildLog],
) -> None:
    """Ensure a dry run reports deletions without touching the store."""
    store, log = populated

    report = collect_garbage(store, log, keep_last=0, dry_run=True)

    assert report.dry_run
    assert report.deleted == ("f-mid", "f-new", "f-old", "f-orphan")
    assert len(store) == 4


def test_gc_rejects_negative_keep_last() -> None:
    """Ensure a negative retention count is refused."""
    with pytest.raises(ValueError, match="non-negative"):
        collect_garbage(InMemoryArtifactStore(), InMemoryBuildLog(), keep_last=-1)
