"""Build log tests for the in-memory and DiskCache backends."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from buildlog.entries import BuildStatus, NodeRecord, NodeStatus, overall_status
from buildlog.log import BuildLogBase, DiskBuildLog, InMemoryBuildLog
from cache.diskcache_factory import close_pooled_caches
from core.errors import AmbiguousSelectorError, NotFoundError
from store.artifacts import Artifact

type LogFactory = Callable[[Callable[[], datetime]], BuildLogBase]


def _day_clock() -> Callable[[], datetime]:
    current = [datetime(2025, 8, 14, 9, 0, tzinfo=UTC)]

    def _now() -> datetime:
        value = current[0]
        current[0] = value + timedelta(days=1)
        return value

    return _now


@pytest.fixture(params=["memory", "disk"])
def make_log(request: pytest.FixtureRequest, tmp_path: Path) -> Iterator[LogFactory]:
    """Yield a factory building each log backend with a given clock.

    Yields
    ------
    LogFactory
        Backend factory.
    """
    if request.param == "memory":
        yield lambda clock: InMemoryBuildLog(clock=clock)
        return
    yield lambda clock: DiskBuildLog(tmp_path / "state", clock=clock)
    close_pooled_caches()


def _record(name: str, fingerprint: str, *, status: NodeStatus = NodeStatus.REBUILT) -> NodeRecord:
    artifact = None
    if status in {NodeStatus.REBUILT, NodeStatus.REUSED}:
        artifact = Artifact.from_payload(fingerprint.encode(), language="python", fmt="json").ref(
            fingerprint, location=f"memory://{fingerprint}"
        )
    return NodeRecord(
        name=name,
        fingerprint=fingerprint,
        status=status,
        language="python",
        artifact=artifact,
    )


def test_record_and_list_newest_first(make_log: LogFactory) -> None:
    """Ensure entries are stamped by the clock and listed newest first."""
    log = make_log(_day_clock())

    first = log.record([_record("a", "fp-1")], status=BuildStatus.SUCCESS, root="/work")
    second = log.record([_record("a", "fp-2")], status=BuildStatus.SUCCESS)

    listing = log.list()
    assert listing.ids() == (second.log_id, first.log_id)
    assert len(listing) == 2
    assert [entry.log_id for entry in listing] == [second.log_id, first.log_id]
    # Listings are restartable.
    assert [entry.log_id for entry in listing] == [second.log_id, first.log_id]
    assert first.log_id.startswith("20250814T090000Z-")
    assert second.timestamp == datetime(2025, 8, 15, 9, 0, tzinfo=UTC)
    assert log.get(first.log_id) == first
    assert log.entries() == (first, second)
    assert first.root == "/work"


def test_resolve_selectors(make_log: LogFactory) -> None:
    """Ensure selectors match exact ids, unique substrings or the newest entry."""
    log = make_log(_day_clock())
    first = log.record([_record("a", "fp-1")], status=BuildStatus.SUCCESS)
    second = log.record([_record("a", "fp-2")], status=BuildStatus.FAILED)

    assert log.resolve() == second
    assert log.resolve("") == second
    assert log.resolve(first.log_id) == first
    assert log.resolve("20250814") == first
    assert log.resolve(second.log_id.split("-")[-1]) == second


def test_resolve_reports_missing_and_ambiguous(make_log: LogFactory) -> None:
    """Ensure empty logs, unknown selectors and ambiguous selectors raise."""
    log = make_log(_day_clock())
    with pytest.raises(NotFoundError, match="empty"):
        log.resolve()

    log.record([_record("a", "fp-1")], status=BuildStatus.SUCCESS)
    log.record([_record("a", "fp-2")], status=BuildStatus.SUCCESS)

    with pytest.raises(NotFoundError, match="No build log matches"):
        log.resolve("19991231")
    with pytest.raises(AmbiguousSelectorError) as excinfo:
        log.resolve("202508")
    assert len(excinfo.value.matches) == 2


def test_lookup_and_latest(make_log: LogFactory) -> None:
    """Ensure node lookups honour selectors and skip records without artifacts."""
    log = make_log(_day_clock())
    first = log.record(
        [_record("a", "fp-a1"), _record("b", "fp-b1")],
        status=BuildStatus.SUCCESS,
    )
    log.record(
        [_record("a", "fp-a2"), _record("b", "fp-b2", status=NodeStatus.FAILED)],
        status=BuildStatus.FAILED,
    )

    assert log.lookup("a").fingerprint == "fp-a2"
    assert log.lookup("a", first.log_id).fingerprint == "fp-a1"
    assert log.latest("b").fingerprint == "fp-b1"
    with pytest.raises(NotFoundError, match="not part of build log"):
        log.lookup("c")
    with pytest.raises(NotFoundError, match="No build log holds"):
        log.latest("c")


def test_fixed_clock_still_yields_unique_ids(make_log: LogFactory) -> None:
    """Ensure entries recorded at the same instant get distinct ids."""
    moment = datetime(2025, 8, 15, tzinfo=UTC)
    log = make_log(lambda: moment)

    ids = {log.record([], status=BuildStatus.SUCCESS).log_id for _ in range(5)}

    assert len(ids) == 5


def test_disk_log_persists_across_instances(tmp_path: Path) -> None:
    """Ensure the DiskCache log survives reopening in insertion order."""
    clock = _day_clock()
    first = DiskBuildLog(tmp_path / "state", clock=clock).record(
        [_record("a", "fp-1")], status=BuildStatus.SUCCESS
    )
    close_pooled_caches()
    second = DiskBuildLog(tmp_path / "state", clock=clock).record(
        [_record("a", "fp-2")], status=BuildStatus.SUCCESS
    )
    close_pooled_caches()

    reopened = DiskBuildLog(tmp_path / "state")

    assert reopened.list().ids() == (second.log_id, first.log_id)
    assert reopened.lookup("a", first.log_id).artifact is not None
    close_pooled_caches()


def test_entry_counts_and_fingerprints() -> None:
    """Ensure entries summarize statuses and referenced artifacts."""
    log = InMemoryBuildLog(clock=_day_clock())
    entry = log.record(
        [
            _record("a", "fp-a"),
            _record("b", "fp-b", status=NodeStatus.REUSED),
            _record("c", "fp-c", status=NodeStatus.FAILED),
            _record("d", "fp-d", status=NodeStatus.BLOCKED),
        ],
        status=BuildStatus.FAILED,
    )

    assert entry.counts() == {"rebuilt": 1, "reused": 1, "failed": 1, "blocked": 1}
    assert entry.fingerprints() == frozenset({"fp-a", "fp-b"})
    assert entry.node("c") is not None
    assert entry.node("z") is None


def test_overall_status_precedence() -> None:
    """Ensure interruption beats failure, which beats success."""
    ok = (_record("a", "fp-a"),)
    blocked = (_record("a", "fp-a"), _record("b", "fp-b", status=NodeStatus.BLOCKED))

    assert overall_status(ok, interrupted=False) == BuildStatus.SUCCESS
    assert overall_status(blocked, interrupted=False) == BuildStatus.FAILED
    assert overall_status(blocked, interrupted=True) == BuildStatus.INTERRUPTED


def test_exact_and_default_selectors_skip_id_scan(
    make_log: LogFactory,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Ensure exact ids and the default selector resolve without walking the history."""
    log = make_log(_day_clock())
    first = log.record([_record("a", "fp-1")], status=BuildStatus.SUCCESS)
    for index in range(2, 6):
        log.record([_record("a", f"fp-{index}")], status=BuildStatus.SUCCESS)
    newest = log.record([_record("a", "fp-6")], status=BuildStatus.SUCCESS)

    def _no_scan(*, newest_first: bool = False) -> Iterator[str]:
        msg = f"history scanned (newest_first={newest_first})"
        raise AssertionError(msg)

    monkeypatch.setattr(log, "iter_ids", _no_scan)

    assert log.resolve() == newest
    assert log.resolve(first.log_id) == first
    assert log.lookup("a", first.log_id).fingerprint == "fp-1"
    assert log.newest_id() == newest.log_id
    assert log.count() == 6
