"""Explicit garbage collection of unreferenced store entries."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from serde_msgspec import StructBaseStrict

if TYPE_CHECKING:
    from buildlog.log import BuildLog
    from store.protocol import ArtifactStore

logger = logging.getLogger(__name__)


class GcReport(StructBaseStrict, frozen=True):
    """Outcome of a garbage collection pass."""

    retained_logs: tuple[str, ...]
    kept: tuple[str, ...]
    deleted: tuple[str, ...]
    dry_run: bool = False


def collect_garbage(
    store: ArtifactStore,
    log: BuildLog,
    *,
    keep_last: int | None = None,
    keep_since: datetime | None = None,
    dry_run: bool = False,
) -> GcReport:
    """Delete store entries that no retained build-log entry references.

    With neither ``keep_last`` nor ``keep_since`` every log entry is retained,
    so only orphaned artifacts are removed. When both are given an entry is
    retained if either rule keeps it.

    Parameters
    ----------
    store
        Artifact store to sweep.
    log
        Build log whose entries pin artifacts.
    keep_last
        Retain the newest ``keep_last`` entries.
    keep_since
        Retain entries recorded at or after this time.
    dry_run
        Report what would be deleted without deleting.

    Returns
    -------
    GcReport
        Retained logs plus kept and deleted fingerprints.

    Raises
    ------
    ValueError
        Raised when ``keep_last`` is negative.
    """
    if keep_last is not None and keep_last < 0:
        msg = "keep_last must be non-negative."
        raise ValueError(msg)
    retained: list[str] = []
    pinned: set[str] = set()
    unrestricted = keep_last is None and keep_since is None
    for position, entry in enumerate(log.list()):
        keep = unrestricted
        if keep_last is not None and position < keep_last:
            keep = True
        if keep_since is not None and entry.timestamp >= keep_since:
            keep = True
        if keep:
            retained.append(entry.log_id)
            pinned.update(entry.fingerprints())
    kept: list[str] = []
    deleted: list[str] = []
    for fingerprint in sorted(store.fingerprints()):
        if fingerprint in pinned:
            kept.append(fingerprint)
            continue
        if not dry_run:
            store.delete(fingerprint)
        deleted.append(fingerprint)
    logger.info(
        "Garbage collection %s %d artifacts, kept %d",
        "would delete" if dry_run else "deleted",
        len(deleted),
        len(kept),
    )
    return GcReport(
        retained_logs=tuple(retained),
        kept=tuple(kept),
        deleted=tuple(deleted),
        dry_run=dry_run,
    )


__all__ = ["GcReport", "collect_garbage"]
