"""Build-log records."""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping
from datetime import datetime
from enum import StrEnum

from serde_msgspec import StructBaseCompat
from store.artifacts import ArtifactRef


class NodeStatus(StrEnum):
    """Outcome of one node within a build."""

    REBUILT = "rebuilt"
    REUSED = "reused"
    FAILED = "failed"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"
    PENDING = "pending"


class BuildStatus(StrEnum):
    """Overall outcome of a build."""

    SUCCESS = "success"
    FAILED = "failed"
    INTERRUPTED = "interrupted"


class NodeRecord(StructBaseCompat, frozen=True):
    """Per-node row of a build-log entry."""

    name: str
    fingerprint: str
    status: NodeStatus
    language: str = ""
    artifact: ArtifactRef | None = None
    error: str | None = None
    duration_s: float = 0.0


class BuildLogEntry(StructBaseCompat, frozen=True):
    """Immutable record of one build run."""

    log_id: str
    timestamp: datetime
    status: BuildStatus
    nodes: tuple[NodeRecord, ...] = ()
    partial: bool = False
    root: str | None = None

    def node(self, name: str) -> NodeRecord | None:
        """Return the record for a node, if present.

        Returns
        -------
        NodeRecord | None
            Node record, or None.
        """
        for record in self.nodes:
            if record.name == name:
                return record
        return None

    def counts(self) -> Mapping[str, int]:
        """Return node counts keyed by status.

        Returns
        -------
        Mapping[str, int]
            Status counts.
        """
        return dict(Counter(str(record.status) for record in self.nodes))

    def fingerprints(self) -> frozenset[str]:
        """Return fingerprints of every artifact the entry references.

        Returns
        -------
        frozenset[str]
            Referenced fingerprints.
        """
        return frozenset(
            record.artifact.fingerprint for record in self.nodes if record.artifact is not None
        )


def overall_status(records: tuple[NodeRecord, ...], *, interrupted: bool) -> BuildStatus:
    """Return the build status implied by node records.

    Returns
    -------
    BuildStatus
        ``interrupted`` wins over ``failed``, which wins over ``success``.
    """
    if interrupted:
        return BuildStatus.INTERRUPTED
    if any(record.status in {NodeStatus.FAILED, NodeStatus.BLOCKED} for record in records):
        return BuildStatus.FAILED
    return BuildStatus.SUCCESS


__all__ = [
    "BuildLogEntry",
    "BuildStatus",
    "NodeRecord",
    "NodeStatus",
    "overall_status",
]
