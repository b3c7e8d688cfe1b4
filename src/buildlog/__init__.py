"""Append-only history of pipeline builds."""

from __future__ import annotations

from buildlog.entries import BuildLogEntry, BuildStatus, NodeRecord, NodeStatus, overall_status
from buildlog.log import (
    BuildLog,
    BuildLogBase,
    Clock,
    DiskBuildLog,
    InMemoryBuildLog,
    LogListing,
    utc_now,
)

__all__ = [
    "BuildLog",
    "BuildLogBase",
    "BuildLogEntry",
    "BuildStatus",
    "Clock",
    "DiskBuildLog",
    "InMemoryBuildLog",
    "LogListing",
    "NodeRecord",
    "NodeStatus",
    "overall_status",
    "utc_now",
]
