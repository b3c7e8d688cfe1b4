"""Node execution and dependency-ordered scheduling."""

from __future__ import annotations

from executor.node import NodeExecutor
from executor.scheduler import BuildScheduler, NodeCallback, ScheduleOutcome, resolve_max_workers

__all__ = [
    "BuildScheduler",
    "NodeCallback",
    "NodeExecutor",
    "ScheduleOutcome",
    "resolve_max_workers",
]
