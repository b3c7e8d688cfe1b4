"""Canonical OpenTelemetry instrumentation scopes for polypipe."""

from __future__ import annotations

SCOPE_PIPELINE = "polypipe.pipeline"
SCOPE_SCHEDULING = "polypipe.scheduling"
SCOPE_EXECUTION = "polypipe.execution"
SCOPE_STORAGE = "polypipe.storage"
SCOPE_OBS = "polypipe.obs"

__all__ = [
    "SCOPE_EXECUTION",
    "SCOPE_OBS",
    "SCOPE_PIPELINE",
    "SCOPE_SCHEDULING",
    "SCOPE_STORAGE",
]
