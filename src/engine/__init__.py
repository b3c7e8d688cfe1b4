"""Engine surface: configuration, injected context and build operations."""

from __future__ import annotations

from engine.config import ConfigSource, EngineConfig, load_engine_config, resolve_engine_config
from engine.context import EngineContext
from engine.facade import (
    BuildOptions,
    BuildResult,
    Explanation,
    InspectRow,
    PlanManifest,
    build,
    explain,
    gc,
    inspect,
    load,
    read,
)

__all__ = [
    "BuildOptions",
    "BuildResult",
    "ConfigSource",
    "EngineConfig",
    "EngineContext",
    "Explanation",
    "InspectRow",
    "PlanManifest",
    "build",
    "explain",
    "gc",
    "inspect",
    "load",
    "read",
]
