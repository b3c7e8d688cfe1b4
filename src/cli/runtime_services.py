"""Engine-context composition helpers for CLI commands."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

import msgspec

from engine.config import load_engine_config
from engine.context import EngineContext

if TYPE_CHECKING:
    from cli.context import RunContext
    from engine.config import EngineConfig


def resolve_cli_config(
    run_context: RunContext | None,
    overrides: Mapping[str, object] | None = None,
) -> EngineConfig:
    """Return the run context config with command-level overrides applied.

    Commands invoked without a run context (for example from tests) load the
    effective configuration themselves.

    Returns
    -------
    EngineConfig
        Effective configuration.
    """
    updates = {key: value for key, value in (overrides or {}).items() if value is not None}
    if run_context is None:
        return load_engine_config(overrides=updates)
    if not updates:
        return run_context.config
    return msgspec.structs.replace(run_context.config, **updates)


def resolve_engine_context(
    run_context: RunContext | None,
    overrides: Mapping[str, object] | None = None,
) -> EngineContext:
    """Return a DiskCache-backed engine context for a command.

    Returns
    -------
    EngineContext
        Engine context rooted at the configured store directory.
    """
    return EngineContext.from_config(resolve_cli_config(run_context, overrides))


__all__ = ["resolve_cli_config", "resolve_engine_context"]
