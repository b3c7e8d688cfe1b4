"""Run context for CLI command injection."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from engine.config import ConfigSource, EngineConfig

if TYPE_CHECKING:
    from obs.otel import OtelBootstrapOptions


@dataclass(frozen=True)
class RunContext:
    """Injected run context for CLI commands.

    Parameters
    ----------
    run_id
        Run identifier for the CLI invocation.
    log_level
        Logging level applied to the invocation.
    config
        Effective engine configuration.
    config_sources
        Layer each configuration key was resolved from.
    config_location
        Config file the values were read from, if any.
    otel_options
        Optional OpenTelemetry bootstrap options.
    """

    run_id: str
    log_level: str = "INFO"
    config: EngineConfig = field(default_factory=EngineConfig)
    config_sources: dict[str, ConfigSource] = field(default_factory=dict)
    config_location: str | None = None
    otel_options: OtelBootstrapOptions | None = None


__all__ = ["RunContext"]
