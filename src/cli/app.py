"""Main application setup for the polypipe CLI."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Literal

from cyclopts import App, Parameter

from cli.commands.version import get_version
from cli.context import RunContext
from cli.groups import admin_group, observability_group, session_group
from cli.result_action import cli_result_action
from cli.telemetry import invoke_with_telemetry
from engine.config import resolve_engine_config
from obs.otel import OtelBootstrapOptions, configure_logging, configure_otel
from utils.uuid_factory import uuid7_hex

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

_HELP_EPILOGUE = """
Examples:
  polypipe build pipeline.toml           Build every stale derivation
  polypipe build pipeline.py --plan      Write a plan manifest only
  polypipe inspect pipeline.toml         Show fingerprints and cache state
  polypipe read total 20250815           Read a derivation from a past build
  polypipe gc --keep-last 5 --dry-run    Preview garbage collection

Environment Variables:
  POLYPIPE_STORE_DIR      Store and build-log directory
  POLYPIPE_MAX_WORKERS    Maximum concurrent nodes
  POLYPIPE_R_COMMAND      Command used to run R scripts
  POLYPIPE_JULIA_COMMAND  Command used to run Julia scripts
  POLYPIPE_LOG_LEVEL      Default log level

Tips:
  Use `polypipe config` to see config precedence.
"""

app = App(
    name="polypipe",
    help="polypipe - incremental pipelines across Python, R and Julia.",
    help_format="rich",
    help_epilogue=_HELP_EPILOGUE,
    version=get_version(),
    version_flags=["--version", "-V"],
    default_parameter=Parameter(show_default=True),
    result_action=cli_result_action,
    exit_on_error=True,
    print_error=True,
    help_on_error=False,
)

app.meta.group_parameters = session_group


@dataclass(frozen=True)
class SessionOptions:
    """Session-level configuration parameters."""

    config_file: Annotated[
        Path | None,
        Parameter(
            name="--config",
            help="Path to polypipe.toml or pyproject.toml (overrides default search).",
            group=session_group,
        ),
    ] = None
    store_dir: Annotated[
        Path | None,
        Parameter(
            name="--store-dir",
            help="Directory holding the artifact store and build log.",
            group=session_group,
        ),
    ] = None
    log_level: Annotated[
        Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None,
        Parameter(
            name="--log-level",
            help="Logging verbosity level.",
            group=session_group,
        ),
    ] = None


@dataclass(frozen=True)
class ObservabilityOptions:
    """OpenTelemetry configuration parameters."""

    trace_console: Annotated[
        bool,
        Parameter(
            name="--trace-console",
            help="Export spans and metrics to the console.",
            group=observability_group,
        ),
    ] = False
    otel_test_mode: Annotated[
        bool,
        Parameter(
            name="--otel-test-mode",
            help="Use in-memory exporters for OpenTelemetry (for testing).",
            group=observability_group,
        ),
    ] = False


_DEFAULT_SESSION_OPTIONS = SessionOptions()
_DEFAULT_OBSERVABILITY_OPTIONS = ObservabilityOptions()


def build_run_context(
    session: SessionOptions = _DEFAULT_SESSION_OPTIONS,
    observability: ObservabilityOptions = _DEFAULT_OBSERVABILITY_OPTIONS,
) -> RunContext:
    """Resolve configuration layers into a run context.

    Returns
    -------
    RunContext
        Context injected into commands.

    Raises
    ------
    ValueError
        Raised when the resolved log level is unsupported.
    """
    resolved = resolve_engine_config(
        session.config_file,
        overrides={
            "store_dir": str(session.store_dir) if session.store_dir else None,
            "log_level": session.log_level,
        },
    )
    log_level = resolved.config.log_level.upper()
    if log_level not in LOG_LEVELS:
        msg = f"Unsupported log level {resolved.config.log_level!r}."
        raise ValueError(msg)
    return RunContext(
        run_id=uuid7_hex(),
        log_level=log_level,
        config=resolved.config,
        config_sources=resolved.sources,
        config_location=resolved.location,
        otel_options=OtelBootstrapOptions(
            test_mode=observability.otel_test_mode,
            console=observability.trace_console,
        ),
    )


@app.meta.default
def meta_launcher(
    *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
    session: Annotated[SessionOptions, Parameter(name="*")] = _DEFAULT_SESSION_OPTIONS,
    observability: Annotated[ObservabilityOptions, Parameter(name="*")] = (
        _DEFAULT_OBSERVABILITY_OPTIONS
    ),
) -> int:
    """Meta launcher for config selection and context injection.

    Returns
    -------
    int
        Exit status code from command execution.
    """
    run_context = build_run_context(session, observability)
    configure_logging(run_context.log_level, with_trace_ids=True)
    configure_otel(run_context.otel_options)
    logger.debug("Starting run %s", run_context.run_id)
    exit_code, _event = invoke_with_telemetry(app, list(tokens), run_context=run_context)
    return exit_code


# Lazy-loaded commands with aliases
app.command("cli.commands.build:build_command", name="build", alias="b")
app.command("cli.commands.inspect:inspect_command", name="inspect", alias="i")
app.command("cli.commands.inspect:graph_command", name="graph")
app.command("cli.commands.inspect:explain_command", name="explain")
app.command("cli.commands.read:read_command", name="read")
app.command("cli.commands.gc:gc_command", name="gc")
app.command("cli.commands.config:show_config", name="config")
app.command("cli.commands.version:version_command", name="version", alias="v")

# Log subapp
_log_app = App(name="log", help="Browse the build log.")
_log_app.command("cli.commands.log:log_list_command", name="list")
_log_app.command("cli.commands.log:log_show_command", name="show")
app.command(_log_app)

app.register_install_completion_command(
    name="--install-completion",
    add_to_startup=False,
    group=admin_group,
    help="Install shell completion scripts.",
)


def main() -> None:
    """Run the polypipe CLI."""
    raise SystemExit(app.meta())


__all__ = ["app", "build_run_context", "main"]
