"""Configuration display command."""

from __future__ import annotations

import sys
from typing import Annotated, Literal

import msgspec
from cyclopts import Parameter
from rich.table import Table

from cli.context import RunContext
from cli.groups import output_group
from cli.result import CliResult
from engine.config import ConfigSource, resolve_engine_config
from serde_msgspec import dumps_json


def show_config(
    *,
    output_format: Annotated[
        Literal["text", "json"],
        Parameter(name="--format", help="Render as a table or JSON.", group=output_group),
    ] = "text",
    run_context: Annotated[RunContext | None, Parameter(parse=False)] = None,
) -> CliResult:
    """Show the effective configuration and where each value came from.

    Returns
    -------
    CliResult
        Configuration table.
    """
    if run_context is None:
        resolved = resolve_engine_config()
        config, sources, location = resolved.config, resolved.sources, resolved.location
    else:
        config = run_context.config
        sources, location = run_context.config_sources, run_context.config_location
    values = msgspec.structs.asdict(config)
    if output_format == "json":
        payload = {
            key: {"value": value, "source": sources.get(key, ConfigSource.DEFAULT)}
            for key, value in values.items()
        }
        sys.stdout.write(dumps_json(payload, pretty=True).decode("utf-8") + "\n")
        return CliResult.success()
    table = Table(title="Configuration")
    table.add_column("Key", style="bold")
    table.add_column("Value")
    table.add_column("Source", style="dim")
    for key, value in values.items():
        table.add_row(key, "" if value is None else str(value), sources.get(key, "default"))
    table.add_row("store path", str(config.store_path()), "derived")
    table.add_row("plan path", str(config.plan_path()), "derived")
    summary = f"Config file: {location}" if location else "No config file found."
    return CliResult.success(summary=summary, renderables=(table,))


__all__ = ["show_config"]
