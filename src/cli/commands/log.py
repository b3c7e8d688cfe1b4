"""Build-log browsing commands."""

from __future__ import annotations

import itertools
import sys
from typing import Annotated, Literal

from cyclopts import Parameter, validators

from cli.context import RunContext
from cli.groups import output_group
from cli.result import CliResult
from cli.runtime_services import resolve_engine_context
from cli.tables import log_table, records_table
from serde_msgspec import dumps_json


def log_list_command(
    *,
    limit: Annotated[
        int | None,
        Parameter(
            name=["--limit", "-n"],
            help="Show at most this many entries.",
            validator=validators.Number(gte=1),
        ),
    ] = None,
    output_format: Annotated[
        Literal["text", "json"],
        Parameter(name="--format", help="Render as a table or JSON.", group=output_group),
    ] = "text",
    run_context: Annotated[RunContext | None, Parameter(parse=False)] = None,
) -> CliResult:
    """List recorded builds, newest first.

    Returns
    -------
    CliResult
        Build-log table.
    """
    listing = resolve_engine_context(run_context).log.list()
    entries = tuple(itertools.islice(listing, limit))
    if output_format == "json":
        sys.stdout.write(dumps_json(entries, pretty=True).decode("utf-8") + "\n")
        return CliResult.success()
    return CliResult.success(
        summary=f"Showing {len(entries)} of {len(listing)} builds.",
        renderables=(log_table(entries),),
    )


def log_show_command(
    selector: str | None = None,
    *,
    output_format: Annotated[
        Literal["text", "json"],
        Parameter(name="--format", help="Render as a table or JSON.", group=output_group),
    ] = "text",
    run_context: Annotated[RunContext | None, Parameter(parse=False)] = None,
) -> CliResult:
    """Show the node records of one build.

    Parameters
    ----------
    selector
        Log id or a unique fragment of one (such as a date); defaults to the
        most recent build.

    Returns
    -------
    CliResult
        Node records of the selected build.
    """
    entry = resolve_engine_context(run_context).log.resolve(selector)
    suffix = " (partial)" if entry.partial else ""
    if output_format == "json":
        sys.stdout.write(dumps_json(entry, pretty=True).decode("utf-8") + "\n")
        return CliResult.success()
    return CliResult.success(
        summary=f"Build {entry.log_id} {entry.status}{suffix}.",
        renderables=(records_table(entry.nodes, title=entry.timestamp.isoformat()),),
    )


__all__ = ["log_list_command", "log_show_command"]
