"""Inspection commands: per-node status, graph rendering and explanations."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated, Literal

from cyclopts import Parameter, validators

from cli.context import RunContext
from cli.groups import output_group
from cli.result import CliResult
from cli.runtime_services import resolve_engine_context
from cli.tables import explain_table, inspect_table
from dag.graph import build_graph
from derivations.loader import load_pipeline
from engine.facade import explain, inspect
from serde_msgspec import dumps_json

type OutputFormat = Literal["text", "json"]

_PIPELINE_FILE = Parameter(validator=validators.Path(exists=True, dir_okay=False))
_FORMAT = Parameter(name="--format", help="Render as a table or JSON.", group=output_group)


def inspect_command(
    pipeline_file: Annotated[Path, _PIPELINE_FILE],
    *,
    output_format: Annotated[OutputFormat, _FORMAT] = "text",
    run_context: Annotated[RunContext | None, Parameter(parse=False)] = None,
) -> CliResult:
    """Show fingerprint, cache state and last status of every derivation.

    Returns
    -------
    CliResult
        Inspection table.
    """
    rows = inspect(load_pipeline(pipeline_file), resolve_engine_context(run_context))
    if output_format == "json":
        sys.stdout.write(dumps_json(rows, pretty=True).decode("utf-8") + "\n")
        return CliResult.success()
    stale = sum(1 for row in rows if not row.cached)
    return CliResult.success(
        summary=f"{len(rows)} derivations, {stale} stale.",
        renderables=(inspect_table(rows),),
    )


def graph_command(
    pipeline_file: Annotated[Path, _PIPELINE_FILE],
    *,
    output_format: Annotated[
        Literal["dot", "json", "text"],
        Parameter(name="--format", help="Graph output format.", group=output_group),
    ] = "dot",
    output_file: Annotated[
        Path | None,
        Parameter(name=["--output", "-o"], help="Write the graph to a file.", group=output_group),
    ] = None,
) -> CliResult:
    """Render the dependency graph of a pipeline.

    Returns
    -------
    CliResult
        Graph rendering, or the path it was written to.
    """
    graph = build_graph(load_pipeline(pipeline_file))
    if output_format == "dot":
        rendered = graph.to_dot()
    elif output_format == "json":
        rendered = dumps_json(graph.snapshot(), pretty=True).decode("utf-8") + "\n"
    else:
        lines = [
            f"{index}: {', '.join(generation)}"
            for index, generation in enumerate(graph.generations())
        ]
        rendered = "\n".join(lines) + "\n"
    if output_file is not None:
        output_file.parent.mkdir(parents=True, exist_ok=True)
        output_file.write_text(rendered, encoding="utf-8")
        return CliResult.success(
            summary=f"Wrote {len(graph)} nodes.",
            artifacts={"graph": output_file},
        )
    sys.stdout.write(rendered)
    return CliResult.success()


def explain_command(
    pipeline_file: Annotated[Path, _PIPELINE_FILE],
    name: str,
    *,
    output_format: Annotated[OutputFormat, _FORMAT] = "text",
    run_context: Annotated[RunContext | None, Parameter(parse=False)] = None,
) -> CliResult:
    """Show the inputs the fingerprint of one derivation is computed from.

    Returns
    -------
    CliResult
        Component table.
    """
    explanation = explain(load_pipeline(pipeline_file), name, resolve_engine_context(run_context))
    if output_format == "json":
        sys.stdout.write(dumps_json(explanation, pretty=True).decode("utf-8") + "\n")
        return CliResult.success()
    state = "cached" if explanation.cached else "not cached"
    return CliResult.success(
        summary=f"{name} is {state}.",
        renderables=(explain_table(explanation),),
    )


__all__ = ["explain_command", "graph_command", "inspect_command"]
