"""Build command implementation for the polypipe CLI."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Literal

from cyclopts import Parameter, validators

from cli.context import RunContext
from cli.exit_codes import ExitCode
from cli.groups import execution_group, output_group
from cli.result import CliResult
from cli.runtime_services import resolve_engine_context
from cli.tables import records_table
from derivations.loader import load_pipeline
from engine.facade import BuildOptions, BuildResult, build
from serde_msgspec import dumps_json


@dataclass(frozen=True)
class BuildCommandOptions:
    """CLI options for the build command."""

    plan: Annotated[
        bool,
        Parameter(
            name="--plan",
            help="Write a plan manifest instead of executing stale nodes.",
            group=execution_group,
        ),
    ] = False
    max_workers: Annotated[
        int | None,
        Parameter(
            name=["--max-workers", "-j"],
            help="Maximum number of nodes built concurrently.",
            validator=validators.Number(gte=1),
            group=execution_group,
        ),
    ] = None
    r_command: Annotated[
        str | None,
        Parameter(
            name="--r-command",
            help="Command used to run R scripts.",
            group=execution_group,
        ),
    ] = None
    julia_command: Annotated[
        str | None,
        Parameter(
            name="--julia-command",
            help="Command used to run Julia scripts.",
            group=execution_group,
        ),
    ] = None
    output_format: Annotated[
        Literal["text", "json"],
        Parameter(
            name="--format",
            help="Render the build summary as a table or JSON.",
            group=output_group,
        ),
    ] = "text"


_DEFAULT_BUILD_OPTIONS = BuildCommandOptions()


def build_command(
    pipeline_file: Annotated[
        Path,
        Parameter(validator=validators.Path(exists=True, dir_okay=False)),
    ],
    options: Annotated[BuildCommandOptions, Parameter(name="*")] = _DEFAULT_BUILD_OPTIONS,
    *,
    run_context: Annotated[RunContext | None, Parameter(parse=False)] = None,
) -> CliResult:
    """Build every stale derivation of a pipeline file.

    Parameters
    ----------
    pipeline_file
        Pipeline declared as a ``.toml`` file or a ``.py`` module.
    options
        Build options.
    run_context
        Injected run context.

    Returns
    -------
    CliResult
        Build summary with an exit code derived from the build status.
    """
    pipeline = load_pipeline(pipeline_file)
    context = resolve_engine_context(
        run_context,
        {
            "max_workers": options.max_workers,
            "r_command": options.r_command,
            "julia_command": options.julia_command,
        },
    )
    result = build(pipeline, BuildOptions(build=not options.plan), context)
    return build_result(result, output_format=options.output_format)


def build_result(result: BuildResult, *, output_format: Literal["text", "json"]) -> CliResult:
    """Convert a build result into a CLI result.

    Returns
    -------
    CliResult
        Rendered result.
    """
    exit_code = ExitCode.from_build_status(result.status)
    artifacts = {"plan": Path(result.plan_path)} if result.plan_path else {}
    if output_format == "json":
        sys.stdout.write(dumps_json(result, pretty=True).decode("utf-8") + "\n")
        return CliResult(exit_code=int(exit_code))
    if result.planned:
        summary = f"Planned {len(result.nodes)} derivations."
    else:
        summary = f"Build {result.log_id} {result.status}."
    return CliResult(
        exit_code=int(exit_code),
        summary=summary,
        renderables=(records_table(result.nodes),),
        artifacts=artifacts,
    )


__all__ = ["BuildCommandOptions", "build_command", "build_result"]
