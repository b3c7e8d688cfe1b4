"""Historical artifact retrieval command."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated

from cyclopts import Parameter
from rich.pretty import Pretty

from cli.context import RunContext
from cli.groups import read_mode_group
from cli.result import CliResult
from cli.runtime_services import resolve_engine_context
from engine.facade import read


def read_command(
    name: str,
    selector: str | None = None,
    *,
    raw: Annotated[
        bool,
        Parameter(name="--raw", help="Write the stored bytes to stdout.", group=read_mode_group),
    ] = False,
    output_file: Annotated[
        Path | None,
        Parameter(
            name=["--output", "-o"],
            help="Write the stored bytes to a file.",
            group=read_mode_group,
        ),
    ] = None,
    deserializer: Annotated[
        str | None,
        Parameter(name="--deserializer", help="Hook used to decode the artifact."),
    ] = None,
    run_context: Annotated[RunContext | None, Parameter(parse=False)] = None,
) -> CliResult:
    """Print the artifact a derivation had in a past build.

    Parameters
    ----------
    name
        Derivation name.
    selector
        Log id or unique fragment; defaults to the most recent build.

    Returns
    -------
    CliResult
        Decoded value, or the path the bytes were written to.
    """
    context = resolve_engine_context(run_context)
    if raw or output_file is not None:
        payload = read(name, selector, context, raw=True)
        if not isinstance(payload, bytes):
            msg = f"Expected bytes for {name!r}, got {type(payload).__name__}."
            raise TypeError(msg)
        if output_file is None:
            sys.stdout.buffer.write(payload)
            sys.stdout.flush()
            return CliResult.success()
        output_file.parent.mkdir(parents=True, exist_ok=True)
        output_file.write_bytes(payload)
        return CliResult.success(
            summary=f"Wrote {len(payload)} bytes.",
            artifacts={name: output_file},
        )
    value = read(name, selector, context, deserializer=deserializer)
    return CliResult.success(renderables=(Pretty(value),))


__all__ = ["read_command"]
