"""Store garbage collection command."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated

from cyclopts import Parameter, validators

from cli.context import RunContext
from cli.groups import retention_group
from cli.result import CliResult
from cli.runtime_services import resolve_engine_context
from engine.facade import gc


def gc_command(
    *,
    keep_last: Annotated[
        int | None,
        Parameter(
            name="--keep-last",
            help="Keep artifacts referenced by the newest N builds.",
            validator=validators.Number(gte=0),
            group=retention_group,
        ),
    ] = None,
    keep_since: Annotated[
        datetime | None,
        Parameter(
            name="--keep-since",
            help="Keep artifacts referenced by builds at or after this time (ISO 8601).",
            group=retention_group,
        ),
    ] = None,
    dry_run: Annotated[
        bool,
        Parameter(name="--dry-run", help="Report what would be deleted without deleting."),
    ] = False,
    run_context: Annotated[RunContext | None, Parameter(parse=False)] = None,
) -> CliResult:
    """Delete stored artifacts that no retained build references.

    Without retention options every build is retained, so only artifacts
    orphaned by earlier collections or interrupted runs are removed.

    Returns
    -------
    CliResult
        Collection summary.
    """
    if keep_since is not None and keep_since.tzinfo is None:
        keep_since = keep_since.replace(tzinfo=UTC)
    report = gc(
        resolve_engine_context(run_context),
        keep_last=keep_last,
        keep_since=keep_since,
        dry_run=dry_run,
    )
    verb = "Would delete" if report.dry_run else "Deleted"
    return CliResult.success(
        summary=(
            f"{verb} {len(report.deleted)} artifacts; kept {len(report.kept)} "
            f"referenced by {len(report.retained_logs)} builds."
        ),
    )


__all__ = ["gc_command"]
