"""Rich renderables for build, log and inspection output."""

from __future__ import annotations

from collections.abc import Iterable

from rich.table import Table
from rich.text import Text

from buildlog.entries import BuildLogEntry, NodeRecord, NodeStatus
from engine.facade import Explanation, InspectRow

SHORT_FINGERPRINT = 12

_STATUS_STYLES: dict[str, str] = {
    NodeStatus.REBUILT: "green",
    NodeStatus.REUSED: "cyan",
    NodeStatus.FAILED: "bold red",
    NodeStatus.BLOCKED: "yellow",
    NodeStatus.CANCELLED: "magenta",
    NodeStatus.PENDING: "blue",
    "success": "green",
    "failed": "bold red",
    "interrupted": "magenta",
}


def status_text(status: str | None) -> Text:
    """Return a status styled for the terminal.

    Returns
    -------
    rich.text.Text
        Styled status, or a dash when unknown.
    """
    if status is None:
        return Text("-", style="dim")
    return Text(str(status), style=_STATUS_STYLES.get(str(status), ""))


def records_table(records: Iterable[NodeRecord], *, title: str | None = None) -> Table:
    """Return a table of per-node build records.

    Returns
    -------
    rich.table.Table
        One row per node.
    """
    table = Table(title=title)
    table.add_column("Derivation", style="bold")
    table.add_column("Language")
    table.add_column("Status")
    table.add_column("Fingerprint", style="dim")
    table.add_column("Seconds", justify="right")
    table.add_column("Error", overflow="fold")
    for record in records:
        table.add_row(
            record.name,
            record.language,
            status_text(record.status),
            record.fingerprint[:SHORT_FINGERPRINT],
            f"{record.duration_s:.2f}" if record.duration_s else "",
            record.error or "",
        )
    return table


def inspect_table(rows: Iterable[InspectRow]) -> Table:
    """Return a table of inspection rows.

    Returns
    -------
    rich.table.Table
        One row per node.
    """
    table = Table(title="Pipeline")
    table.add_column("Derivation", style="bold")
    table.add_column("Language")
    table.add_column("Kind")
    table.add_column("Fingerprint", style="dim")
    table.add_column("Cached")
    table.add_column("Last status")
    table.add_column("Upstream")
    for row in rows:
        table.add_row(
            row.name,
            row.language,
            row.kind,
            row.fingerprint[:SHORT_FINGERPRINT],
            "yes" if row.cached else "no",
            status_text(row.last_status),
            ", ".join(row.upstream),
        )
    return table


def log_table(entries: Iterable[BuildLogEntry]) -> Table:
    """Return a table of build-log entries, newest first.

    Returns
    -------
    rich.table.Table
        One row per entry.
    """
    table = Table(title="Build log")
    table.add_column("Log id", style="bold")
    table.add_column("Timestamp")
    table.add_column("Status")
    table.add_column("Nodes", justify="right")
    table.add_column("Counts")
    for entry in entries:
        counts = ", ".join(f"{key}={value}" for key, value in sorted(entry.counts().items()))
        table.add_row(
            entry.log_id,
            entry.timestamp.isoformat(timespec="seconds"),
            status_text(entry.status),
            str(len(entry.nodes)),
            counts,
        )
    return table


def explain_table(explanation: Explanation) -> Table:
    """Return a table of fingerprint components.

    Returns
    -------
    rich.table.Table
        Components, then upstream bindings, then file digests.
    """
    table = Table(title=f"{explanation.name} {explanation.fingerprint[:SHORT_FINGERPRINT]}")
    table.add_column("Component", style="bold")
    table.add_column("Value", overflow="fold")
    for name, value in sorted(explanation.components.items()):
        table.add_row(name, value)
    for binding, fingerprint in explanation.upstream:
        table.add_row(f"upstream:{binding}", fingerprint)
    for path, digest in explanation.files:
        table.add_row(f"file:{path}", digest)
    return table


__all__ = [
    "SHORT_FINGERPRINT",
    "explain_table",
    "inspect_table",
    "log_table",
    "records_table",
    "status_text",
]
