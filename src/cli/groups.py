"""Shared help-panel groups for the polypipe CLI."""

from __future__ import annotations

from cyclopts import Group, Parameter, validators

session_group = Group(
    "Session",
    help="Session and configuration options.",
    sort_key=0,
)

output_group = Group(
    "Output",
    help="Control how results are displayed.",
    sort_key=1,
)

execution_group = Group(
    "Execution",
    help="Control build parallelism and interpreters.",
    sort_key=2,
)

retention_group = Group(
    "Retention",
    help="Choose which build-log entries pin their artifacts.",
    sort_key=3,
)

observability_group = Group(
    "Observability",
    help="Configure OpenTelemetry tracing and metrics.",
    sort_key=8,
)

admin_group = Group(
    "Admin",
    help="Administrative commands and help.",
    sort_key=99,
)

read_mode_group = Group(
    "Read Mode",
    help="Specify at most one of raw bytes or an output file.",
    validator=validators.MutuallyExclusive(),
    default_parameter=Parameter(show_default=False),
)

__all__ = [
    "admin_group",
    "execution_group",
    "observability_group",
    "output_group",
    "read_mode_group",
    "retention_group",
    "session_group",
]
