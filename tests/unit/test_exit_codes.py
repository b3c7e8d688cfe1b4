"""Error taxonomy and CLI exit code mapping tests."""

from __future__ import annotations

import pytest

from buildlog.entries import BuildStatus
from cli.exit_codes import ExitCode
from cli.result import CliResult
from core.errors import (
    AmbiguousSelectorError,
    BuildCancelledError,
    ConversionError,
    CyclicDependencyError,
    DerivationError,
    HashComputationError,
    NotFoundError,
    RuntimeEvaluationError,
    UnresolvedReferenceError,
)


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (DerivationError("bad name"), ExitCode.GRAPH_ERROR),
        (CyclicDependencyError(("a", "b")), ExitCode.GRAPH_ERROR),
        (UnresolvedReferenceError("a", "missing"), ExitCode.GRAPH_ERROR),
        (HashComputationError("unreadable"), ExitCode.FINGERPRINT_ERROR),
        (RuntimeEvaluationError("boom"), ExitCode.EXECUTION_ERROR),
        (ConversionError("no converter"), ExitCode.EXECUTION_ERROR),
        (NotFoundError("nothing"), ExitCode.NOT_FOUND),
        (AmbiguousSelectorError("2025", ("x", "y")), ExitCode.NOT_FOUND),
        (BuildCancelledError("stop"), ExitCode.INTERRUPTED),
        (KeyboardInterrupt(), ExitCode.INTERRUPTED),
        (FileNotFoundError("config"), ExitCode.CONFIG_ERROR),
        (ValueError("invalid"), ExitCode.VALIDATION_ERROR),
        (RuntimeError("unexpected"), ExitCode.GENERAL_ERROR),
    ],
)
def test_exit_code_from_exception(exc: BaseException, expected: ExitCode) -> None:
    """Ensure each error family maps to its exit code."""
    assert ExitCode.from_exception(exc) == expected


def test_exit_code_from_build_status() -> None:
    """Ensure build outcomes map to success, failure and interruption codes."""
    assert ExitCode.from_build_status(BuildStatus.SUCCESS) == ExitCode.SUCCESS
    assert ExitCode.from_build_status(None) == ExitCode.SUCCESS
    assert ExitCode.from_build_status(BuildStatus.FAILED) == ExitCode.BUILD_FAILED
    assert ExitCode.from_build_status(BuildStatus.INTERRUPTED) == ExitCode.INTERRUPTED


def test_error_messages_name_the_problem() -> None:
    """Ensure structured errors keep their context attributes."""
    cycle = CyclicDependencyError(("a", "b", "c"))
    assert cycle.cycle == ("a", "b", "c")
    assert "a -> b -> c -> a" in str(cycle)

    unresolved = UnresolvedReferenceError("total", "sales")
    assert unresolved.node == "total"
    assert unresolved.reference == "sales"

    ambiguous = AmbiguousSelectorError("2025", ("one", "two"))
    assert ambiguous.matches == ("one", "two")
    assert isinstance(ambiguous, LookupError)
    assert isinstance(DerivationError("x"), ValueError)


def test_cli_result_from_exception() -> None:
    """Ensure CLI results carry the mapped exit code and message."""
    result = CliResult.from_exception(NotFoundError("No build log matches selector 'x'."))

    assert result.exit_code == ExitCode.NOT_FOUND
    assert not result.ok
    assert result.summary == "No build log matches selector 'x'."
    assert CliResult.success(summary="done").ok
