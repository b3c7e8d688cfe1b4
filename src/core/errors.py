"""Error taxonomy shared by graph construction, execution and lookup."""

from __future__ import annotations

from collections.abc import Sequence
from enum import StrEnum


class ErrorKind(StrEnum):
    """Categorize pipeline errors by the stage that raises them."""

    GRAPH = "graph"
    FINGERPRINT = "fingerprint"
    EXECUTION = "execution"
    LOOKUP = "lookup"
    CANCELLED = "cancelled"


class PipelineError(Exception):
    """Base exception for pipeline failures."""

    kind: ErrorKind = ErrorKind.GRAPH

    def __init__(self, message: str, *, node: str | None = None) -> None:
        super().__init__(message)
        self.node = node


class DerivationError(PipelineError, ValueError):
    """Raised when a derivation declaration is malformed."""


class CyclicDependencyError(PipelineError):
    """Raised when upstream references form a cycle."""

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = tuple(cycle)
        path = " -> ".join((*self.cycle, self.cycle[0])) if self.cycle else "?"
        super().__init__(f"Dependency cycle detected: {path}.")


class UnresolvedReferenceError(PipelineError):
    """Raised when a derivation references an unknown upstream name."""

    def __init__(self, node: str, reference: str, *, detail: str | None = None) -> None:
        self.reference = reference
        message = f"Derivation {node!r} references unknown derivation {reference!r}."
        if detail:
            message = f"{message} {detail}"
        super().__init__(message, node=node)


class HashComputationError(PipelineError):
    """Raised when a fingerprint input (file, directory) cannot be read."""

    kind = ErrorKind.FINGERPRINT


class RuntimeEvaluationError(PipelineError):
    """Raised when a derivation body fails inside its language runtime."""

    kind = ErrorKind.EXECUTION


class ConversionError(PipelineError):
    """Raised when an object cannot cross a language or format boundary."""

    kind = ErrorKind.EXECUTION


class NotFoundError(PipelineError, LookupError):
    """Raised when a fingerprint, log entry or derivation record is missing."""

    kind = ErrorKind.LOOKUP


class AmbiguousSelectorError(PipelineError, LookupError):
    """Raised when a build-log selector matches more than one entry."""

    kind = ErrorKind.LOOKUP

    def __init__(self, selector: str, matches: Sequence[str]) -> None:
        self.selector = selector
        self.matches = tuple(matches)
        listed = ", ".join(self.matches)
        super().__init__(f"Selector {selector!r} matches several build logs: {listed}.")


class BuildCancelledError(PipelineError):
    """Raised inside workers when a build was cancelled before they started."""

    kind = ErrorKind.CANCELLED


__all__ = [
    "AmbiguousSelectorError",
    "BuildCancelledError",
    "ConversionError",
    "CyclicDependencyError",
    "DerivationError",
    "ErrorKind",
    "HashComputationError",
    "NotFoundError",
    "PipelineError",
    "RuntimeEvaluationError",
    "UnresolvedReferenceError",
]
