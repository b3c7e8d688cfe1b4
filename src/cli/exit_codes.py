"""Exit code taxonomy for the polypipe CLI."""

from __future__ import annotations

from enum import IntEnum

from buildlog.entries import BuildStatus
from core.errors import ErrorKind, PipelineError


class ExitCode(IntEnum):
    """Standard exit codes for CLI commands.

    Exit codes follow Unix conventions with domain-specific extensions:
    - 0: Success
    - 1-9: General errors (parse, validation, config)
    - 10-19: Pipeline errors
    - 20-29: Lookup errors
    - 130: Interrupted
    """

    SUCCESS = 0
    GENERAL_ERROR = 1
    PARSE_ERROR = 2
    VALIDATION_ERROR = 3
    CONFIG_ERROR = 4

    # Pipeline errors (10-19)
    GRAPH_ERROR = 10
    FINGERPRINT_ERROR = 11
    EXECUTION_ERROR = 12
    BUILD_FAILED = 13

    # Lookup errors (20-29)
    NOT_FOUND = 20

    INTERRUPTED = 130

    @classmethod
    def from_exception(cls, exc: BaseException) -> ExitCode:
        """Map an exception to an appropriate exit code.

        Parameters
        ----------
        exc
            Exception to classify.

        Returns
        -------
        ExitCode
            Exit code appropriate for the exception type.
        """
        if isinstance(exc, PipelineError):
            return _PIPELINE_CODES[exc.kind]
        if isinstance(exc, KeyboardInterrupt):
            return cls.INTERRUPTED
        cyclopts_code = _exit_code_for_cyclopts(exc)
        if cyclopts_code is not None:
            return cyclopts_code
        type_code = _exit_code_for_exception_type(exc)
        if type_code is not None:
            return type_code
        return cls.GENERAL_ERROR

    @classmethod
    def from_build_status(cls, status: BuildStatus | None) -> ExitCode:
        """Map an overall build status to an exit code.

        Returns
        -------
        ExitCode
            ``SUCCESS`` for successful or plan-only runs.
        """
        if status == BuildStatus.FAILED:
            return cls.BUILD_FAILED
        if status == BuildStatus.INTERRUPTED:
            return cls.INTERRUPTED
        return cls.SUCCESS


_PIPELINE_CODES: dict[ErrorKind, ExitCode] = {
    ErrorKind.GRAPH: ExitCode.GRAPH_ERROR,
    ErrorKind.FINGERPRINT: ExitCode.FINGERPRINT_ERROR,
    ErrorKind.EXECUTION: ExitCode.EXECUTION_ERROR,
    ErrorKind.LOOKUP: ExitCode.NOT_FOUND,
    ErrorKind.CANCELLED: ExitCode.INTERRUPTED,
}


def _exit_code_for_cyclopts(exc: BaseException) -> ExitCode | None:
    module = exc.__class__.__module__
    if not module.startswith("cyclopts"):
        return None
    if exc.__class__.__name__ == "ValidationError":
        return ExitCode.VALIDATION_ERROR
    return ExitCode.PARSE_ERROR


def _exit_code_for_exception_type(exc: BaseException) -> ExitCode | None:
    if isinstance(exc, (FileNotFoundError, FileExistsError, PermissionError)):
        return ExitCode.CONFIG_ERROR
    if isinstance(exc, (ValueError, TypeError)):
        return ExitCode.VALIDATION_ERROR
    return None


__all__ = ["ExitCode"]
