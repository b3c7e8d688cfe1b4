"""Telemetry wrappers for CLI invocation."""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass

from cyclopts import App
from cyclopts.exceptions import CycloptsError

from cli.context import RunContext
from cli.exit_codes import ExitCode
from cli.result import CliResult
from cli.result_action import cli_result_action, render_result
from core.errors import PipelineError
from obs.otel.scopes import SCOPE_OBS
from obs.otel.tracing import set_span_attributes, stage_span

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CliInvokeEvent:
    """Structured telemetry event for CLI invocation."""

    ok: bool
    command: str | None
    parse_ms: float
    exec_ms: float
    exit_code: int
    error_class: str | None = None
    error_stage: str | None = None
    error_message: str | None = None


@dataclass
class _InvokeState:
    t0: float
    command_name: str
    parse_ms: float | None = None
    exec_ms: float | None = None


def _command_name_from_tokens(tokens: Sequence[str] | None) -> str:
    if not tokens:
        return "<unknown>"
    return tokens[0]


def _run_command(
    app: App,
    tokens: Sequence[str],
    *,
    run_context: RunContext | None,
    state: _InvokeState,
) -> int:
    command, bound, ignored = app.parse_args(list(tokens), exit_on_error=False, print_error=True)
    state.parse_ms = (time.perf_counter() - state.t0) * 1000.0
    state.command_name = getattr(command, "__qualname__", repr(command))
    extra: dict[str, object] = {}
    if run_context is not None and "run_context" in ignored:
        extra["run_context"] = run_context
    t1 = time.perf_counter()
    result = command(*bound.args, **bound.kwargs, **extra)
    state.exec_ms = (time.perf_counter() - t1) * 1000.0
    return cli_result_action(app, command, result)


def invoke_with_telemetry(
    app: App,
    tokens: Sequence[str] | None,
    *,
    run_context: RunContext | None,
) -> tuple[int, CliInvokeEvent]:
    """Execute a CLI command inside an invocation span.

    Pipeline errors are rendered and mapped to exit codes; unexpected
    exceptions are logged with their traceback.

    Returns
    -------
    tuple[int, CliInvokeEvent]
        Exit code and invocation event.
    """
    tokens = list(tokens or ())
    state = _InvokeState(time.perf_counter(), _command_name_from_tokens(tokens))
    attributes: dict[str, object] = {
        "cli.command": state.command_name,
        "cli.tokens": len(tokens),
    }
    if run_context is not None:
        attributes["cli.run_id"] = run_context.run_id
    with stage_span(
        "cli.invocation",
        stage="cli",
        scope_name=SCOPE_OBS,
        attributes=attributes,
    ) as span:
        try:
            exit_code = _run_command(app, tokens, run_context=run_context, state=state)
            event = CliInvokeEvent(
                ok=exit_code == ExitCode.SUCCESS,
                command=state.command_name,
                parse_ms=state.parse_ms or 0.0,
                exec_ms=state.exec_ms or 0.0,
                exit_code=exit_code,
            )
        except CycloptsError as exc:
            event = _error_event(state, exc, stage=_classify_error_stage(exc))
        except (PipelineError, ValueError, OSError, KeyboardInterrupt) as exc:
            _LOGGER.debug("Command failed", exc_info=exc)
            event = _error_event(state, exc, stage="execution")
            render_result(CliResult.from_exception(exc))
        except Exception as exc:
            _LOGGER.exception("Command execution failed.")
            event = _error_event(state, exc, stage="execution")
        set_span_attributes(
            span,
            {
                "cli.exit_code": event.exit_code,
                "cli.ok": event.ok,
                "cli.parse_ms": event.parse_ms,
                "cli.exec_ms": event.exec_ms,
            },
        )
    return event.exit_code, event


def _error_event(state: _InvokeState, exc: BaseException, *, stage: str) -> CliInvokeEvent:
    if state.parse_ms is None:
        state.parse_ms = (time.perf_counter() - state.t0) * 1000.0
    return CliInvokeEvent(
        ok=False,
        command=state.command_name,
        parse_ms=state.parse_ms,
        exec_ms=state.exec_ms or 0.0,
        exit_code=int(ExitCode.from_exception(exc)),
        error_class=f"{exc.__class__.__module__}.{exc.__class__.__name__}",
        error_stage=stage,
        error_message=str(exc),
    )


def _classify_error_stage(exc: CycloptsError) -> str:
    name = exc.__class__.__name__
    if name == "UnknownCommandError":
        return "command_resolve"
    if name in {"UnknownOptionError", "MissingArgumentError", "RepeatArgumentError"}:
        return "binding"
    if name == "CoercionError":
        return "coercion"
    if name == "ValidationError":
        return "validation"
    return "unknown"


__all__ = ["CliInvokeEvent", "invoke_with_telemetry"]
