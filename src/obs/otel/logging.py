"""Logging helpers for trace correlation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, cast

from opentelemetry import trace

if TYPE_CHECKING:

    class _TraceRecord(logging.LogRecord):
        trace_id: str | None
        span_id: str | None


TRACE_LOG_FORMAT = (
    "%(asctime)s %(levelname)s [trace_id=%(trace_id)s span_id=%(span_id)s] %(name)s: %(message)s"
)
PLAIN_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_HANDLER_NAME = "polypipe"


class TraceContextFilter(logging.Filter):
    """Attach trace/span IDs to log records when available."""

    @staticmethod
    def filter(record: logging.LogRecord) -> bool:
        """Inject trace/span IDs into the log record when available.

        Returns
        -------
        bool
            True to keep the log record.
        """
        context = trace.get_current_span().get_span_context()
        trace_record = cast("_TraceRecord", record)
        if context is None or not context.is_valid:
            trace_record.trace_id = None
            trace_record.span_id = None
            return True
        trace_record.trace_id = f"{context.trace_id:032x}"
        trace_record.span_id = f"{context.span_id:016x}"
        return True


class TraceContextFormatter(logging.Formatter):
    """Formatter that ensures trace/span IDs are present on log records."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record with ensured trace/span fields.

        Returns
        -------
        str
            Formatted log record string.
        """
        if not hasattr(record, "trace_id"):
            record.trace_id = None
        if not hasattr(record, "span_id"):
            record.span_id = None
        return super().format(record)


def configure_logging(level: str = "INFO", *, with_trace_ids: bool = False) -> None:
    """Install a named stream handler on the root logger.

    Repeated calls only adjust the level and formatter.
    """
    target = logging.getLogger()
    target.setLevel(level.upper())
    formatter = (
        TraceContextFormatter(TRACE_LOG_FORMAT)
        if with_trace_ids
        else logging.Formatter(PLAIN_LOG_FORMAT)
    )
    handler = next((item for item in target.handlers if item.get_name() == _HANDLER_NAME), None)
    if handler is None:
        handler = logging.StreamHandler()
        handler.set_name(_HANDLER_NAME)
        target.addHandler(handler)
    handler.setFormatter(formatter)
    if with_trace_ids and not any(isinstance(f, TraceContextFilter) for f in handler.filters):
        handler.addFilter(TraceContextFilter())


__all__ = [
    "PLAIN_LOG_FORMAT",
    "TRACE_LOG_FORMAT",
    "TraceContextFilter",
    "TraceContextFormatter",
    "configure_logging",
]
