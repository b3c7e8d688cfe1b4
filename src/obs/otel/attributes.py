"""Normalize OpenTelemetry attributes for polypipe telemetry."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from opentelemetry.util.types import AttributeValue

_MAX_ATTRIBUTE_LENGTH = 4096


def _truncate(value: str) -> str:
    if len(value) <= _MAX_ATTRIBUTE_LENGTH:
        return value
    return value[:_MAX_ATTRIBUTE_LENGTH]


def _normalize_value(value: object) -> AttributeValue | None:
    if value is None:
        return None
    if isinstance(value, str):
        return _truncate(value)
    if isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, Sequence) and not isinstance(value, (bytes, bytearray)):
        items = [item for item in value if isinstance(item, (str, bool, int, float))]
        if len(items) != len(value):
            return _truncate(str(list(value)))
        if all(isinstance(item, str) for item in items):
            return [_truncate(str(item)) for item in items]
        return [str(item) for item in items]
    return _truncate(str(value))


def normalize_attributes(attrs: Mapping[str, object] | None) -> dict[str, AttributeValue]:
    """Return attributes coerced to OpenTelemetry-compatible values.

    ``None`` values are dropped; unsupported values are stringified.

    Returns
    -------
    dict[str, AttributeValue]
        Normalized attributes.
    """
    if not attrs:
        return {}
    normalized: dict[str, AttributeValue] = {}
    for key, value in attrs.items():
        resolved = _normalize_value(value)
        if resolved is not None:
            normalized[str(key)] = resolved
    return normalized


__all__ = ["normalize_attributes"]
