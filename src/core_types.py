"""Shared type aliases and small typing helpers."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Annotated

from msgspec import Meta

DERIVATION_NAME_PATTERN = "^[A-Za-z_][A-Za-z0-9_.]{0,127}$"

type JsonPrimitive = str | int | float | bool | None
type JsonValue = JsonPrimitive | Mapping[str, JsonValue] | Sequence[JsonValue]

DerivationNameStr = Annotated[
    str,
    Meta(
        pattern=DERIVATION_NAME_PATTERN,
        title="Derivation name",
        description="Pipeline-unique derivation identifier.",
    ),
]


__all__ = [
    "DERIVATION_NAME_PATTERN",
    "DerivationNameStr",
    "JsonPrimitive",
    "JsonValue",
]
