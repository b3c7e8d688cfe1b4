"""Resolution of serializer, deserializer and reader hook identifiers."""

from __future__ import annotations

import importlib
from collections.abc import Callable, Mapping
from typing import Literal

from core.errors import ConversionError
from runtimes.codecs import codec_for

type HookRole = Literal["serializer", "deserializer", "reader"]


def resolve_hook(
    identifier: str,
    *,
    role: HookRole,
    namespace: Mapping[str, object] | None = None,
    node: str | None = None,
) -> Callable[..., object]:
    """Return the Python callable named by a hook identifier.

    Lookup order: a codec name, then a callable defined by the node's extra
    files (``namespace``), then a dotted ``module.attr`` import path.

    Returns
    -------
    Callable[..., object]
        Serializer ``(obj, path)`` or deserializer/reader ``(path)``.

    Raises
    ------
    ConversionError
        Raised when the identifier does not resolve to a callable.
    """
    codec = codec_for(identifier)
    if codec is not None:
        return codec.serialize if role == "serializer" else codec.deserialize
    if namespace is not None:
        candidate = namespace.get(identifier)
        if callable(candidate):
            return candidate
    module_name, _, attr = identifier.rpartition(".")
    if module_name:
        try:
            module = importlib.import_module(module_name)
        except ImportError as exc:
            msg = f"Cannot import {role} hook {identifier!r}: {exc}"
            raise ConversionError(msg, node=node) from exc
        candidate = getattr(module, attr, None)
        if callable(candidate):
            return candidate
    msg = f"Unknown {role} hook {identifier!r}."
    raise ConversionError(msg, node=node)


__all__ = ["HookRole", "resolve_hook"]
