"""Python codecs for persisted artifact formats.

Every codec writes an object to a path and reads it back; hook identifiers
that name a codec resolve to these functions.
"""

from __future__ import annotations

import pickle
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path

import msgspec
import pyarrow as pa
import pyarrow.ipc as pa_ipc

from serde_msgspec import dumps_json, to_builtins

type Serializer = Callable[[object, Path], None]
type Deserializer = Callable[[Path], object]

NATIVE_PYTHON_FORMAT = "pickle"
# Formats every runtime can read without a converter.
NEUTRAL_FORMATS: frozenset[str] = frozenset({"json", "arrow", "text"})


@dataclass(frozen=True)
class Codec:
    """Named serializer/deserializer pair."""

    name: str
    serialize: Serializer
    deserialize: Deserializer


def _pickle_serialize(obj: object, path: Path) -> None:
    with path.open("wb") as handle:
        pickle.dump(obj, handle, protocol=pickle.HIGHEST_PROTOCOL)


def _pickle_deserialize(path: Path) -> object:
    with path.open("rb") as handle:
        return pickle.load(handle)  # noqa: S301


def json_ready(obj: object) -> object:
    """Return a JSON-compatible view of an object.

    Arrow tables become column mappings; everything else goes through the
    shared msgspec builtin conversion.

    Returns
    -------
    object
        Builtin representation.
    """
    if isinstance(obj, (pa.Table, pa.RecordBatch)):
        return obj.to_pydict()
    return to_builtins(obj)


def _json_serialize(obj: object, path: Path) -> None:
    path.write_bytes(dumps_json(json_ready(obj)))


def _json_deserialize(path: Path) -> object:
    return msgspec.json.decode(path.read_bytes())


def _as_table(obj: object) -> pa.Table:
    if isinstance(obj, pa.Table):
        return obj
    if isinstance(obj, pa.RecordBatch):
        return pa.Table.from_batches([obj])
    if isinstance(obj, Mapping):
        return pa.table(dict(obj))
    to_arrow = getattr(obj, "to_arrow", None)
    if callable(to_arrow):
        return _as_table(to_arrow())
    msg = f"Cannot write {type(obj).__name__} as an Arrow table."
    raise TypeError(msg)


def _arrow_serialize(obj: object, path: Path) -> None:
    table = _as_table(obj)
    with pa.OSFile(str(path), "wb") as sink, pa_ipc.new_file(sink, table.schema) as writer:
        writer.write_table(table)


def _arrow_deserialize(path: Path) -> object:
    with pa.OSFile(str(path), "rb") as source:
        return pa_ipc.open_file(source).read_all()


def _text_serialize(obj: object, path: Path) -> None:
    path.write_text(obj if isinstance(obj, str) else str(obj), encoding="utf-8")


def _text_deserialize(path: Path) -> object:
    return path.read_text(encoding="utf-8")


CODECS: Mapping[str, Codec] = {
    "pickle": Codec("pickle", _pickle_serialize, _pickle_deserialize),
    "json": Codec("json", _json_serialize, _json_deserialize),
    "arrow": Codec("arrow", _arrow_serialize, _arrow_deserialize),
    "text": Codec("text", _text_serialize, _text_deserialize),
}


def codec_for(name: str | None) -> Codec | None:
    """Return the codec registered under ``name``.

    Returns
    -------
    Codec | None
        Codec, or None for unknown names.
    """
    if name is None:
        return None
    return CODECS.get(name)


def encode_json(obj: object) -> bytes:
    """Return JSON bytes for an object decoded by a Python codec.

    Returns
    -------
    bytes
        JSON payload.
    """
    return dumps_json(json_ready(obj))


__all__ = [
    "CODECS",
    "NATIVE_PYTHON_FORMAT",
    "NEUTRAL_FORMATS",
    "Codec",
    "Deserializer",
    "Serializer",
    "codec_for",
    "encode_json",
    "json_ready",
]
