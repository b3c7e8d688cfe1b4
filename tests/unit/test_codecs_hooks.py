"""Codec and serialization hook resolution tests."""

from __future__ import annotations

import json
from pathlib import Path

import pyarrow as pa
import pytest

from core.errors import ConversionError
from runtimes.codecs import CODECS, codec_for, encode_json, json_ready
from runtimes.hooks import resolve_hook


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("pickle", {"rows": (1, 2), "label": "x"}),
        ("json", {"rows": [1, 2], "label": "x"}),
        ("text", "line one\nline two"),
    ],
)
def test_codecs_roundtrip(tmp_path: Path, name: str, value: object) -> None:
    """Ensure each builtin codec reads back what it wrote."""
    codec = CODECS[name]
    path = tmp_path / name

    codec.serialize(value, path)

    assert codec.deserialize(path) == value


def test_arrow_codec_accepts_mappings(tmp_path: Path) -> None:
    """Ensure column mappings are written as Arrow IPC tables."""
    path = tmp_path / "table.arrow"

    CODECS["arrow"].serialize({"id": [1, 2], "name": ["a", "b"]}, path)
    table = CODECS["arrow"].deserialize(path)

    assert isinstance(table, pa.Table)
    assert table.to_pydict() == {"id": [1, 2], "name": ["a", "b"]}


def test_arrow_codec_rejects_scalars(tmp_path: Path) -> None:
    """Ensure values without a tabular form are refused."""
    with pytest.raises(TypeError, match="Arrow table"):
        CODECS["arrow"].serialize(42, tmp_path / "scalar.arrow")


def test_json_ready_and_encode_json() -> None:
    """Ensure Arrow tables and tuples become JSON builtins."""
    table = pa.table({"x": [1, 2]})

    assert json_ready(table) == {"x": [1, 2]}
    assert json.loads(encode_json({"pair": (1, 2)})) == {"pair": [1, 2]}
    assert codec_for(None) is None
    assert codec_for("rds") is None


def test_resolve_hook_prefers_codecs() -> None:
    """Ensure codec names resolve to the codec function for the role."""
    assert resolve_hook("json", role="serializer") is CODECS["json"].serialize
    assert resolve_hook("json", role="deserializer") is CODECS["json"].deserialize
    assert resolve_hook("text", role="reader") is CODECS["text"].deserialize


def test_resolve_hook_from_namespace_and_import() -> None:
    """Ensure helper-file callables and dotted imports resolve."""

    def save_upper(obj: object, path: Path) -> None:
        path.write_text(str(obj).upper(), encoding="utf-8")

    assert resolve_hook("save_upper", role="serializer", namespace={"save_upper": save_upper}) is (
        save_upper
    )
    assert resolve_hook("json.loads", role="deserializer") is json.loads


@pytest.mark.parametrize("identifier", ["not_defined", "json.not_a_function", "no_such_mod.load"])
def test_resolve_hook_rejects_unknown(identifier: str) -> None:
    """Ensure unresolvable hooks raise conversion errors naming the node."""
    with pytest.raises(ConversionError) as excinfo:
        resolve_hook(identifier, role="deserializer", namespace={"not_defined": 3}, node="n")

    assert excinfo.value.node == "n"
