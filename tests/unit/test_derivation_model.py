"""Derivation model and builder tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from core.errors import DerivationError
from derivations import (
    Conversion,
    Derivation,
    Expression,
    FileImport,
    Language,
    make_pipeline,
    py_derivation,
    py_file,
    py_to_r,
    r_derivation,
    r_file,
)
from derivations.builders import DEFAULT_READERS, convert, jl_file


def test_expression_builder_fields() -> None:
    """Ensure expression builders fill language, hooks and options."""
    item = py_derivation(
        "total",
        "sum(values)",
        depends_on=["values"],
        serializer="json",
        extra_files=["helpers.py"],
        env_vars={"MODE": "fast"},
    )

    assert item.language == Language.PYTHON
    assert item.body == Expression(source="sum(values)")
    assert item.kind == "expression"
    assert item.depends_on == ("values",)
    assert item.hooks.serializer == "json"
    assert item.hooks.deserializer is None
    assert item.extra_files == ("helpers.py",)
    assert item.env_vars == {"MODE": "fast"}


def test_file_builders_use_default_readers() -> None:
    """Ensure file imports pick the language's default reader."""
    python_item = py_file("raw", "data/raw.csv")
    r_item = r_file("raw_r", Path("data/raw.csv"))
    julia_item = jl_file("raw_jl", "data/raw.csv", reader="CSV.read")

    assert isinstance(python_item.body, FileImport)
    assert python_item.body.reader == DEFAULT_READERS[Language.PYTHON]
    assert python_item.kind == "file_import"
    assert isinstance(r_item.body, FileImport)
    assert r_item.body.path == "data/raw.csv"
    assert r_item.body.reader == DEFAULT_READERS[Language.R]
    assert isinstance(julia_item.body, FileImport)
    assert julia_item.body.reader == "CSV.read"


def test_conversion_builder_targets_language() -> None:
    """Ensure conversions are declared in their target language."""
    item = py_to_r("values_r", "values")

    assert item.language == Language.R
    assert item.kind == "conversion"
    assert item.body == Conversion(
        source="values",
        from_language=Language.PYTHON,
        to_language=Language.R,
    )


@pytest.mark.parametrize("name", ["", "1abc", "has space", "dash-name", "x" * 129])
def test_invalid_names_rejected(name: str) -> None:
    """Ensure names outside the identifier pattern are rejected."""
    with pytest.raises(DerivationError, match="Invalid derivation name"):
        py_derivation(name, "1")


def test_dotted_names_accepted() -> None:
    """Ensure dotted and underscored names are valid."""
    assert py_derivation("stage.clean_rows", "1").name == "stage.clean_rows"


def test_conversion_must_change_language() -> None:
    """Ensure same-language conversions are rejected."""
    with pytest.raises(DerivationError, match="must change language"):
        convert("copy", "values", from_language="python", to_language="python")


def test_conversion_language_must_match_target() -> None:
    """Ensure a conversion body and its declared language agree."""
    with pytest.raises(DerivationError, match="targets"):
        Derivation(
            name="bad",
            language=Language.JULIA,
            body=Conversion(source="a", from_language=Language.PYTHON, to_language=Language.R),
        )


def test_file_import_rejects_upstream() -> None:
    """Ensure file imports cannot declare dependencies."""
    with pytest.raises(DerivationError, match="cannot declare upstream"):
        Derivation(
            name="raw",
            language=Language.PYTHON,
            body=FileImport(path="raw.csv", reader="text"),
            depends_on=("other",),
        )


def test_empty_expression_rejected() -> None:
    """Ensure blank expressions are rejected."""
    with pytest.raises(DerivationError, match="empty expression"):
        r_derivation("blank", "   ")


def test_pipeline_rejects_duplicate_names() -> None:
    """Ensure pipeline names are unique."""
    with pytest.raises(DerivationError, match="Duplicate derivation name"):
        make_pipeline(py_derivation("a", "1"), py_derivation("a", "2"))


def test_pipeline_accessors(tmp_path: Path) -> None:
    """Ensure lookups and path resolution use the pipeline root."""
    pipeline = make_pipeline(py_derivation("a", "1"), py_derivation("b", "a + 1"), root=tmp_path)

    assert pipeline.names() == ("a", "b")
    assert pipeline.get("b") is not None
    assert pipeline.get("missing") is None
    assert pipeline.root_path() == tmp_path.resolve()
    assert pipeline.resolve_path("data.csv") == tmp_path.resolve() / "data.csv"
    assert pipeline.resolve_path("/abs/data.csv") == Path("/abs/data.csv")
    moved = pipeline.with_root(tmp_path / "other")
    assert moved.root == str(tmp_path / "other")
    assert moved.derivations == pipeline.derivations
