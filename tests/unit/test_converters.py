"""Cross-language converter and input bridging tests."""

from __future__ import annotations

import pytest

from core.errors import ConversionError, RuntimeEvaluationError
from derivations import Language, py_derivation, r_derivation
from runtimes.python_runtime import PythonRuntime
from runtimes.registry import (
    ConverterRegistry,
    RuntimeRegistry,
    bridge_input,
    default_converters,
    default_runtimes,
)
from store.artifacts import Artifact


def test_default_registries_cover_builtin_pairs() -> None:
    """Ensure every language has a runtime and Python pairs with R and Julia."""
    runtimes = default_runtimes(r_command=["Rscript"], timeout_s=5.0)
    pairs = set(default_converters().pairs())

    assert runtimes.languages() == (Language.PYTHON, Language.R, Language.JULIA)
    assert isinstance(runtimes.python(), PythonRuntime)
    assert runtimes.availability()["python"] is True
    assert (Language.PYTHON, Language.R) in pairs
    assert (Language.JULIA, Language.PYTHON) in pairs
    assert (Language.R, Language.JULIA) not in pairs


def test_registry_reports_missing_runtime() -> None:
    """Ensure unregistered languages raise runtime errors."""
    with pytest.raises(RuntimeEvaluationError, match="No runtime registered"):
        RuntimeRegistry((PythonRuntime(),)).get(Language.JULIA)


def test_convert_python_to_fake_r(runtimes: RuntimeRegistry) -> None:
    """Ensure conversions go through JSON rendered by the source runtime."""
    source = runtimes.python().encode({"x": [1, 2]})

    converted = default_converters().convert(source, to_language=Language.R, runtimes=runtimes)

    assert converted.language == "r"
    assert converted.format == "json"
    assert converted.payload == b'{"x":[1,2]}'


def test_convert_same_language_is_identity(runtimes: RuntimeRegistry) -> None:
    """Ensure artifacts already in the target language pass through."""
    source = runtimes.python().encode([1])

    assert (
        default_converters().convert(source, to_language=Language.PYTHON, runtimes=runtimes)
        is source
    )


def test_convert_unknown_pair(runtimes: RuntimeRegistry) -> None:
    """Ensure pairs without a converter fail with the node name."""
    source = Artifact.from_payload(b"[1]", language="r", fmt="json")

    with pytest.raises(ConversionError, match="No converter registered") as excinfo:
        ConverterRegistry().convert(
            source,
            to_language=Language.PYTHON,
            runtimes=runtimes,
            node="n",
        )

    assert excinfo.value.node == "n"


def test_custom_converter_errors_are_wrapped(runtimes: RuntimeRegistry) -> None:
    """Ensure unexpected converter failures become conversion errors."""
    registry = ConverterRegistry()

    def _explode(
        artifact: Artifact,
        *,
        runtimes: RuntimeRegistry,
        node: str | None = None,
    ) -> Artifact:
        msg = "bad payload"
        raise KeyError(msg)

    registry.register("r", "python", _explode)
    source = Artifact.from_payload(b"[1]", language="r", fmt="json")

    with pytest.raises(ConversionError, match="KeyError"):
        registry.convert(source, to_language=Language.PYTHON, runtimes=runtimes)


def test_bridge_input_converts_unreadable_foreign_artifacts(runtimes: RuntimeRegistry) -> None:
    """Ensure pickles feeding an R consumer are converted to JSON."""
    pickled = runtimes.python().encode([1, 2])

    bridged = bridge_input(
        "values",
        pickled,
        consumer=r_derivation("doubled", "values"),
        runtimes=runtimes,
        converters=default_converters(),
    )

    assert bridged.language == "r"
    assert bridged.format == "json"


def test_bridge_input_passes_readable_or_hooked_artifacts(runtimes: RuntimeRegistry) -> None:
    """Ensure readable formats and explicit deserializers skip conversion."""
    converters = default_converters()
    json_artifact = Artifact.from_payload(b"[1]", language="r", fmt="json")
    rds_artifact = Artifact.from_payload(b"RDX3", language="r", fmt="rds")

    readable = bridge_input(
        "values",
        json_artifact,
        consumer=py_derivation("x", "values"),
        runtimes=runtimes,
        converters=converters,
    )
    hooked = bridge_input(
        "values",
        rds_artifact,
        consumer=py_derivation("x", "values", deserializer="pyreadr.read_r"),
        runtimes=runtimes,
        converters=converters,
    )

    assert readable is json_artifact
    assert hooked is rds_artifact
