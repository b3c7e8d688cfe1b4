"""Registries of language runtimes and cross-language converters."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from functools import partial
from typing import Protocol

from core.errors import ConversionError, RuntimeEvaluationError
from derivations.model import Derivation, Language
from runtimes.base import LanguageRuntime
from runtimes.python_runtime import PythonRuntime
from runtimes.script_runtime import JuliaRuntime, RRuntime
from store.artifacts import Artifact

logger = logging.getLogger(__name__)


class RuntimeRegistry:
    """Language to runtime mapping used by the executor."""

    def __init__(self, runtimes: Iterable[LanguageRuntime] = ()) -> None:
        self._runtimes: dict[Language, LanguageRuntime] = {}
        for runtime in runtimes:
            self.register(runtime)

    def register(self, runtime: LanguageRuntime) -> None:
        """Register or replace the runtime for its language."""
        self._runtimes[Language(runtime.language)] = runtime

    def get(self, language: Language | str) -> LanguageRuntime:
        """Return the runtime for a language.

        Returns
        -------
        LanguageRuntime
            Registered runtime.

        Raises
        ------
        RuntimeEvaluationError
            Raised when no runtime is registered for the language.
        """
        runtime = self._runtimes.get(Language(language))
        if runtime is None:
            msg = f"No runtime registered for language {language!r}."
            raise RuntimeEvaluationError(msg)
        return runtime

    def python(self) -> PythonRuntime:
        """Return the Python runtime used to decode artifacts in-process.

        Returns
        -------
        PythonRuntime
            Python runtime.

        Raises
        ------
        RuntimeEvaluationError
            Raised when the Python slot holds a foreign runtime.
        """
        runtime = self.get(Language.PYTHON)
        if not isinstance(runtime, PythonRuntime):
            msg = f"Python runtime must be a PythonRuntime, got {type(runtime).__name__}."
            raise RuntimeEvaluationError(msg)
        return runtime

    def languages(self) -> tuple[Language, ...]:
        """Return registered languages.

        Returns
        -------
        tuple[Language, ...]
            Languages in registration order.
        """
        return tuple(self._runtimes)

    def availability(self) -> dict[str, bool]:
        """Return whether each registered runtime can run here.

        Returns
        -------
        dict[str, bool]
            Availability keyed by language.
        """
        return {str(language): runtime.available() for language, runtime in self._runtimes.items()}


def default_runtimes(
    *,
    r_command: Sequence[str] | None = None,
    julia_command: Sequence[str] | None = None,
    timeout_s: float | None = None,
) -> RuntimeRegistry:
    """Return the built-in Python, R and Julia runtimes.

    Returns
    -------
    RuntimeRegistry
        Registry with one runtime per language.
    """
    return RuntimeRegistry(
        (
            PythonRuntime(),
            RRuntime(r_command, timeout_s=timeout_s),
            JuliaRuntime(julia_command, timeout_s=timeout_s),
        )
    )


class Converter(Protocol):
    """Callable turning an artifact of one language into another's."""

    def __call__(
        self,
        artifact: Artifact,
        *,
        runtimes: RuntimeRegistry,
        node: str | None = None,
    ) -> Artifact: ...


def json_bridge(
    artifact: Artifact,
    *,
    runtimes: RuntimeRegistry,
    source: Language,
    target: Language,
    node: str | None = None,
) -> Artifact:
    """Convert through JSON rendered by the source runtime.

    Returns
    -------
    Artifact
        JSON artifact tagged with the target language.
    """
    payload = runtimes.get(source).export_json(artifact, node=node)
    return runtimes.get(target).import_json(payload)


class ConverterRegistry:
    """Converters keyed by ``(source_language, target_language)``."""

    def __init__(self) -> None:
        self._converters: dict[tuple[Language, Language], Converter] = {}

    def register(
        self,
        source: Language | str,
        target: Language | str,
        converter: Converter,
    ) -> None:
        """Register or replace the converter for a language pair."""
        self._converters[Language(source), Language(target)] = converter

    def get(self, source: Language | str, target: Language | str) -> Converter:
        """Return the converter for a language pair.

        Returns
        -------
        Converter
            Registered converter.

        Raises
        ------
        ConversionError
            Raised when the pair has no converter.
        """
        converter = self._converters.get((Language(source), Language(target)))
        if converter is None:
            msg = f"No converter registered from {source} to {target}."
            raise ConversionError(msg)
        return converter

    def pairs(self) -> tuple[tuple[Language, Language], ...]:
        """Return registered language pairs.

        Returns
        -------
        tuple[tuple[Language, Language], ...]
            Source and target pairs.
        """
        return tuple(self._converters)

    def convert(
        self,
        artifact: Artifact,
        *,
        to_language: Language,
        runtimes: RuntimeRegistry,
        node: str | None = None,
    ) -> Artifact:
        """Convert an artifact into another language.

        Returns
        -------
        Artifact
            Converted artifact, or the input when the language already matches.

        Raises
        ------
        ConversionError
            Raised when the pair is unknown or the converter fails.
        """
        if Language(artifact.language) == to_language:
            return artifact
        try:
            converter = self.get(artifact.language, to_language)
        except ConversionError as exc:
            raise ConversionError(str(exc), node=node) from None
        try:
            return converter(artifact, runtimes=runtimes, node=node)
        except (ConversionError, RuntimeEvaluationError):
            raise
        except Exception as exc:
            msg = (
                f"Converting {artifact.language} to {to_language} failed: "
                f"{type(exc).__name__}: {exc}"
            )
            raise ConversionError(msg, node=node) from exc


_BUILTIN_PAIRS: tuple[tuple[Language, Language], ...] = (
    (Language.PYTHON, Language.R),
    (Language.PYTHON, Language.JULIA),
    (Language.R, Language.PYTHON),
    (Language.JULIA, Language.PYTHON),
)


def default_converters() -> ConverterRegistry:
    """Return the built-in JSON converters between Python and R or Julia.

    Returns
    -------
    ConverterRegistry
        Registry with the built-in pairs.
    """
    registry = ConverterRegistry()
    for source, target in _BUILTIN_PAIRS:
        registry.register(source, target, partial(json_bridge, source=source, target=target))
    return registry


def bridge_input(
    name: str,
    artifact: Artifact,
    *,
    consumer: Derivation,
    runtimes: RuntimeRegistry,
    converters: ConverterRegistry,
) -> Artifact:
    """Return an upstream artifact in a form the consumer can bind.

    Artifacts pass through unchanged when the consumer declares a deserializer
    or already reads the format; otherwise a converter moves them into the
    consumer's language. Same-language artifacts are never converted, so an
    unreadable one fails the consumer's format check.

    Returns
    -------
    Artifact
        Artifact to bind under ``name``.
    """
    runtime = runtimes.get(consumer.language)
    if consumer.hooks.deserializer is not None or artifact.format in runtime.readable_formats:
        return artifact
    if Language(artifact.language) == consumer.language:
        return artifact
    logger.debug("Converting %s from %s for %s", name, artifact.language, consumer.name)
    return converters.convert(
        artifact,
        to_language=consumer.language,
        runtimes=runtimes,
        node=consumer.name,
    )


__all__ = [
    "Converter",
    "ConverterRegistry",
    "RuntimeRegistry",
    "bridge_input",
    "default_converters",
    "default_runtimes",
    "json_bridge",
]
