"""Declaration helpers for building derivations in Python code.

Each helper returns a :class:`Derivation`; a pipeline is the ordered tuple of
those values::

    pipeline = make_pipeline(
        py_derivation("a", "[1, 2, 3]"),
        py_to_r("a_r", "a"),
        r_derivation("b", "a_r * 2"),
    )
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import TypedDict, Unpack

from derivations.model import (
    Conversion,
    Derivation,
    Expression,
    FileImport,
    Language,
    Pipeline,
    SerializationHooks,
)

DEFAULT_READERS: dict[Language, str] = {
    Language.PYTHON: "text",
    Language.R: "readLines",
    Language.JULIA: "read",
}


class ExpressionOptions(TypedDict, total=False):
    """Optional keywords shared by expression builders."""

    depends_on: Iterable[str]
    serializer: str | None
    deserializer: str | None
    extra_files: Iterable[str]
    environment: str | None
    env_vars: Mapping[str, str] | None


class FileOptions(TypedDict, total=False):
    """Optional keywords shared by file import builders."""

    reader: str | None
    serializer: str | None
    extra_files: Iterable[str]
    environment: str | None
    env_vars: Mapping[str, str] | None


def derivation(
    name: str,
    expr: str,
    *,
    language: Language | str,
    depends_on: Iterable[str] = (),
    serializer: str | None = None,
    deserializer: str | None = None,
    extra_files: Iterable[str] = (),
    environment: str | None = None,
    env_vars: Mapping[str, str] | None = None,
) -> Derivation:
    """Return an expression derivation in any supported language.

    Parameters
    ----------
    name
        Pipeline-unique derivation name.
    expr
        Source expression in the derivation language.
    language
        Language the expression is written in.
    depends_on
        Upstream names in addition to those found in ``expr``.
    serializer
        Hook used to persist the output.
    deserializer
        Hook used to read upstream artifacts.
    extra_files
        Helper scripts sourced before ``expr`` is evaluated.
    environment
        Toolchain definition file, fingerprinted but never interpreted.
    env_vars
        Environment variables exported to the runtime.

    Returns
    -------
    Derivation
        Declared derivation.
    """
    return Derivation(
        name=name,
        language=Language(language),
        body=Expression(source=expr),
        depends_on=tuple(depends_on),
        hooks=SerializationHooks(serializer=serializer, deserializer=deserializer),
        extra_files=tuple(extra_files),
        environment=environment,
        env_vars=dict(env_vars or {}),
    )


def py_derivation(name: str, expr: str, **options: Unpack[ExpressionOptions]) -> Derivation:
    """Return a Python expression derivation.

    Returns
    -------
    Derivation
        Python derivation.
    """
    return derivation(name, expr, language=Language.PYTHON, **options)


def r_derivation(name: str, expr: str, **options: Unpack[ExpressionOptions]) -> Derivation:
    """Return an R expression derivation.

    Returns
    -------
    Derivation
        R derivation.
    """
    return derivation(name, expr, language=Language.R, **options)


def jl_derivation(name: str, expr: str, **options: Unpack[ExpressionOptions]) -> Derivation:
    """Return a Julia expression derivation.

    Returns
    -------
    Derivation
        Julia derivation.
    """
    return derivation(name, expr, language=Language.JULIA, **options)


def file_derivation(
    name: str,
    path: str | Path,
    *,
    language: Language | str,
    reader: str | None = None,
    serializer: str | None = None,
    extra_files: Iterable[str] = (),
    environment: str | None = None,
    env_vars: Mapping[str, str] | None = None,
) -> Derivation:
    """Return a derivation that reads an external file or directory.

    The content under ``path`` is part of the fingerprint, so edits to the
    file invalidate the node and everything downstream of it.

    Returns
    -------
    Derivation
        File import derivation.
    """
    resolved_language = Language(language)
    return Derivation(
        name=name,
        language=resolved_language,
        body=FileImport(
            path=str(path),
            reader=reader or DEFAULT_READERS[resolved_language],
        ),
        hooks=SerializationHooks(serializer=serializer),
        extra_files=tuple(extra_files),
        environment=environment,
        env_vars=dict(env_vars or {}),
    )


def py_file(name: str, path: str | Path, **options: Unpack[FileOptions]) -> Derivation:
    """Return a Python file import derivation.

    Returns
    -------
    Derivation
        Python file import.
    """
    return file_derivation(name, path, language=Language.PYTHON, **options)


def r_file(name: str, path: str | Path, **options: Unpack[FileOptions]) -> Derivation:
    """Return an R file import derivation.

    Returns
    -------
    Derivation
        R file import.
    """
    return file_derivation(name, path, language=Language.R, **options)


def jl_file(name: str, path: str | Path, **options: Unpack[FileOptions]) -> Derivation:
    """Return a Julia file import derivation.

    Returns
    -------
    Derivation
        Julia file import.
    """
    return file_derivation(name, path, language=Language.JULIA, **options)


def convert(
    name: str,
    source: str,
    *,
    from_language: Language | str,
    to_language: Language | str,
    environment: str | None = None,
) -> Derivation:
    """Return a derivation converting ``source`` between two languages.

    Returns
    -------
    Derivation
        Conversion derivation declared in ``to_language``.
    """
    target = Language(to_language)
    return Derivation(
        name=name,
        language=target,
        body=Conversion(
            source=source,
            from_language=Language(from_language),
            to_language=target,
        ),
        environment=environment,
    )


def py_to_r(name: str, source: str, *, environment: str | None = None) -> Derivation:
    """Return a Python to R conversion.

    Returns
    -------
    Derivation
        Conversion derivation.
    """
    return convert(
        name,
        source,
        from_language=Language.PYTHON,
        to_language=Language.R,
        environment=environment,
    )


def r_to_py(name: str, source: str, *, environment: str | None = None) -> Derivation:
    """Return an R to Python conversion.

    Returns
    -------
    Derivation
        Conversion derivation.
    """
    return convert(
        name,
        source,
        from_language=Language.R,
        to_language=Language.PYTHON,
        environment=environment,
    )


def make_pipeline(*derivations: Derivation, root: str | Path = ".") -> Pipeline:
    """Return a pipeline from derivations in declaration order.

    Returns
    -------
    Pipeline
        Pipeline value.
    """
    return Pipeline(derivations=tuple(derivations), root=str(root))


__all__ = [
    "DEFAULT_READERS",
    "convert",
    "derivation",
    "file_derivation",
    "jl_derivation",
    "jl_file",
    "make_pipeline",
    "py_derivation",
    "py_file",
    "py_to_r",
    "r_derivation",
    "r_file",
    "r_to_py",
]
