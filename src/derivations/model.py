"""Derivation and pipeline declarations."""

from __future__ import annotations

import re
from enum import StrEnum
from pathlib import Path

import msgspec

from core.errors import DerivationError
from core_types import DERIVATION_NAME_PATTERN, DerivationNameStr
from serde_msgspec import StructBaseStrict

_NAME_RE = re.compile(DERIVATION_NAME_PATTERN)


class Language(StrEnum):
    """Languages a derivation body can be written in."""

    PYTHON = "python"
    R = "r"
    JULIA = "julia"


class Expression(StructBaseStrict, frozen=True, tag="expression", tag_field="kind"):
    """Source expression evaluated in the derivation language.

    Upstream outputs are bound under their derivation names before evaluation.
    """

    source: str


class FileImport(StructBaseStrict, frozen=True, tag="file_import", tag_field="kind"):
    """Read an external file or directory with a reader hook."""

    path: str
    reader: str


class Conversion(StructBaseStrict, frozen=True, tag="conversion", tag_field="kind"):
    """Move the output of another derivation across a language boundary."""

    source: str
    from_language: Language
    to_language: Language


type DerivationBody = Expression | FileImport | Conversion


class SerializationHooks(StructBaseStrict, frozen=True):
    """Identifiers for custom serializer and deserializer hooks.

    The producer's serializer writes the persisted artifact. The consumer's
    deserializer reads every upstream artifact it binds.
    """

    serializer: str | None = None
    deserializer: str | None = None

    def is_empty(self) -> bool:
        """Return whether neither hook is set.

        Returns
        -------
        bool
            True when both hooks are unset.
        """
        return self.serializer is None and self.deserializer is None


class Derivation(StructBaseStrict, frozen=True):
    """Named computation step of a pipeline."""

    name: DerivationNameStr
    language: Language
    body: DerivationBody
    depends_on: tuple[str, ...] = ()
    hooks: SerializationHooks = msgspec.field(default_factory=SerializationHooks)
    extra_files: tuple[str, ...] = ()
    environment: str | None = None
    env_vars: dict[str, str] = msgspec.field(default_factory=dict)

    def __post_init__(self) -> None:
        if not _NAME_RE.match(self.name):
            msg = f"Invalid derivation name {self.name!r}; expected {DERIVATION_NAME_PATTERN}."
            raise DerivationError(msg, node=self.name)
        body = self.body
        if isinstance(body, Conversion):
            if body.from_language == body.to_language:
                msg = f"Conversion {self.name!r} must change language, got {body.to_language}."
                raise DerivationError(msg, node=self.name)
            if self.language != body.to_language:
                msg = (
                    f"Conversion {self.name!r} is declared in {self.language} "
                    f"but targets {body.to_language}."
                )
                raise DerivationError(msg, node=self.name)
        if isinstance(body, FileImport) and self.depends_on:
            msg = f"File import {self.name!r} cannot declare upstream derivations."
            raise DerivationError(msg, node=self.name)
        if isinstance(body, Expression) and not body.source.strip():
            msg = f"Derivation {self.name!r} has an empty expression."
            raise DerivationError(msg, node=self.name)

    @property
    def kind(self) -> str:
        """Return the body tag (``expression``, ``file_import`` or ``conversion``).

        Returns
        -------
        str
            Body tag.
        """
        return type(self.body).__struct_config__.tag or ""


class Pipeline(StructBaseStrict, frozen=True):
    """Ordered derivations plus the directory used to resolve relative paths."""

    derivations: tuple[Derivation, ...]
    root: str = "."

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for derivation in self.derivations:
            if derivation.name in seen:
                msg = f"Duplicate derivation name: {derivation.name!r}."
                raise DerivationError(msg, node=derivation.name)
            seen.add(derivation.name)

    def names(self) -> tuple[str, ...]:
        """Return derivation names in declaration order.

        Returns
        -------
        tuple[str, ...]
            Derivation names.
        """
        return tuple(derivation.name for derivation in self.derivations)

    def get(self, name: str) -> Derivation | None:
        """Return the derivation with the given name, if declared.

        Returns
        -------
        Derivation | None
            Matching derivation, or None.
        """
        for derivation in self.derivations:
            if derivation.name == name:
                return derivation
        return None

    def root_path(self) -> Path:
        """Return the pipeline root as an absolute path.

        Returns
        -------
        pathlib.Path
            Absolute pipeline root.
        """
        return Path(self.root).expanduser().resolve()

    def resolve_path(self, path: str) -> Path:
        """Resolve a derivation-relative path against the pipeline root.

        Returns
        -------
        pathlib.Path
            Absolute path.
        """
        candidate = Path(path).expanduser()
        if candidate.is_absolute():
            return candidate
        return self.root_path() / candidate

    def with_root(self, root: str | Path) -> Pipeline:
        """Return a copy of the pipeline anchored at another root.

        Returns
        -------
        Pipeline
            Pipeline with the new root.
        """
        return msgspec.structs.replace(self, root=str(root))


__all__ = [
    "Conversion",
    "Derivation",
    "DerivationBody",
    "Expression",
    "FileImport",
    "Language",
    "Pipeline",
    "SerializationHooks",
]
