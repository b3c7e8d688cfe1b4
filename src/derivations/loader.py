"""Load pipelines declared in TOML files or Python modules.

TOML pipelines list one ``[[derivation]]`` table per step::

    root = "."

    [[derivation]]
    name = "a"
    language = "python"
    expr = "[1, 2, 3]"

    [[derivation]]
    name = "a_r"
    convert = "a"
    from = "python"
    to = "r"

Exactly one of ``expr``, ``file`` or ``convert`` selects the body.
"""

from __future__ import annotations

import importlib.util
import logging
from pathlib import Path

import msgspec

from core.errors import DerivationError
from derivations.builders import DEFAULT_READERS
from derivations.model import (
    Conversion,
    Derivation,
    Expression,
    FileImport,
    Language,
    Pipeline,
    SerializationHooks,
)
from serde_msgspec import StructBaseStrict, validation_error_payload

logger = logging.getLogger(__name__)

PIPELINE_MODULE_ATTR = "pipeline"


class DerivationDecl(StructBaseStrict, frozen=True):
    """TOML table describing one derivation."""

    name: str
    language: Language | None = None
    expr: str | None = None
    file: str | None = None
    reader: str | None = None
    convert: str | None = None
    from_language: Language | None = msgspec.field(default=None, name="from")
    to_language: Language | None = msgspec.field(default=None, name="to")
    depends_on: tuple[str, ...] = ()
    serializer: str | None = None
    deserializer: str | None = None
    extra_files: tuple[str, ...] = ()
    environment: str | None = None
    env_vars: dict[str, str] = msgspec.field(default_factory=dict)

    def to_derivation(self, *, default_environment: str | None = None) -> Derivation:
        """Return the declared derivation.

        Returns
        -------
        Derivation
            Derivation value.

        Raises
        ------
        DerivationError
            Raised when the table selects zero or several bodies, or omits a
            required field.
        """
        selected = [
            key
            for key, value in (("expr", self.expr), ("file", self.file), ("convert", self.convert))
            if value is not None
        ]
        if len(selected) != 1:
            msg = (
                f"Derivation {self.name!r} must set exactly one of expr, file or convert; "
                f"got {selected or 'none'}."
            )
            raise DerivationError(msg, node=self.name)
        environment = self.environment or default_environment
        if self.convert is not None:
            if self.from_language is None or self.to_language is None:
                msg = f"Conversion {self.name!r} requires 'from' and 'to' languages."
                raise DerivationError(msg, node=self.name)
            return Derivation(
                name=self.name,
                language=self.to_language,
                body=Conversion(
                    source=self.convert,
                    from_language=self.from_language,
                    to_language=self.to_language,
                ),
                depends_on=self.depends_on,
                environment=environment,
            )
        if self.language is None:
            msg = f"Derivation {self.name!r} requires a language."
            raise DerivationError(msg, node=self.name)
        hooks = SerializationHooks(serializer=self.serializer, deserializer=self.deserializer)
        if self.file is not None:
            reader = self.reader or DEFAULT_READERS[self.language]
            body: Expression | FileImport = FileImport(path=self.file, reader=reader)
        else:
            body = Expression(source=self.expr or "")
        return Derivation(
            name=self.name,
            language=self.language,
            body=body,
            depends_on=self.depends_on,
            hooks=hooks,
            extra_files=self.extra_files,
            environment=environment,
            env_vars=dict(self.env_vars),
        )


class PipelineDecl(StructBaseStrict, frozen=True):
    """Top-level TOML pipeline document."""

    root: str | None = None
    environment: str | None = None
    derivation: tuple[DerivationDecl, ...] = ()


def load_pipeline_file(path: Path) -> Pipeline:
    """Decode a TOML pipeline file.

    Relative roots resolve against the directory holding the file.

    Returns
    -------
    Pipeline
        Decoded pipeline.

    Raises
    ------
    DerivationError
        Raised when the document does not match the pipeline schema.
    """
    try:
        decl = msgspec.toml.decode(path.read_bytes(), type=PipelineDecl, strict=True)
    except msgspec.ValidationError as exc:
        details = validation_error_payload(exc)
        msg = f"Pipeline validation failed for {path}: {details}"
        raise DerivationError(msg) from exc
    except msgspec.DecodeError as exc:
        msg = f"Invalid TOML in {path}: {exc}"
        raise DerivationError(msg) from exc
    base = path.resolve().parent
    root = base / decl.root if decl.root else base
    derivations = tuple(
        item.to_derivation(default_environment=decl.environment) for item in decl.derivation
    )
    logger.debug("Loaded %d derivations from %s", len(derivations), path)
    return Pipeline(derivations=derivations, root=str(root))


def load_pipeline_module(path: Path) -> Pipeline:
    """Import a Python file and return its ``pipeline`` attribute.

    Returns
    -------
    Pipeline
        Pipeline exported by the module.

    Raises
    ------
    DerivationError
        Raised when the module cannot be imported or exports no pipeline.
    """
    spec = importlib.util.spec_from_file_location(f"_polypipe_pipeline_{path.stem}", path)
    if spec is None or spec.loader is None:
        msg = f"Cannot import pipeline module {path}."
        raise DerivationError(msg)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    candidate = getattr(module, PIPELINE_MODULE_ATTR, None)
    if callable(candidate) and not isinstance(candidate, Pipeline):
        candidate = candidate()
    if isinstance(candidate, (list, tuple)):
        candidate = Pipeline(derivations=tuple(candidate), root=str(path.resolve().parent))
    if not isinstance(candidate, Pipeline):
        msg = f"Module {path} must export {PIPELINE_MODULE_ATTR!r} as a Pipeline."
        raise DerivationError(msg)
    if candidate.root == ".":
        candidate = candidate.with_root(path.resolve().parent)
    return candidate


def load_pipeline(path: Path) -> Pipeline:
    """Load a pipeline from a ``.toml`` or ``.py`` file.

    Returns
    -------
    Pipeline
        Loaded pipeline.

    Raises
    ------
    DerivationError
        Raised for missing files or unsupported suffixes.
    """
    if not path.exists():
        msg = f"Pipeline file not found: {path}."
        raise DerivationError(msg)
    if path.suffix == ".toml":
        return load_pipeline_file(path)
    if path.suffix == ".py":
        return load_pipeline_module(path)
    msg = f"Unsupported pipeline file type: {path.suffix!r}."
    raise DerivationError(msg)


__all__ = [
    "DerivationDecl",
    "PipelineDecl",
    "load_pipeline",
    "load_pipeline_file",
    "load_pipeline_module",
]
