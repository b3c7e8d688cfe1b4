"""In-process evaluation of Python derivations."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from tempfile import TemporaryDirectory

from core.errors import ConversionError, RuntimeEvaluationError
from derivations.model import Conversion, Expression, FileImport, Language
from runtimes.base import EvaluationRequest, check_readable, patched_environ
from runtimes.codecs import NATIVE_PYTHON_FORMAT, encode_json
from runtimes.hooks import resolve_hook
from store.artifacts import Artifact

logger = logging.getLogger(__name__)

_OUTPUT_NAME = "output"


class PythonRuntime:
    """Evaluate Python expressions in a fresh namespace per derivation."""

    language: Language = Language.PYTHON
    native_format: str = NATIVE_PYTHON_FORMAT
    readable_formats: frozenset[str] = frozenset({"pickle", "json", "arrow", "text"})

    def evaluate(self, request: EvaluationRequest) -> Artifact:
        """Evaluate a derivation and encode its value.

        Returns
        -------
        Artifact
            Encoded output.

        Raises
        ------
        RuntimeEvaluationError
            Raised when a helper file, reader or the expression fails.
        """
        derivation = request.derivation
        deserializer = derivation.hooks.deserializer
        for name, artifact in request.inputs.items():
            check_readable(self, name, artifact, deserializer=deserializer, node=request.node)
        namespace: dict[str, object] = {"__name__": f"polypipe.derivation.{request.node}"}
        with patched_environ(derivation.env_vars):
            self._exec_extra_files(request, namespace)
            for name, artifact in request.inputs.items():
                namespace[name] = self.decode(
                    artifact,
                    deserializer=deserializer,
                    namespace=namespace,
                    node=request.node,
                )
            try:
                value = self._value(request, namespace)
            except (RuntimeEvaluationError, ConversionError):
                raise
            except Exception as exc:
                msg = f"Derivation {request.node!r} failed: {type(exc).__name__}: {exc}"
                raise RuntimeEvaluationError(msg, node=request.node) from exc
            return self.encode(
                value,
                serializer=derivation.hooks.serializer,
                namespace=namespace,
                node=request.node,
            )

    def decode(
        self,
        artifact: Artifact,
        *,
        deserializer: str | None = None,
        namespace: Mapping[str, object] | None = None,
        node: str | None = None,
    ) -> object:
        """Decode an artifact into a Python object.

        Returns
        -------
        object
            Decoded value.

        Raises
        ------
        ConversionError
            Raised when no hook reads the format or the hook fails.
        """
        identifier = deserializer or artifact.format
        hook = resolve_hook(identifier, role="deserializer", namespace=namespace, node=node)
        with TemporaryDirectory(prefix="polypipe-py-") as tmp:
            path = Path(tmp) / "artifact"
            path.write_bytes(artifact.payload)
            try:
                return hook(path)
            except Exception as exc:
                msg = (
                    f"Cannot decode {artifact.format!r} artifact with {identifier!r}: "
                    f"{type(exc).__name__}: {exc}"
                )
                raise ConversionError(msg, node=node) from exc

    def encode(
        self,
        value: object,
        *,
        serializer: str | None = None,
        namespace: Mapping[str, object] | None = None,
        node: str | None = None,
    ) -> Artifact:
        """Encode a value with a serializer hook or the native codec.

        Returns
        -------
        Artifact
            Encoded artifact tagged with the serializer identifier.

        Raises
        ------
        ConversionError
            Raised when the serializer fails.
        """
        identifier = serializer or self.native_format
        hook = resolve_hook(identifier, role="serializer", namespace=namespace, node=node)
        with TemporaryDirectory(prefix="polypipe-py-") as tmp:
            path = Path(tmp) / _OUTPUT_NAME
            try:
                hook(value, path)
                payload = path.read_bytes()
            except Exception as exc:
                msg = f"Cannot encode output with {identifier!r}: {type(exc).__name__}: {exc}"
                raise ConversionError(msg, node=node) from exc
        return Artifact.from_payload(payload, language=str(self.language), fmt=identifier)

    def export_json(self, artifact: Artifact, *, node: str | None = None) -> bytes:
        """Return a JSON rendering of a Python artifact.

        Returns
        -------
        bytes
            JSON payload.

        Raises
        ------
        ConversionError
            Raised when the decoded value has no JSON form.
        """
        value = self.decode(artifact, node=node)
        try:
            return encode_json(value)
        except (TypeError, ValueError) as exc:
            msg = f"Cannot convert {type(value).__name__} to JSON: {exc}"
            raise ConversionError(msg, node=node) from exc

    def import_json(self, payload: bytes) -> Artifact:
        """Return a JSON payload tagged for this runtime.

        Returns
        -------
        Artifact
            JSON artifact.
        """
        return Artifact.from_payload(payload, language=str(self.language), fmt="json")

    @staticmethod
    def available() -> bool:
        """Return True; the host interpreter is always present.

        Returns
        -------
        bool
            Always True.
        """
        return True

    @staticmethod
    def _exec_extra_files(request: EvaluationRequest, namespace: dict[str, object]) -> None:
        for raw in request.derivation.extra_files:
            path = request.resolve(raw)
            if path.suffix != ".py":
                continue
            try:
                code = compile(path.read_text(encoding="utf-8"), str(path), "exec")
                exec(code, namespace)  # noqa: S102
            except Exception as exc:
                msg = (
                    f"Helper file {raw!r} failed for {request.node!r}: "
                    f"{type(exc).__name__}: {exc}"
                )
                raise RuntimeEvaluationError(msg, node=request.node) from exc

    @staticmethod
    def _value(request: EvaluationRequest, namespace: dict[str, object]) -> object:
        body = request.derivation.body
        if isinstance(body, Expression):
            code = compile(body.source, f"<derivation {request.node}>", "eval")
            return eval(code, namespace)  # noqa: S307
        if isinstance(body, FileImport):
            reader = resolve_hook(
                body.reader,
                role="reader",
                namespace=namespace,
                node=request.node,
            )
            return reader(request.resolve(body.path))
        if isinstance(body, Conversion):
            msg = f"Conversion {request.node!r} is executed by a converter, not a runtime."
            raise RuntimeEvaluationError(msg, node=request.node)
        msg = f"Unsupported body for {request.node!r}: {type(body).__name__}."
        raise RuntimeEvaluationError(msg, node=request.node)


__all__ = ["PythonRuntime"]
