"""Script-generating runtimes for R and Julia derivations.

Each evaluation writes input artifacts and a generated script into a
temporary work directory, runs the configured interpreter on the script and
reads the output file back. Interpreter commands are plain argument tuples
such as ``("Rscript", "--vanilla")``.
"""

from __future__ import annotations

import json
import logging
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path
from tempfile import TemporaryDirectory

from core.errors import ConversionError, RuntimeEvaluationError
from derivations.model import Conversion, Expression, FileImport, Language
from runtimes.base import (
    EvaluationRequest,
    check_readable,
    command_available,
    runtime_environment,
    stderr_tail,
)
from store.artifacts import Artifact

logger = logging.getLogger(__name__)

OUTPUT_NAME = "output"
RESULT_VAR = "polypipe_result"


def _quote(value: str) -> str:
    # JSON string syntax is valid string-literal syntax in both R and Julia.
    return json.dumps(value)


class ScriptRuntime:
    """Base class for interpreters driven through generated scripts.

    Subclasses supply the syntax for sourcing helper files, binding names,
    and loading or saving each artifact format.
    """

    language: Language
    native_format: str
    readable_formats: frozenset[str]
    script_suffix: str
    default_command: tuple[str, ...]

    def __init__(
        self,
        command: Sequence[str] | None = None,
        *,
        timeout_s: float | None = None,
    ) -> None:
        self.command: tuple[str, ...] = tuple(command or self.default_command)
        self.timeout_s = timeout_s

    def available(self) -> bool:
        """Return whether the interpreter executable is on ``PATH``.

        Returns
        -------
        bool
            True when the interpreter resolves.
        """
        return command_available(self.command)

    def evaluate(self, request: EvaluationRequest) -> Artifact:
        """Generate and run a script for the derivation.

        Returns
        -------
        Artifact
            Output read back from the work directory.

        Raises
        ------
        RuntimeEvaluationError
            Raised when the interpreter fails or writes no output.
        """
        derivation = request.derivation
        for name, artifact in request.inputs.items():
            check_readable(
                self,
                name,
                artifact,
                deserializer=derivation.hooks.deserializer,
                node=request.node,
            )
        serializer = derivation.hooks.serializer or self.native_format
        with TemporaryDirectory(prefix=f"polypipe-{self.language}-") as tmp:
            work = Path(tmp)
            input_paths: dict[str, str] = {}
            for index, (name, artifact) in enumerate(sorted(request.inputs.items())):
                path = work / f"input_{index}"
                path.write_bytes(artifact.payload)
                input_paths[name] = path.as_posix()
            output = work / OUTPUT_NAME
            lines = self.script_lines(request, input_paths, output.as_posix())
            self._run(lines, work=work, env_vars=derivation.env_vars, node=request.node)
            if not output.exists():
                msg = f"{self.language} derivation {request.node!r} produced no output file."
                raise RuntimeEvaluationError(msg, node=request.node)
            payload = output.read_bytes()
        return Artifact.from_payload(payload, language=str(self.language), fmt=serializer)

    def render_script(self, request: EvaluationRequest) -> str:
        """Return the script that would evaluate a derivation.

        Input artifacts are referenced as ``input_<n>`` relative to the work
        directory.

        Returns
        -------
        str
            Script source.
        """
        input_paths = {
            name: f"input_{index}" for index, name in enumerate(sorted(request.inputs))
        }
        return "\n".join(self.script_lines(request, input_paths, OUTPUT_NAME)) + "\n"

    def script_lines(
        self,
        request: EvaluationRequest,
        input_paths: Mapping[str, str],
        output: str,
    ) -> list[str]:
        """Return script lines that bind inputs, evaluate the body and save.

        Returns
        -------
        list[str]
            Script lines.

        Raises
        ------
        RuntimeEvaluationError
            Raised for conversion bodies, which only converters execute.
        """
        derivation = request.derivation
        body = derivation.body
        deserializer = derivation.hooks.deserializer
        serializer = derivation.hooks.serializer or self.native_format
        formats = {serializer}
        formats.update(deserializer or artifact.format for artifact in request.inputs.values())
        lines = self.imports(formats)
        lines.extend(self.source_line(str(request.resolve(raw))) for raw in derivation.extra_files)
        for name in sorted(input_paths):
            artifact = request.inputs[name]
            loader = self.load_expr(deserializer or artifact.format, input_paths[name])
            lines.append(self.assign_line(name, loader))
        if isinstance(body, Expression):
            value = self.block_expr(body.source)
        elif isinstance(body, FileImport):
            value = f"{body.reader}({_quote(request.resolve(body.path).as_posix())})"
        elif isinstance(body, Conversion):
            msg = f"Conversion {request.node!r} is executed by a converter, not a runtime."
            raise RuntimeEvaluationError(msg, node=request.node)
        lines.append(self.assign_line(RESULT_VAR, value))
        lines.append(self.save_stmt(serializer, RESULT_VAR, output))
        return lines

    def export_json(self, artifact: Artifact, *, node: str | None = None) -> bytes:
        """Run the interpreter to render an artifact as JSON.

        Returns
        -------
        bytes
            JSON payload.

        Raises
        ------
        ConversionError
            Raised when the interpreter fails to load or render the value.
        """
        if artifact.format == "json":
            return artifact.payload
        with TemporaryDirectory(prefix=f"polypipe-{self.language}-") as tmp:
            work = Path(tmp)
            source = work / "input"
            source.write_bytes(artifact.payload)
            output = work / "output.json"
            lines = self.imports({artifact.format, "json"})
            loader = self.load_expr(artifact.format, source.as_posix())
            lines.append(self.assign_line(RESULT_VAR, loader))
            lines.append(self.save_stmt("json", RESULT_VAR, output.as_posix()))
            try:
                self._run(lines, work=work, env_vars={}, node=node)
            except RuntimeEvaluationError as exc:
                msg = f"{self.language} could not convert {artifact.format!r} to JSON: {exc}"
                raise ConversionError(msg, node=node) from exc
            return output.read_bytes()

    def import_json(self, payload: bytes) -> Artifact:
        """Return a JSON payload tagged for this runtime.

        Returns
        -------
        Artifact
            JSON artifact.
        """
        return Artifact.from_payload(payload, language=str(self.language), fmt="json")

    def _run(
        self,
        lines: Sequence[str],
        *,
        work: Path,
        env_vars: Mapping[str, str],
        node: str | None,
    ) -> None:
        script = work / f"script{self.script_suffix}"
        script.write_text("\n".join(lines) + "\n", encoding="utf-8")
        argv = [*self.command, str(script)]
        logger.debug("Running %s for %s", " ".join(argv), node)
        try:
            completed = subprocess.run(  # noqa: S603
                argv,
                cwd=work,
                env=runtime_environment(env_vars),
                capture_output=True,
                text=True,
                timeout=self.timeout_s,
                check=False,
            )
        except FileNotFoundError as exc:
            msg = f"{self.language} interpreter not found: {self.command[0]!r}."
            raise RuntimeEvaluationError(msg, node=node) from exc
        except subprocess.TimeoutExpired as exc:
            msg = f"{self.language} evaluation of {node!r} timed out after {self.timeout_s}s."
            raise RuntimeEvaluationError(msg, node=node) from exc
        if completed.returncode != 0:
            msg = (
                f"{self.language} evaluation of {node!r} exited with status "
                f"{completed.returncode}:\n{stderr_tail(completed.stderr)}"
            )
            raise RuntimeEvaluationError(msg, node=node)

    def imports(self, formats: set[str]) -> list[str]:
        """Return import statements needed for the given formats."""
        return []

    def source_line(self, path: str) -> str:
        raise NotImplementedError

    def assign_line(self, name: str, expr: str) -> str:
        raise NotImplementedError

    def block_expr(self, source: str) -> str:
        raise NotImplementedError

    def load_expr(self, fmt: str, path: str) -> str:
        raise NotImplementedError

    def save_stmt(self, fmt: str, var: str, path: str) -> str:
        raise NotImplementedError


class RRuntime(ScriptRuntime):
    """Evaluate R derivations with ``Rscript``.

    JSON and Arrow go through the ``jsonlite`` and ``arrow`` packages, which
    the environment must provide.
    """

    language = Language.R
    native_format = "rds"
    readable_formats = frozenset({"rds", "json", "arrow", "text"})
    script_suffix = ".R"
    default_command = ("Rscript", "--vanilla")

    def source_line(self, path: str) -> str:
        if path.endswith((".R", ".r")):
            return f"source({_quote(path)})"
        return f"# helper file {path}"

    def assign_line(self, name: str, expr: str) -> str:
        return f"`{name}` <- {expr}"

    def block_expr(self, source: str) -> str:
        return "{\n" + source + "\n}"

    def load_expr(self, fmt: str, path: str) -> str:
        quoted = _quote(path)
        loaders = {
            "rds": f"readRDS({quoted})",
            "json": f"jsonlite::fromJSON({quoted}, simplifyVector = TRUE)",
            "arrow": f"arrow::read_ipc_file({quoted})",
            "text": f'paste(readLines({quoted}, warn = FALSE), collapse = "\\n")',
        }
        return loaders.get(fmt, f"{fmt}({quoted})")

    def save_stmt(self, fmt: str, var: str, path: str) -> str:
        quoted = _quote(path)
        target = f"`{var}`"
        savers = {
            "rds": f"saveRDS({target}, {quoted})",
            "json": f"jsonlite::write_json({target}, {quoted}, auto_unbox = TRUE, digits = NA)",
            "arrow": f"arrow::write_ipc_file({target}, {quoted})",
            "text": f"writeLines(as.character({target}), {quoted})",
        }
        return savers.get(fmt, f"{fmt}({target}, {quoted})")


class JuliaRuntime(ScriptRuntime):
    """Evaluate Julia derivations with ``julia``.

    JSON and Arrow go through the ``JSON`` and ``Arrow`` packages, which the
    environment must provide.
    """

    language = Language.JULIA
    native_format = "jls"
    readable_formats = frozenset({"jls", "json", "arrow", "text"})
    script_suffix = ".jl"
    default_command = ("julia", "--startup-file=no")

    _FORMAT_IMPORTS: dict[str, str] = {
        "jls": "using Serialization",
        "json": "import JSON",
        "arrow": "import Arrow",
    }

    def imports(self, formats: set[str]) -> list[str]:
        return [self._FORMAT_IMPORTS[fmt] for fmt in sorted(formats) if fmt in self._FORMAT_IMPORTS]

    def source_line(self, path: str) -> str:
        if path.endswith(".jl"):
            return f"include({_quote(path)})"
        return f"# helper file {path}"

    def assign_line(self, name: str, expr: str) -> str:
        target = name if name.isidentifier() else f"var{_quote(name)}"
        return f"{target} = {expr}"

    def block_expr(self, source: str) -> str:
        return "begin\n" + source + "\nend"

    def load_expr(self, fmt: str, path: str) -> str:
        quoted = _quote(path)
        loaders = {
            "jls": f"Serialization.deserialize({quoted})",
            "json": f"JSON.parsefile({quoted})",
            "arrow": f"Arrow.Table({quoted})",
            "text": f"read({quoted}, String)",
        }
        return loaders.get(fmt, f"{fmt}({quoted})")

    def save_stmt(self, fmt: str, var: str, path: str) -> str:
        quoted = _quote(path)
        savers = {
            "jls": f"Serialization.serialize({quoted}, {var})",
            "json": f'open(io -> JSON.print(io, {var}), {quoted}, "w")',
            "arrow": f"Arrow.write({quoted}, {var})",
            "text": f"write({quoted}, string({var}))",
        }
        return savers.get(fmt, f"{fmt}({var}, {quoted})")


__all__ = ["OUTPUT_NAME", "RESULT_VAR", "JuliaRuntime", "RRuntime", "ScriptRuntime"]
