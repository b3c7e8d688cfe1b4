"""Language runtime protocol and shared evaluation helpers."""

from __future__ import annotations

import logging
import os
import shutil
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable

from core.errors import ConversionError
from derivations.model import Derivation, Language
from store.artifacts import ARTIFACT_FORMATS, Artifact

logger = logging.getLogger(__name__)

STDERR_TAIL_LINES = 20


@dataclass(frozen=True)
class EvaluationRequest:
    """Everything a runtime needs to evaluate one derivation.

    ``inputs`` maps binding names to upstream artifacts that were already
    bridged into a format the runtime can read.
    """

    derivation: Derivation
    root: Path
    inputs: Mapping[str, Artifact] = field(default_factory=dict)
    fingerprint: str = ""

    @property
    def node(self) -> str:
        """Return the derivation name.

        Returns
        -------
        str
            Node name.
        """
        return self.derivation.name

    def resolve(self, path: str) -> Path:
        """Resolve a derivation path against the pipeline root.

        Returns
        -------
        pathlib.Path
            Absolute path.
        """
        candidate = Path(path).expanduser()
        return candidate if candidate.is_absolute() else (self.root / candidate).resolve()


@runtime_checkable
class LanguageRuntime(Protocol):
    """Evaluator for derivations written in one language."""

    language: Language
    native_format: str
    readable_formats: frozenset[str]

    def evaluate(self, request: EvaluationRequest) -> Artifact:
        """Evaluate a derivation and return its encoded output."""
        ...

    def export_json(self, artifact: Artifact, *, node: str | None = None) -> bytes:
        """Return a JSON rendering of an artifact produced in this language."""
        ...

    def import_json(self, payload: bytes) -> Artifact:
        """Return a JSON payload tagged as an artifact of this language."""
        ...

    def available(self) -> bool:
        """Return whether the runtime can evaluate derivations here."""
        ...


def check_readable(
    runtime: LanguageRuntime,
    name: str,
    artifact: Artifact,
    *,
    deserializer: str | None,
    node: str,
) -> None:
    """Validate that a consumer can read an upstream artifact.

    Raises
    ------
    ConversionError
        Raised when the consumer's deserializer names a different known
        format, or when no deserializer is set and the runtime cannot read
        the artifact format.
    """
    if deserializer is None:
        if artifact.format not in runtime.readable_formats:
            msg = (
                f"Derivation {node!r} cannot read {name!r}: {runtime.language} does not read "
                f"{artifact.format!r} artifacts; declare a deserializer or a conversion."
            )
            raise ConversionError(msg, node=node)
        return
    if deserializer in ARTIFACT_FORMATS and deserializer != artifact.format:
        msg = (
            f"Derivation {node!r} reads {name!r} with {deserializer!r}, "
            f"but the artifact was written as {artifact.format!r}."
        )
        raise ConversionError(msg, node=node)


def stderr_tail(stderr: str, *, lines: int = STDERR_TAIL_LINES) -> str:
    """Return the last lines of a process error stream.

    Returns
    -------
    str
        Trailing lines joined by newlines.
    """
    return "\n".join(stderr.strip().splitlines()[-lines:])


def command_available(command: tuple[str, ...]) -> bool:
    """Return whether the executable of a command is on ``PATH``.

    Returns
    -------
    bool
        True when the executable resolves.
    """
    return bool(command) and shutil.which(command[0]) is not None


class EnvironmentGate:
    """Shared/exclusive gate over the process environment.

    Evaluations without variables share the gate; an evaluation that exports
    variables holds it alone, so no other evaluation observes values outside
    its own fingerprint. Waiting exporters block new shared holders.
    """

    def __init__(self) -> None:
        self._condition = threading.Condition()
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def shared(self) -> Iterator[None]:
        """Hold the gate alongside other evaluations without variables.

        Yields
        ------
        None
            Control while the gate is held.
        """
        with self._condition:
            self._condition.wait_for(lambda: not self._writer and not self._waiting_writers)
            self._readers += 1
        try:
            yield
        finally:
            with self._condition:
                self._readers -= 1
                if not self._readers:
                    self._condition.notify_all()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        """Hold the gate alone.

        Yields
        ------
        None
            Control while the gate is held.
        """
        with self._condition:
            self._waiting_writers += 1
            try:
                self._condition.wait_for(lambda: not self._writer and not self._readers)
            finally:
                self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._condition:
                self._writer = False
                self._condition.notify_all()


_ENVIRONMENT_GATE = EnvironmentGate()


@contextmanager
def patched_environ(env_vars: Mapping[str, str]) -> Iterator[None]:
    """Export derivation variables into ``os.environ`` for one evaluation.

    Yields
    ------
    None
        Control while the variables are exported.
    """
    if not env_vars:
        with _ENVIRONMENT_GATE.shared():
            yield
        return
    with _ENVIRONMENT_GATE.exclusive():
        previous = {key: os.environ.get(key) for key in env_vars}
        os.environ.update(env_vars)
        try:
            yield
        finally:
            for key, value in previous.items():
                if value is None:
                    os.environ.pop(key, None)
                else:
                    os.environ[key] = value


def runtime_environment(extra: Mapping[str, str]) -> dict[str, str]:
    """Return the process environment extended with derivation variables.

    Returns
    -------
    dict[str, str]
        Environment for a child process.
    """
    with _ENVIRONMENT_GATE.shared():
        env = dict(os.environ)
    env.update(extra)
    return env


__all__ = [
    "STDERR_TAIL_LINES",
    "EnvironmentGate",
    "EvaluationRequest",
    "LanguageRuntime",
    "check_readable",
    "command_available",
    "patched_environ",
    "runtime_environment",
    "stderr_tail",
]
