"""Shared fixtures for polypipe tests."""

from __future__ import annotations

import os
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from cache.diskcache_factory import close_pooled_caches
from derivations.model import Language
from engine.config import EngineConfig
from engine.context import EngineContext
from obs.otel import OtelBootstrapOptions, configure_otel
from obs.otel.bootstrap import OtelProviders
from runtimes.python_runtime import PythonRuntime
from runtimes.registry import RuntimeRegistry

START_TIME = datetime(2025, 8, 15, 11, 30, tzinfo=UTC)


class TickingClock:
    """Deterministic clock advancing one minute per call."""

    def __init__(self, start: datetime = START_TIME, step: timedelta | None = None) -> None:
        self.current = start
        self.step = step or timedelta(minutes=1)

    def __call__(self) -> datetime:
        value = self.current
        self.current = value + self.step
        return value


class FakeRRuntime(PythonRuntime):
    """R stand-in that evaluates Python syntax and persists JSON.

    Lets cross-language pipelines run where no R interpreter is installed;
    only the language tag and formats differ from the Python runtime.
    """

    language = Language.R
    native_format = "json"
    readable_formats = frozenset({"json", "text"})


@pytest.fixture(scope="session", autouse=True)
def otel_providers() -> OtelProviders:
    """Install in-memory OpenTelemetry exporters for the whole session.

    Returns
    -------
    OtelProviders
        Installed providers.
    """
    return configure_otel(OtelBootstrapOptions(service_name="polypipe-tests", test_mode=True))


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("POLYPIPE_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def clock() -> TickingClock:
    """Return a fresh deterministic clock.

    Returns
    -------
    TickingClock
        Clock starting at 2025-08-15 11:30 UTC.
    """
    return TickingClock()


@pytest.fixture
def runtimes() -> RuntimeRegistry:
    """Return Python plus the fake R runtime.

    Returns
    -------
    RuntimeRegistry
        Registry without external interpreters.
    """
    return RuntimeRegistry((PythonRuntime(), FakeRRuntime()))


@pytest.fixture
def engine_config(tmp_path: Path) -> EngineConfig:
    """Return a config rooted in the test directory.

    Returns
    -------
    EngineConfig
        Config with a temporary store directory.
    """
    return EngineConfig(store_dir=str(tmp_path / "store"), max_workers=4)


@pytest.fixture
def engine_context(
    runtimes: RuntimeRegistry,
    clock: TickingClock,
    engine_config: EngineConfig,
) -> EngineContext:
    """Return an in-memory engine context.

    Returns
    -------
    EngineContext
        Context with in-memory store and log.
    """
    return EngineContext.in_memory(runtimes=runtimes, clock=clock, config=engine_config)


@pytest.fixture
def disk_context(
    runtimes: RuntimeRegistry,
    clock: TickingClock,
    engine_config: EngineConfig,
) -> Iterator[EngineContext]:
    """Return a DiskCache-backed engine context.

    Yields
    ------
    EngineContext
        Context persisted under the temporary store directory.
    """
    yield EngineContext.from_config(engine_config, runtimes=runtimes, clock=clock)
    close_pooled_caches()
