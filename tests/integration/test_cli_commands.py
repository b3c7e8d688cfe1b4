"""CLI command tests against a DiskCache store in a temporary directory."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from cache.diskcache_factory import close_pooled_caches
from cli.app import SessionOptions, meta_launcher
from cli.commands.build import BuildCommandOptions, build_command
from cli.commands.config import show_config
from cli.commands.gc import gc_command
from cli.commands.inspect import explain_command, graph_command, inspect_command
from cli.commands.log import log_list_command, log_show_command
from cli.commands.read import read_command
from cli.commands.version import version_command
from cli.context import RunContext
from cli.exit_codes import ExitCode
from engine.config import ConfigSource, EngineConfig

_PIPELINE = """
[[derivation]]
name = "values"
language = "python"
expr = "{values}"

[[derivation]]
name = "total"
language = "python"
expr = "sum(values)"
serializer = "json"
"""


def _write_pipeline(directory: Path, values: str = "[1, 2, 3]") -> Path:
    path = directory / "pipeline.toml"
    path.write_text(_PIPELINE.format(values=values), encoding="utf-8")
    return path


@pytest.fixture
def run_context(tmp_path: Path) -> Iterator[RunContext]:
    """Return a run context whose store lives under ``tmp_path``.

    Yields
    ------
    RunContext
        Injected CLI context.
    """
    yield RunContext(
        run_id="test-run",
        config=EngineConfig(store_dir=str(tmp_path / "store")),
        config_sources={"store_dir": ConfigSource.CLI},
    )
    close_pooled_caches()


@pytest.fixture
def _restore_root_logging() -> Iterator[None]:
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)


def test_build_command_reports_statuses(
    tmp_path: Path,
    run_context: RunContext,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Ensure builds render JSON summaries and reuse on the second run."""
    pipeline = _write_pipeline(tmp_path)
    options = BuildCommandOptions(output_format="json")

    first = build_command(pipeline, options, run_context=run_context)
    first_payload = json.loads(capsys.readouterr().out)
    second = build_command(pipeline, options, run_context=run_context)
    second_payload = json.loads(capsys.readouterr().out)

    assert first.exit_code == ExitCode.SUCCESS
    assert second.exit_code == ExitCode.SUCCESS
    assert first_payload["status"] == "success"
    assert [node["status"] for node in first_payload["nodes"]] == ["rebuilt", "rebuilt"]
    assert [node["status"] for node in second_payload["nodes"]] == ["reused", "reused"]


def test_build_command_failure_exit_code(tmp_path: Path, run_context: RunContext) -> None:
    """Ensure failed builds map to the build-failed exit code."""
    pipeline = _write_pipeline(tmp_path, values="1 / 0")

    result = build_command(pipeline, run_context=run_context)

    assert result.exit_code == ExitCode.BUILD_FAILED
    assert result.summary is not None
    assert result.summary.endswith("failed.")


def test_build_command_plan_only(tmp_path: Path, run_context: RunContext) -> None:
    """Ensure --plan writes a manifest and records no build."""
    pipeline = _write_pipeline(tmp_path)

    result = build_command(pipeline, BuildCommandOptions(plan=True), run_context=run_context)
    listing = log_list_command(run_context=run_context)

    assert result.exit_code == ExitCode.SUCCESS
    assert result.summary == "Planned 2 derivations."
    assert result.artifacts["plan"].exists()
    assert listing.summary == "Showing 0 of 0 builds."


def test_read_command_writes_selected_payload(tmp_path: Path, run_context: RunContext) -> None:
    """Ensure read selects past builds and writes their stored bytes."""
    build_command(_write_pipeline(tmp_path, "[1, 2]"), run_context=run_context)
    build_command(_write_pipeline(tmp_path, "[5]"), run_context=run_context)
    listing = log_list_command(run_context=run_context)
    assert listing.summary == "Showing 2 of 2 builds."

    latest_file = tmp_path / "out" / "latest.json"
    result = read_command("total", output_file=latest_file, run_context=run_context)

    assert result.ok
    assert latest_file.read_bytes() == b"5"
    assert read_command("total", run_context=run_context).renderables


def test_inspect_explain_and_graph(
    tmp_path: Path,
    run_context: RunContext,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Ensure inspection commands render node state and graph structure."""
    pipeline = _write_pipeline(tmp_path)
    build_command(pipeline, run_context=run_context)

    inspected = inspect_command(pipeline, run_context=run_context)
    explain_command(pipeline, "total", output_format="json", run_context=run_context)
    explanation = json.loads(capsys.readouterr().out)
    graph_file = tmp_path / "graph.dot"
    graph = graph_command(pipeline, output_file=graph_file)

    assert inspected.summary == "2 derivations, 0 stale."
    assert explanation["name"] == "total"
    assert explanation["cached"] is True
    assert explanation["upstream"][0][0] == "values"
    assert graph.artifacts["graph"] == graph_file
    assert '"values" -> "total";' in graph_file.read_text(encoding="utf-8")


def test_log_show_and_gc(
    tmp_path: Path,
    run_context: RunContext,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Ensure log entries render and gc prunes artifacts of dropped builds."""
    build_command(_write_pipeline(tmp_path, "[1]"), run_context=run_context)
    build_command(_write_pipeline(tmp_path, "[2]"), run_context=run_context)

    log_show_command(output_format="json", run_context=run_context)
    entry = json.loads(capsys.readouterr().out)
    preview = gc_command(keep_last=1, dry_run=True, run_context=run_context)
    collected = gc_command(keep_last=1, run_context=run_context)

    assert entry["status"] == "success"
    assert [node["name"] for node in entry["nodes"]] == ["values", "total"]
    assert preview.summary == "Would delete 2 artifacts; kept 2 referenced by 1 builds."
    assert collected.summary == "Deleted 2 artifacts; kept 2 referenced by 1 builds."


def test_show_config_reports_sources(
    run_context: RunContext,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Ensure the config command reports values with their layer."""
    show_config(output_format="json", run_context=run_context)
    payload = json.loads(capsys.readouterr().out)

    assert payload["store_dir"]["source"] == "cli"
    assert payload["max_workers"] == {"value": None, "source": "default"}


def test_version_command(capsys: pytest.CaptureFixture[str]) -> None:
    """Ensure version output lists interpreter availability."""
    assert version_command() == 0
    payload = json.loads(capsys.readouterr().out)

    assert payload["runtimes"]["python"] is True
    assert "msgspec" in payload["dependencies"]


@pytest.mark.usefixtures("_restore_root_logging")
def test_meta_launcher_exit_codes(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure the launcher maps successes and lookup failures to exit codes."""
    monkeypatch.chdir(tmp_path)
    pipeline = _write_pipeline(tmp_path)
    session = SessionOptions(store_dir=tmp_path / "store", log_level="WARNING")

    try:
        missing = meta_launcher("read", "total", session=session)
        built = meta_launcher("build", str(pipeline), session=session)
        absent = meta_launcher("read", "nope", session=session)
    finally:
        close_pooled_caches()

    assert missing == ExitCode.NOT_FOUND
    assert built == ExitCode.SUCCESS
    assert absent == ExitCode.NOT_FOUND
