"""Plan-only runs write manifests instead of executing."""

from __future__ import annotations

import json
from pathlib import Path

from buildlog.entries import NodeStatus
from derivations import make_pipeline, py_derivation
from engine import BuildOptions, EngineContext, build


def test_plan_only_writes_manifest_without_logging(engine_context: EngineContext) -> None:
    """Ensure a plan run executes nothing and leaves the log untouched."""
    pipeline = make_pipeline(py_derivation("a", "1"), py_derivation("b", "a + 1"))

    result = build(pipeline, BuildOptions(build=False), context=engine_context)

    assert result.planned
    assert result.ok
    assert result.log_id is None
    assert result.statuses() == {"a": NodeStatus.PENDING, "b": NodeStatus.PENDING}
    assert len(engine_context.log.list()) == 0
    assert not list(engine_context.store.fingerprints())
    assert result.plan_path is not None
    path = Path(result.plan_path)
    assert path.parent == engine_context.config.plan_path()
    manifest = json.loads(path.read_text(encoding="utf-8"))
    assert [node["name"] for node in manifest["nodes"]] == ["a", "b"]
    assert manifest["nodes"][1]["upstream"] == ["a"]
    assert manifest["generations"] == [["a"], ["b"]]
    assert manifest["created_at"].startswith("2025-08-15T11:30")


def test_plan_marks_cached_nodes_reused(engine_context: EngineContext) -> None:
    """Ensure plan runs distinguish cached nodes from pending ones."""
    build(make_pipeline(py_derivation("a", "1")), context=engine_context)
    pipeline = make_pipeline(py_derivation("a", "1"), py_derivation("b", "a * 3"))

    result = build(pipeline, BuildOptions(build=False), context=engine_context)

    assert result.statuses() == {"a": NodeStatus.REUSED, "b": NodeStatus.PENDING}
    assert len(engine_context.log.list()) == 1
