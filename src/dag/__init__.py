"""Dependency graph construction for pipelines."""

from __future__ import annotations

from dag.graph import (
    GRAPH_SNAPSHOT_VERSION,
    DagNode,
    GraphSnapshot,
    PipelineGraph,
    SnapshotNode,
    build_graph,
)
from dag.references import inferred_references, source_references

__all__ = [
    "GRAPH_SNAPSHOT_VERSION",
    "DagNode",
    "GraphSnapshot",
    "PipelineGraph",
    "SnapshotNode",
    "build_graph",
    "inferred_references",
    "source_references",
]
