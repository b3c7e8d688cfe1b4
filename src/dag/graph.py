"""Rustworkx-backed dependency graph for pipelines."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

import rustworkx as rx

from core.errors import (
    CyclicDependencyError,
    DerivationError,
    NotFoundError,
    UnresolvedReferenceError,
)
from dag.references import inferred_references
from derivations.model import Conversion, Derivation, FileImport, Pipeline
from serde_msgspec import StructBaseStrict

logger = logging.getLogger(__name__)

GRAPH_SNAPSHOT_VERSION = 1

_LANGUAGE_COLORS: dict[str, str] = {
    "python": "#3572A5",
    "r": "#198CE7",
    "julia": "#A270BA",
}
_CYCLE_EDGE_MIN_LEN = 2


class DagNode(StructBaseStrict, frozen=True):
    """Derivation plus resolved upstream edges."""

    name: str
    index: int
    derivation: Derivation
    upstream: tuple[str, ...] = ()
    inferred: tuple[str, ...] = ()


class SnapshotNode(StructBaseStrict, frozen=True):
    """Node row of a graph snapshot."""

    name: str
    index: int
    language: str
    kind: str
    upstream: tuple[str, ...] = ()


class GraphSnapshot(StructBaseStrict, frozen=True):
    """Deterministic node/edge listing of a pipeline graph."""

    version: int
    nodes: tuple[SnapshotNode, ...]
    edges: tuple[tuple[str, str], ...]


@dataclass(frozen=True)
class PipelineGraph:
    """Rustworkx graph plus lookup indices.

    Edges point from upstream to downstream nodes. ``order`` is the
    deterministic topological order with declaration order breaking ties.
    """

    graph: rx.PyDiGraph
    node_idx: Mapping[str, int]
    order: tuple[str, ...]

    def node(self, name: str) -> DagNode:
        """Return the node registered under ``name``.

        Returns
        -------
        DagNode
            Graph node.

        Raises
        ------
        NotFoundError
            Raised when no node has that name.
        """
        return self.graph[self._index(name)]

    def nodes(self) -> tuple[DagNode, ...]:
        """Return nodes in topological order.

        Returns
        -------
        tuple[DagNode, ...]
            Ordered nodes.
        """
        return tuple(self.node(name) for name in self.order)

    def __len__(self) -> int:
        return len(self.order)

    def __contains__(self, name: object) -> bool:
        return name in self.node_idx

    def upstream(self, name: str) -> tuple[str, ...]:
        """Return direct upstream names of a node.

        Returns
        -------
        tuple[str, ...]
            Upstream names in declaration order.
        """
        return self.node(name).upstream

    def downstream(self, name: str) -> tuple[str, ...]:
        """Return direct downstream names of a node.

        Returns
        -------
        tuple[str, ...]
            Downstream names in declaration order.
        """
        idx = self._index(name)
        return self._ordered(self.graph.successor_indices(idx))

    def descendants(self, name: str) -> tuple[str, ...]:
        """Return every transitive downstream name.

        Returns
        -------
        tuple[str, ...]
            Descendants in declaration order.
        """
        idx = self._index(name)
        return self._ordered(rx.descendants(self.graph, idx))

    def ancestors(self, name: str) -> tuple[str, ...]:
        """Return every transitive upstream name.

        Returns
        -------
        tuple[str, ...]
            Ancestors in declaration order.
        """
        idx = self._index(name)
        return self._ordered(rx.ancestors(self.graph, idx))

    def generations(self) -> tuple[tuple[str, ...], ...]:
        """Return waves of nodes that can run concurrently.

        Returns
        -------
        tuple[tuple[str, ...], ...]
            Generations in dependency order.
        """
        return tuple(self._ordered(wave) for wave in rx.topological_generations(self.graph))

    def sources(self) -> tuple[str, ...]:
        """Return nodes without upstream dependencies.

        Returns
        -------
        tuple[str, ...]
            Source node names.
        """
        return tuple(name for name in self.order if not self.node(name).upstream)

    def sinks(self) -> tuple[str, ...]:
        """Return nodes nothing depends on.

        Returns
        -------
        tuple[str, ...]
            Sink node names.
        """
        return tuple(
            name for name in self.order if not self.graph.out_degree(self.node_idx[name])
        )

    def snapshot(self) -> GraphSnapshot:
        """Return a JSON-friendly listing of nodes and edges.

        Returns
        -------
        GraphSnapshot
            Deterministic snapshot.
        """
        nodes = tuple(
            SnapshotNode(
                name=node.name,
                index=node.index,
                language=str(node.derivation.language),
                kind=node.derivation.kind,
                upstream=node.upstream,
            )
            for node in self.nodes()
        )
        edges = tuple(
            (upstream, node.name) for node in self.nodes() for upstream in node.upstream
        )
        return GraphSnapshot(version=GRAPH_SNAPSHOT_VERSION, nodes=nodes, edges=edges)

    def to_dot(self) -> str:
        """Return a Graphviz DOT rendering of the graph.

        Returns
        -------
        str
            DOT source.
        """
        lines = ["digraph pipeline {", "  rankdir=LR;"]
        lines.extend(f"  {_dot_node_line(node)};" for node in self.nodes())
        lines.extend(
            f'  "{upstream}" -> "{node.name}";'
            for node in self.nodes()
            for upstream in node.upstream
        )
        lines.append("}")
        return "\n".join(lines) + "\n"

    def _index(self, name: str) -> int:
        idx = self.node_idx.get(name)
        if idx is None:
            msg = f"Derivation {name!r} is not part of the pipeline."
            raise NotFoundError(msg, node=name)
        return idx

    def _ordered(self, indices: Iterable[int]) -> tuple[str, ...]:
        nodes = sorted((self.graph[idx] for idx in indices), key=lambda item: item.index)
        return tuple(node.name for node in nodes)


def build_graph(pipeline: Pipeline) -> PipelineGraph:
    """Return the dependency graph of a pipeline.

    Edges are the union of declared ``depends_on`` names and names inferred
    from expression sources. Forward references are allowed; cycles are not.

    Returns
    -------
    PipelineGraph
        Validated dependency graph.

    Raises
    ------
    CyclicDependencyError
        Raised when upstream references form a cycle.
    """
    declared = {derivation.name: derivation for derivation in pipeline.derivations}
    positions = {name: position for position, name in enumerate(declared)}
    nodes = [
        _resolve_node(index, derivation, declared, positions)
        for index, derivation in enumerate(pipeline.derivations)
    ]
    graph = rx.PyDiGraph(
        multigraph=False,
        check_cycle=False,
        node_count_hint=len(nodes),
        edge_count_hint=sum(len(node.upstream) for node in nodes),
    )
    indices = graph.add_nodes_from(nodes)
    node_idx = dict(zip((node.name for node in nodes), indices, strict=True))
    for node in nodes:
        for upstream in node.upstream:
            graph.add_edge(node_idx[upstream], node_idx[node.name], None)
    if not rx.is_directed_acyclic_graph(graph):
        raise CyclicDependencyError(_cycle_names(graph))
    ordered = rx.lexicographical_topological_sort(graph, key=_node_sort_key)
    order = tuple(node.name for node in ordered)
    logger.debug("Built pipeline graph with %d nodes and %d edges", len(order), graph.num_edges())
    return PipelineGraph(graph=graph, node_idx=node_idx, order=order)


def _resolve_node(
    index: int,
    derivation: Derivation,
    declared: Mapping[str, Derivation],
    positions: Mapping[str, int],
) -> DagNode:
    name = derivation.name
    for upstream in derivation.depends_on:
        if upstream == name:
            raise CyclicDependencyError((name,))
        if upstream not in declared:
            raise UnresolvedReferenceError(name, upstream)
    body = derivation.body
    explicit = set(derivation.depends_on)
    if isinstance(body, FileImport):
        return DagNode(name=name, index=index, derivation=derivation)
    if isinstance(body, Conversion):
        source = declared.get(body.source)
        if source is None:
            raise UnresolvedReferenceError(
                name, body.source, detail="Conversions need an existing source derivation."
            )
        if source.name == name:
            raise CyclicDependencyError((name,))
        if source.language != body.from_language:
            msg = (
                f"Conversion {name!r} expects {body.source!r} in {body.from_language}, "
                f"but it is declared in {source.language}."
            )
            raise DerivationError(msg, node=name)
        explicit.add(source.name)
        inferred: tuple[str, ...] = ()
    else:
        inferred = inferred_references(derivation, declared)
    upstream = explicit | set(inferred)
    return DagNode(
        name=name,
        index=index,
        derivation=derivation,
        upstream=tuple(sorted(upstream, key=positions.__getitem__)),
        inferred=tuple(item for item in inferred if item not in derivation.depends_on),
    )


def _node_sort_key(node: DagNode) -> str:
    return f"{node.index:09d}"


def _cycle_names(graph: rx.PyDiGraph) -> tuple[str, ...]:
    edges = rx.digraph_find_cycle(graph)
    names: list[str] = []
    for edge in edges:
        if len(edge) < _CYCLE_EDGE_MIN_LEN:
            continue
        names.append(graph[edge[0]].name)
    return tuple(names)


def _dot_node_line(node: DagNode) -> str:
    language = str(node.derivation.language)
    attrs = {
        "shape": "box" if node.derivation.kind == "file_import" else "ellipse",
        "color": _LANGUAGE_COLORS.get(language, "#000000"),
        "tooltip": f"{language} {node.derivation.kind}",
    }
    rendered = ", ".join(f'{key}="{value}"' for key, value in attrs.items())
    return f'"{node.name}" [{rendered}]'


__all__ = [
    "GRAPH_SNAPSHOT_VERSION",
    "DagNode",
    "GraphSnapshot",
    "PipelineGraph",
    "SnapshotNode",
    "build_graph",
]
