"""Merkle-style content fingerprints for pipeline nodes.

A node fingerprint covers the node's own definition (language, body, hooks,
helper files, environment file, environment variables) plus the fingerprints
of its upstream nodes paired with the names they are bound under. The node's
own name is not part of it, so renaming a derivation keeps its cached output.

Source text is hashed byte-for-byte. Whitespace or comment edits therefore
invalidate a node.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from pathlib import Path

from core.errors import HashComputationError
from core.fingerprinting import CompositeFingerprint
from dag.graph import DagNode, PipelineGraph
from derivations.model import Conversion, Expression, FileImport, Pipeline
from serde_msgspec import StructBaseStrict
from utils.hashing import hash_msgpack_canonical, hash_path_sha256

logger = logging.getLogger(__name__)

FINGERPRINT_VERSION = 1


class NodeFingerprint(StructBaseStrict, frozen=True):
    """Fingerprint of one node plus the inputs it was computed from."""

    name: str
    fingerprint: str
    components: CompositeFingerprint
    upstream: tuple[tuple[str, str], ...] = ()
    files: tuple[tuple[str, str], ...] = ()


class FingerprintIndex(StructBaseStrict, frozen=True):
    """Fingerprints for every node of a graph, in topological order."""

    nodes: tuple[NodeFingerprint, ...]

    def mapping(self) -> Mapping[str, str]:
        """Return fingerprints keyed by node name.

        Returns
        -------
        Mapping[str, str]
            Node name to fingerprint.
        """
        return {node.name: node.fingerprint for node in self.nodes}

    def get(self, name: str) -> NodeFingerprint | None:
        """Return the fingerprint record for ``name``, if present.

        Returns
        -------
        NodeFingerprint | None
            Fingerprint record, or None.
        """
        for node in self.nodes:
            if node.name == name:
                return node
        return None


class FingerprintEngine:
    """Compute and memoize node fingerprints for one build attempt.

    File digests are cached alongside fingerprints, so edits made while a
    build is running are not observed until the next engine instance.
    """

    def __init__(self, pipeline: Pipeline, graph: PipelineGraph) -> None:
        self._pipeline = pipeline
        self._graph = graph
        self._memo: dict[str, NodeFingerprint] = {}
        self._file_memo: dict[Path, str] = {}
        self._lock = threading.RLock()

    def fingerprint(self, name: str) -> str:
        """Return the fingerprint of a node.

        Returns
        -------
        str
            SHA-256 hex digest.
        """
        return self.record(name).fingerprint

    def record(self, name: str) -> NodeFingerprint:
        """Return the fingerprint record of a node, computing upstream first.

        Returns
        -------
        NodeFingerprint
            Fingerprint plus component payloads.
        """
        with self._lock:
            cached = self._memo.get(name)
            if cached is not None:
                return cached
            # Walk ancestors in topological order so recursion depth stays flat.
            ancestors = set(self._graph.ancestors(name))
            for ancestor in self._graph.order:
                if ancestor in ancestors and ancestor not in self._memo:
                    self._memo[ancestor] = self._compute(self._graph.node(ancestor))
            result = self._compute(self._graph.node(name))
            self._memo[name] = result
            return result

    def index(self) -> FingerprintIndex:
        """Return fingerprints for every node of the graph.

        Returns
        -------
        FingerprintIndex
            Fingerprints in topological order.
        """
        return FingerprintIndex(nodes=tuple(self.record(name) for name in self._graph.order))

    def _compute(self, node: DagNode) -> NodeFingerprint:
        derivation = node.derivation
        files: list[tuple[str, str]] = []
        body = derivation.body
        if isinstance(body, Expression):
            body_payload: tuple[object, ...] = ("expression", body.source)
        elif isinstance(body, FileImport):
            digest = self._hash_path(body.path, node=node.name)
            files.append((body.path, digest))
            body_payload = ("file_import", body.reader, digest)
        elif isinstance(body, Conversion):
            body_payload = ("conversion", str(body.from_language), str(body.to_language))
        extra_hashes: list[str] = []
        for extra in derivation.extra_files:
            digest = self._hash_path(extra, node=node.name)
            files.append((extra, digest))
            extra_hashes.append(digest)
        environment = ""
        if derivation.environment:
            environment = self._hash_path(derivation.environment, node=node.name)
            files.append((derivation.environment, environment))
        upstream = tuple(
            sorted((name, self._memo[name].fingerprint) for name in node.upstream)
        )
        components = CompositeFingerprint.from_components(
            FINGERPRINT_VERSION,
            language=str(derivation.language),
            body=hash_msgpack_canonical(body_payload),
            hooks=hash_msgpack_canonical(
                (derivation.hooks.serializer, derivation.hooks.deserializer)
            ),
            extra_files=hash_msgpack_canonical(extra_hashes),
            environment=environment,
            env_vars=hash_msgpack_canonical(sorted(derivation.env_vars.items())),
            upstream=hash_msgpack_canonical(upstream),
        )
        fingerprint = components.digest()
        logger.debug("Fingerprint %s -> %s", node.name, fingerprint[:12])
        return NodeFingerprint(
            name=node.name,
            fingerprint=fingerprint,
            components=components,
            upstream=upstream,
            files=tuple(files),
        )

    def _hash_path(self, raw: str, *, node: str) -> str:
        path = self._pipeline.resolve_path(raw)
        cached = self._file_memo.get(path)
        if cached is not None:
            return cached
        try:
            if not path.exists():
                raise FileNotFoundError(path)
            digest = hash_path_sha256(path)
        except OSError as exc:
            msg = f"Cannot hash {raw!r} for derivation {node!r}: {exc}"
            raise HashComputationError(msg, node=node) from exc
        self._file_memo[path] = digest
        return digest


def fingerprint_graph(pipeline: Pipeline, graph: PipelineGraph) -> FingerprintIndex:
    """Return fingerprints for every node of a pipeline graph.

    Returns
    -------
    FingerprintIndex
        Fingerprints in topological order.
    """
    return FingerprintEngine(pipeline, graph).index()


__all__ = [
    "FINGERPRINT_VERSION",
    "FingerprintEngine",
    "FingerprintIndex",
    "NodeFingerprint",
    "fingerprint_graph",
]
