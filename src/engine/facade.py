"""Public engine operations: build, inspect, load, read, gc and explain.

Every operation takes an :class:`EngineContext`; when omitted, a DiskCache
backed context is built from the effective configuration.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from datetime import datetime

from buildlog.entries import BuildStatus, NodeRecord, NodeStatus, overall_status
from core.errors import NotFoundError
from dag.graph import PipelineGraph, build_graph
from derivations.model import Language, Pipeline
from engine.config import load_engine_config
from engine.context import EngineContext
from executor.node import NodeExecutor
from executor.scheduler import BuildScheduler, NodeCallback
from fingerprints.engine import FingerprintEngine, FingerprintIndex, fingerprint_graph
from obs.otel.scopes import SCOPE_PIPELINE, SCOPE_SCHEDULING, SCOPE_STORAGE
from obs.otel.tracing import stage_span
from runtimes.base import check_readable
from serde_msgspec import StructBaseStrict, dumps_json
from store.artifacts import Artifact
from store.gc import GcReport, collect_garbage
from utils.uuid_factory import build_log_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildOptions:
    """Options for :func:`build`.

    Parameters
    ----------
    build
        Execute stale nodes; ``False`` only writes a plan manifest.
    max_workers
        Worker bound, overriding the configured value.
    cancel_event
        Event that stops scheduling new nodes once set.
    on_node
        Callback invoked with each node record as it settles.
    """

    build: bool = True
    max_workers: int | None = None
    cancel_event: threading.Event | None = None
    on_node: NodeCallback | None = None


class BuildResult(StructBaseStrict, frozen=True):
    """Outcome of a build or plan-only run."""

    nodes: tuple[NodeRecord, ...]
    status: BuildStatus | None = None
    log_id: str | None = None
    partial: bool = False
    plan_path: str | None = None

    @property
    def planned(self) -> bool:
        """Return whether the run only wrote a plan manifest."""
        return self.status is None

    @property
    def ok(self) -> bool:
        """Return whether the run finished without failures."""
        return self.status in {None, BuildStatus.SUCCESS}

    def node(self, name: str) -> NodeRecord:
        """Return the record for a node.

        Returns
        -------
        NodeRecord
            Node record.

        Raises
        ------
        NotFoundError
            Raised when the run has no record for ``name``.
        """
        for record in self.nodes:
            if record.name == name:
                return record
        msg = f"Derivation {name!r} is not part of this build."
        raise NotFoundError(msg, node=name)

    def statuses(self) -> dict[str, NodeStatus]:
        """Return node statuses keyed by name.

        Returns
        -------
        dict[str, NodeStatus]
            Status per node in topological order.
        """
        return {record.name: record.status for record in self.nodes}


class PlanNode(StructBaseStrict, frozen=True):
    """One node of a plan manifest."""

    name: str
    language: str
    kind: str
    fingerprint: str
    status: NodeStatus
    upstream: tuple[str, ...] = ()


class PlanManifest(StructBaseStrict, frozen=True):
    """What a build would do, written instead of executing."""

    created_at: datetime
    root: str
    nodes: tuple[PlanNode, ...]
    generations: tuple[tuple[str, ...], ...] = ()


class InspectRow(StructBaseStrict, frozen=True):
    """Per-node status without executing anything."""

    name: str
    language: str
    kind: str
    fingerprint: str
    cached: bool
    last_status: NodeStatus | None = None
    upstream: tuple[str, ...] = ()


class Explanation(StructBaseStrict, frozen=True):
    """Fingerprint inputs of one node."""

    name: str
    fingerprint: str
    components: dict[str, str]
    upstream: tuple[tuple[str, str], ...]
    files: tuple[tuple[str, str], ...]
    cached: bool


def _resolve_context(context: EngineContext | None) -> EngineContext:
    if context is not None:
        return context
    return EngineContext.from_config(load_engine_config())


def _analyze(pipeline: Pipeline) -> tuple[PipelineGraph, FingerprintIndex]:
    with stage_span(
        "pipeline.analyze",
        stage="analyze",
        scope_name=SCOPE_PIPELINE,
        attributes={"polypipe.derivations": len(pipeline.derivations)},
    ):
        graph = build_graph(pipeline)
        return graph, fingerprint_graph(pipeline, graph)


def build(
    pipeline: Pipeline,
    options: BuildOptions | None = None,
    context: EngineContext | None = None,
) -> BuildResult:
    """Build every stale node of ``pipeline``.

    Graph and fingerprint errors abort before anything executes. Node
    failures are recorded per node and never raised.

    Returns
    -------
    BuildResult
        Per-node records, overall status and build-log id.
    """
    resolved_options = options or BuildOptions()
    ctx = _resolve_context(context)
    graph, index = _analyze(pipeline)
    fingerprints = index.mapping()
    if not resolved_options.build:
        return _write_plan(pipeline, graph, fingerprints, ctx)
    executor = NodeExecutor(
        pipeline=pipeline,
        store=ctx.store,
        runtimes=ctx.runtimes,
        converters=ctx.converters,
    )
    scheduler = BuildScheduler(
        store=ctx.store,
        executor=executor,
        max_workers=resolved_options.max_workers or ctx.config.max_workers,
        cancel_event=resolved_options.cancel_event or threading.Event(),
        on_node=resolved_options.on_node,
    )
    with stage_span(
        "pipeline.build",
        stage="build",
        scope_name=SCOPE_SCHEDULING,
        attributes={"polypipe.nodes": len(graph)},
    ) as span:
        outcome = scheduler.run(graph, fingerprints)
        status = overall_status(outcome.records, interrupted=outcome.interrupted)
        span.set_attribute("polypipe.status", str(status))
    entry = ctx.log.record(
        outcome.records,
        status=status,
        partial=outcome.interrupted,
        root=str(pipeline.root_path()),
    )
    counts = entry.counts()
    logger.info(
        "Build %s finished %s: %d rebuilt, %d reused, %d failed",
        entry.log_id,
        status,
        counts.get(NodeStatus.REBUILT, 0),
        counts.get(NodeStatus.REUSED, 0),
        counts.get(NodeStatus.FAILED, 0),
    )
    return BuildResult(
        nodes=outcome.records,
        status=status,
        log_id=entry.log_id,
        partial=outcome.interrupted,
    )


def _write_plan(
    pipeline: Pipeline,
    graph: PipelineGraph,
    fingerprints: Mapping[str, str],
    ctx: EngineContext,
) -> BuildResult:
    records: list[NodeRecord] = []
    plan_nodes: list[PlanNode] = []
    for name in graph.order:
        node = graph.node(name)
        fingerprint = fingerprints[name]
        status = NodeStatus.REUSED if ctx.store.contains(fingerprint) else NodeStatus.PENDING
        language = str(node.derivation.language)
        records.append(
            NodeRecord(name=name, fingerprint=fingerprint, status=status, language=language)
        )
        plan_nodes.append(
            PlanNode(
                name=name,
                language=language,
                kind=node.derivation.kind,
                fingerprint=fingerprint,
                status=status,
                upstream=node.upstream,
            )
        )
    created_at = ctx.clock()
    manifest = PlanManifest(
        created_at=created_at,
        root=str(pipeline.root_path()),
        nodes=tuple(plan_nodes),
        generations=graph.generations(),
    )
    plan_dir = ctx.config.plan_path()
    plan_dir.mkdir(parents=True, exist_ok=True)
    path = plan_dir / f"{build_log_id(created_at)}.json"
    path.write_bytes(dumps_json(manifest, pretty=True))
    logger.info("Wrote plan manifest %s", path)
    return BuildResult(nodes=tuple(records), plan_path=str(path))


def inspect(pipeline: Pipeline, context: EngineContext | None = None) -> tuple[InspectRow, ...]:
    """Return fingerprint, cache state and last status per node.

    Returns
    -------
    tuple[InspectRow, ...]
        Rows in topological order.
    """
    ctx = _resolve_context(context)
    graph, index = _analyze(pipeline)
    fingerprints = index.mapping()
    last_status: dict[str, NodeStatus] = {}
    pending = set(graph.order)
    for entry in ctx.log.list():
        if not pending:
            break
        for record in entry.nodes:
            if record.name in pending:
                last_status[record.name] = record.status
                pending.discard(record.name)
    rows: list[InspectRow] = []
    for name in graph.order:
        node = graph.node(name)
        rows.append(
            InspectRow(
                name=name,
                language=str(node.derivation.language),
                kind=node.derivation.kind,
                fingerprint=fingerprints[name],
                cached=ctx.store.contains(fingerprints[name]),
                last_status=last_status.get(name),
                upstream=node.upstream,
            )
        )
    return tuple(rows)


def load(
    name: str,
    context: EngineContext | None = None,
    namespace: MutableMapping[str, object] | None = None,
    deserializer: str | None = None,
) -> object:
    """Return the most recent artifact of ``name`` as a Python object.

    Parameters
    ----------
    name
        Derivation name.
    context
        Engine context holding the store and build log.
    namespace
        When given, the value is also bound under ``name``.
    deserializer
        Hook used instead of the artifact format's codec.

    Returns
    -------
    object
        Decoded value.
    """
    ctx = _resolve_context(context)
    record = ctx.log.latest(name)
    artifact = _artifact_for(ctx, record)
    value = _decode(ctx, name, artifact, deserializer=deserializer)
    if namespace is not None:
        namespace[name] = value
    return value


def read(
    name: str,
    selector: str | None = None,
    context: EngineContext | None = None,
    *,
    raw: bool = False,
    deserializer: str | None = None,
) -> object:
    """Return the artifact ``name`` had in a selected historical build.

    Returns
    -------
    object
        Raw payload bytes when ``raw`` is set, else the decoded value.
    """
    ctx = _resolve_context(context)
    record = ctx.log.lookup(name, selector)
    artifact = _artifact_for(ctx, record)
    if raw:
        return artifact.payload
    return _decode(ctx, name, artifact, deserializer=deserializer)


def gc(
    context: EngineContext | None = None,
    *,
    keep_last: int | None = None,
    keep_since: datetime | None = None,
    dry_run: bool = False,
) -> GcReport:
    """Delete store entries no retained build-log entry references.

    Returns
    -------
    GcReport
        Collection report.
    """
    ctx = _resolve_context(context)
    with stage_span("pipeline.gc", stage="gc", scope_name=SCOPE_STORAGE):
        return collect_garbage(
            ctx.store,
            ctx.log,
            keep_last=keep_last,
            keep_since=keep_since,
            dry_run=dry_run,
        )


def explain(
    pipeline: Pipeline,
    name: str,
    context: EngineContext | None = None,
) -> Explanation:
    """Return the components the fingerprint of ``name`` is built from.

    Returns
    -------
    Explanation
        Components, upstream pairs and file digests.
    """
    ctx = _resolve_context(context)
    graph = build_graph(pipeline)
    record = FingerprintEngine(pipeline, graph).record(name)
    return Explanation(
        name=name,
        fingerprint=record.fingerprint,
        components=dict(record.components.mapping()),
        upstream=record.upstream,
        files=record.files,
        cached=ctx.store.contains(record.fingerprint),
    )


def _artifact_for(ctx: EngineContext, record: NodeRecord) -> Artifact:
    if record.artifact is None:
        msg = f"Derivation {record.name!r} has no artifact ({record.status})."
        raise NotFoundError(msg, node=record.name)
    return ctx.store.require(record.artifact.fingerprint)


def _decode(
    ctx: EngineContext,
    name: str,
    artifact: Artifact,
    *,
    deserializer: str | None,
) -> object:
    runtime = ctx.runtimes.python()
    if deserializer is None and artifact.format not in runtime.readable_formats:
        if Language(artifact.language) == Language.PYTHON:
            check_readable(runtime, name, artifact, deserializer=None, node=name)
        artifact = ctx.converters.convert(
            artifact,
            to_language=Language.PYTHON,
            runtimes=ctx.runtimes,
            node=name,
        )
    return runtime.decode(artifact, deserializer=deserializer, node=name)


__all__ = [
    "BuildOptions",
    "BuildResult",
    "Explanation",
    "InspectRow",
    "PlanManifest",
    "PlanNode",
    "build",
    "explain",
    "gc",
    "inspect",
    "load",
    "read",
]
