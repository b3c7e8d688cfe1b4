"""Dependency-respecting parallel scheduler for pipeline builds."""

from __future__ import annotations

import heapq
import logging
import os
import threading
import time
from collections.abc import Callable, Mapping
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field

from opentelemetry import context as otel_context

from buildlog.entries import NodeRecord, NodeStatus
from core.errors import BuildCancelledError, PipelineError
from dag.graph import PipelineGraph
from executor.node import NodeExecutor
from obs.otel.metrics import record_node_duration, record_node_status
from store.artifacts import ArtifactRef
from store.protocol import ArtifactStore

logger = logging.getLogger(__name__)

type NodeCallback = Callable[[NodeRecord], None]


def resolve_max_workers(max_workers: int | None) -> int:
    """Resolve the worker bound, defaulting to the CPU count.

    Returns
    -------
    int
        Effective worker count.
    """
    if max_workers is not None:
        return max(1, max_workers)
    return max(1, os.cpu_count() or 1)


@dataclass(frozen=True)
class ScheduleOutcome:
    """Per-node records of a scheduler run, in topological order."""

    records: tuple[NodeRecord, ...]
    interrupted: bool = False


@dataclass
class BuildScheduler:
    """Walk a graph in dependency order and build stale nodes in parallel.

    A node whose fingerprint is already stored is ``reused`` without touching
    the executor. Builds of one fingerprint are serialized through the store
    lock and re-check the store once the lock is held, so each fingerprint is
    built at most once even when several nodes share it.
    """

    store: ArtifactStore
    executor: NodeExecutor
    max_workers: int | None = None
    cancel_event: threading.Event = field(default_factory=threading.Event)
    on_node: NodeCallback | None = None

    def run(self, graph: PipelineGraph, fingerprints: Mapping[str, str]) -> ScheduleOutcome:
        """Build every node of ``graph``.

        Failures mark the node ``failed`` and every descendant ``blocked``;
        unrelated branches keep running. Cancellation (the event or a
        ``KeyboardInterrupt``) stops new submissions, lets in-flight nodes
        finish and marks never-started nodes ``cancelled``.

        Returns
        -------
        ScheduleOutcome
            Records for every node plus the interruption flag.
        """
        workers = resolve_max_workers(self.max_workers)
        position = {name: index for index, name in enumerate(graph.order)}
        waiting = {node.name: set(node.upstream) for node in graph.nodes()}
        ready: list[tuple[int, str]] = [
            (position[name], name) for name, deps in waiting.items() if not deps
        ]
        heapq.heapify(ready)
        records: dict[str, NodeRecord] = {}
        running: dict[Future[NodeRecord], str] = {}
        interrupted = False
        parent_context = otel_context.get_current()
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="polypipe") as pool:
            try:
                while ready or running:
                    if self.cancel_event.is_set():
                        interrupted = True
                    while ready and len(running) < workers and not interrupted:
                        _, name = heapq.heappop(ready)
                        future = pool.submit(
                            self._run_node, graph, fingerprints, name, parent_context
                        )
                        running[future] = name
                    if not running:
                        break
                    done, _ = wait(running, return_when=FIRST_COMPLETED)
                    for future in done:
                        name = running.pop(future)
                        self._settle(graph, fingerprints, future.result(), records)
                        if records[name].status in {NodeStatus.REBUILT, NodeStatus.REUSED}:
                            for child in graph.downstream(name):
                                waiting[child].discard(name)
                                if not waiting[child] and child not in records:
                                    heapq.heappush(ready, (position[child], child))
            except KeyboardInterrupt:
                logger.warning("Build interrupted; waiting for %d running nodes", len(running))
                interrupted = True
                self.cancel_event.set()
                for future in running:
                    self._settle(graph, fingerprints, future.result(), records)
        for name in graph.order:
            if name not in records:
                records[name] = NodeRecord(
                    name=name,
                    fingerprint=fingerprints[name],
                    status=NodeStatus.CANCELLED,
                    language=str(graph.node(name).derivation.language),
                )
                self._notify(records[name])
        ordered = tuple(records[name] for name in graph.order)
        for status in NodeStatus:
            count = sum(1 for record in ordered if record.status == status)
            if count:
                record_node_status(str(status), count=count)
        return ScheduleOutcome(records=ordered, interrupted=interrupted)

    def _settle(
        self,
        graph: PipelineGraph,
        fingerprints: Mapping[str, str],
        record: NodeRecord,
        records: dict[str, NodeRecord],
    ) -> None:
        records[record.name] = record
        self._notify(record)
        if record.status != NodeStatus.FAILED:
            return
        for descendant in graph.descendants(record.name):
            if descendant in records:
                continue
            blocked = NodeRecord(
                name=descendant,
                fingerprint=fingerprints[descendant],
                status=NodeStatus.BLOCKED,
                language=str(graph.node(descendant).derivation.language),
                error=f"Upstream derivation {record.name!r} failed.",
            )
            records[descendant] = blocked
            self._notify(blocked)

    def _notify(self, record: NodeRecord) -> None:
        if self.on_node is not None:
            self.on_node(record)

    def _run_node(
        self,
        graph: PipelineGraph,
        fingerprints: Mapping[str, str],
        name: str,
        parent_context: otel_context.Context,
    ) -> NodeRecord:
        token = otel_context.attach(parent_context)
        node = graph.node(name)
        language = str(node.derivation.language)
        fingerprint = fingerprints[name]
        start = time.monotonic()
        try:
            status, ref = self._build(graph, fingerprints, name)
        except BuildCancelledError:
            return NodeRecord(
                name=name,
                fingerprint=fingerprint,
                status=NodeStatus.CANCELLED,
                language=language,
            )
        except PipelineError as exc:
            logger.error("Derivation %s failed: %s", name, exc)
            return self._failed(name, fingerprint, language, str(exc), start)
        except Exception as exc:
            logger.exception("Unexpected failure while building %s", name)
            error = f"{type(exc).__name__}: {exc}"
            return self._failed(name, fingerprint, language, error, start)
        finally:
            otel_context.detach(token)
        duration = time.monotonic() - start
        record_node_duration(language, duration, status=str(status))
        return NodeRecord(
            name=name,
            fingerprint=fingerprint,
            status=status,
            language=language,
            artifact=ref,
            duration_s=duration,
        )

    def _build(
        self,
        graph: PipelineGraph,
        fingerprints: Mapping[str, str],
        name: str,
    ) -> tuple[NodeStatus, ArtifactRef]:
        if self.cancel_event.is_set():
            msg = f"Build cancelled before {name!r} started."
            raise BuildCancelledError(msg, node=name)
        fingerprint = fingerprints[name]
        cached = self.store.get(fingerprint)
        if cached is not None:
            logger.debug("Reusing %s (%s)", name, fingerprint[:12])
            return NodeStatus.REUSED, cached.ref(
                fingerprint, location=self.store.location(fingerprint)
            )
        with self.store.lock(fingerprint):
            cached = self.store.get(fingerprint)
            if cached is not None:
                return NodeStatus.REUSED, cached.ref(
                    fingerprint, location=self.store.location(fingerprint)
                )
            node = graph.node(name)
            upstream = {upstream: fingerprints[upstream] for upstream in node.upstream}
            ref = self.executor.execute(node, fingerprint, upstream)
        return NodeStatus.REBUILT, ref

    @staticmethod
    def _failed(
        name: str,
        fingerprint: str,
        language: str,
        error: str,
        start: float,
    ) -> NodeRecord:
        duration = time.monotonic() - start
        record_node_duration(language, duration, status=str(NodeStatus.FAILED))
        return NodeRecord(
            name=name,
            fingerprint=fingerprint,
            status=NodeStatus.FAILED,
            language=language,
            error=error,
            duration_s=duration,
        )


__all__ = ["BuildScheduler", "NodeCallback", "ScheduleOutcome", "resolve_max_workers"]
