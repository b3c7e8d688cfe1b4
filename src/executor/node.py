"""Execution of a single stale node."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from dag.graph import DagNode
from derivations.model import Conversion, Pipeline
from obs.otel.scopes import SCOPE_EXECUTION
from obs.otel.tracing import stage_span
from runtimes.base import EvaluationRequest
from runtimes.registry import ConverterRegistry, RuntimeRegistry, bridge_input
from store.artifacts import Artifact, ArtifactRef
from store.protocol import ArtifactStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NodeExecutor:
    """Evaluate one node and persist its artifact.

    Steps: resolve upstream artifacts from the store, bridge language
    boundaries, evaluate in the node runtime, then write the encoded output
    under the node fingerprint. Conversion nodes only run their converter.
    """

    pipeline: Pipeline
    store: ArtifactStore
    runtimes: RuntimeRegistry
    converters: ConverterRegistry

    def execute(
        self,
        node: DagNode,
        fingerprint: str,
        upstream: Mapping[str, str],
    ) -> ArtifactRef:
        """Build ``node`` and return a reference to the stored artifact.

        Parameters
        ----------
        node
            Graph node to build.
        fingerprint
            Fingerprint the artifact is stored under.
        upstream
            Upstream binding names mapped to their fingerprints.

        Returns
        -------
        ArtifactRef
            Reference to the stored artifact.
        """
        derivation = node.derivation
        attributes = {
            "polypipe.node": node.name,
            "polypipe.language": str(derivation.language),
            "polypipe.fingerprint": fingerprint,
        }
        with stage_span(
            "node.execute",
            stage="node",
            scope_name=SCOPE_EXECUTION,
            attributes=attributes,
        ):
            inputs = {name: self.store.require(value) for name, value in upstream.items()}
            artifact = self._produce(node, inputs, fingerprint)
            ref = self.store.put(fingerprint, artifact)
        logger.info("Built %s (%s, %d bytes)", node.name, artifact.format, artifact.size)
        return ref

    def _produce(
        self,
        node: DagNode,
        inputs: Mapping[str, Artifact],
        fingerprint: str,
    ) -> Artifact:
        derivation = node.derivation
        body = derivation.body
        if isinstance(body, Conversion):
            return self.converters.convert(
                inputs[body.source],
                to_language=body.to_language,
                runtimes=self.runtimes,
                node=node.name,
            )
        bridged = {
            name: bridge_input(
                name,
                artifact,
                consumer=derivation,
                runtimes=self.runtimes,
                converters=self.converters,
            )
            for name, artifact in inputs.items()
        }
        request = EvaluationRequest(
            derivation=derivation,
            root=self.pipeline.root_path(),
            inputs=bridged,
            fingerprint=fingerprint,
        )
        return self.runtimes.get(derivation.language).evaluate(request)


__all__ = ["NodeExecutor"]
