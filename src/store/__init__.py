"""Content-addressed artifact storage."""

from __future__ import annotations

from store.artifacts import ARTIFACT_FORMATS, Artifact, ArtifactRef
from store.disk import DiskCacheArtifactStore
from store.gc import GcReport, collect_garbage
from store.memory import InMemoryArtifactStore
from store.protocol import ArtifactStore

__all__ = [
    "ARTIFACT_FORMATS",
    "Artifact",
    "ArtifactRef",
    "ArtifactStore",
    "DiskCacheArtifactStore",
    "GcReport",
    "InMemoryArtifactStore",
    "collect_garbage",
]
