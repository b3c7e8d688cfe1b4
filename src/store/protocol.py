"""Artifact store protocol."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import AbstractContextManager
from typing import Protocol, runtime_checkable

from store.artifacts import Artifact, ArtifactRef


@runtime_checkable
class ArtifactStore(Protocol):
    """Content-addressed, append-only mapping from fingerprint to artifact.

    ``put`` never overwrites: the first artifact written under a fingerprint
    is the one every later reader sees. Only garbage collection deletes.
    """

    def put(self, fingerprint: str, artifact: Artifact) -> ArtifactRef:
        """Store an artifact unless the fingerprint is already present."""
        ...

    def get(self, fingerprint: str) -> Artifact | None:
        """Return the artifact stored under a fingerprint, if any."""
        ...

    def require(self, fingerprint: str) -> Artifact:
        """Return the artifact stored under a fingerprint or raise NotFoundError."""
        ...

    def contains(self, fingerprint: str) -> bool:
        """Return whether a fingerprint is stored."""
        ...

    def fingerprints(self) -> Iterator[str]:
        """Iterate stored fingerprints."""
        ...

    def lock(self, fingerprint: str) -> AbstractContextManager[None]:
        """Return a mutual-exclusion guard for building one fingerprint."""
        ...

    def delete(self, fingerprint: str) -> bool:
        """Remove a fingerprint; reserved for garbage collection."""
        ...

    def location(self, fingerprint: str) -> str:
        """Return a human-readable location for a fingerprint."""
        ...


__all__ = ["ArtifactStore"]
