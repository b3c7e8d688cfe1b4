"""Process-local artifact store."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import AbstractContextManager

from core.errors import NotFoundError
from store.artifacts import Artifact, ArtifactRef
from store.locks import FingerprintLocks

logger = logging.getLogger(__name__)


class InMemoryArtifactStore:
    """Dictionary-backed store with per-fingerprint thread locks."""

    def __init__(self) -> None:
        self._artifacts: dict[str, Artifact] = {}
        self._guard = threading.Lock()
        self._locks = FingerprintLocks()
        self.put_count = 0

    def put(self, fingerprint: str, artifact: Artifact) -> ArtifactRef:
        """Store an artifact unless the fingerprint is already present.

        Returns
        -------
        ArtifactRef
            Reference to the stored (first written) artifact.
        """
        with self._guard:
            existing = self._artifacts.get(fingerprint)
            if existing is None:
                self._artifacts[fingerprint] = artifact
                self.put_count += 1
                return artifact.ref(fingerprint, location=self.location(fingerprint))
        if existing.digest != artifact.digest:
            logger.warning(
                "Artifact for %s already stored with a different payload; keeping the first.",
                fingerprint,
            )
        return existing.ref(fingerprint, location=self.location(fingerprint))

    def get(self, fingerprint: str) -> Artifact | None:
        """Return the stored artifact, if any.

        Returns
        -------
        Artifact | None
            Stored artifact.
        """
        with self._guard:
            return self._artifacts.get(fingerprint)

    def require(self, fingerprint: str) -> Artifact:
        """Return the stored artifact.

        Returns
        -------
        Artifact
            Stored artifact.

        Raises
        ------
        NotFoundError
            Raised when nothing is stored under the fingerprint.
        """
        artifact = self.get(fingerprint)
        if artifact is None:
            msg = f"No artifact stored for fingerprint {fingerprint}."
            raise NotFoundError(msg)
        return artifact

    def contains(self, fingerprint: str) -> bool:
        """Return whether a fingerprint is stored.

        Returns
        -------
        bool
            True when stored.
        """
        with self._guard:
            return fingerprint in self._artifacts

    def fingerprints(self) -> Iterator[str]:
        """Iterate a snapshot of stored fingerprints.

        Yields
        ------
        str
            Stored fingerprint.
        """
        with self._guard:
            keys = tuple(self._artifacts)
        yield from keys

    def lock(self, fingerprint: str) -> AbstractContextManager[None]:
        """Return the thread lock guarding a fingerprint.

        Returns
        -------
        AbstractContextManager[None]
            Lock usable in a ``with`` block.
        """
        return self._locks.hold(fingerprint)

    def delete(self, fingerprint: str) -> bool:
        """Remove a fingerprint.

        Returns
        -------
        bool
            True when an entry was removed.
        """
        with self._guard:
            return self._artifacts.pop(fingerprint, None) is not None

    @staticmethod
    def location(fingerprint: str) -> str:
        """Return the in-memory location label for a fingerprint.

        Returns
        -------
        str
            Location label.
        """
        return f"memory://{fingerprint}"

    def __len__(self) -> int:
        return len(self._artifacts)


__all__ = ["InMemoryArtifactStore"]
