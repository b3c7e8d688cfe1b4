"""DiskCache-backed artifact store shared across processes."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path

from diskcache import Cache, Lock

from cache.diskcache_factory import (
    DiskCacheProfile,
    cache_for_kind,
    diskcache_profile_for_root,
)
from core.errors import NotFoundError
from serde_msgspec import dumps_msgpack, loads_msgpack
from store.artifacts import Artifact, ArtifactRef
from store.locks import FingerprintLocks

logger = logging.getLogger(__name__)

ARTIFACT_KEY_PREFIX = "artifact:"
LOCK_KEY_PREFIX = "lock:"
LOCK_EXPIRE_SECONDS: float = 3600.0


class DiskCacheArtifactStore:
    """Durable store over a DiskCache ``Cache`` with eviction disabled.

    Inserts use ``Cache.add`` so concurrent writers across processes never
    replace an existing entry. Build locks combine a process-local thread lock
    with a ``diskcache.Lock`` keyed by fingerprint.
    """

    def __init__(
        self,
        root: Path | None = None,
        *,
        profile: DiskCacheProfile | None = None,
        lock_expire: float = LOCK_EXPIRE_SECONDS,
    ) -> None:
        if profile is None:
            profile = diskcache_profile_for_root(root) if root else DiskCacheProfile()
        self.profile = profile
        self._cache: Cache = cache_for_kind(profile, "store")
        self._lock_expire = lock_expire
        self._thread_locks = FingerprintLocks()

    @property
    def directory(self) -> Path:
        """Return the cache directory.

        Returns
        -------
        pathlib.Path
            DiskCache directory.
        """
        return Path(self._cache.directory)

    def put(self, fingerprint: str, artifact: Artifact) -> ArtifactRef:
        """Store an artifact unless the fingerprint is already present.

        Returns
        -------
        ArtifactRef
            Reference to the stored (first written) artifact.
        """
        key = _artifact_key(fingerprint)
        added = self._cache.add(key, dumps_msgpack(artifact), retry=True)
        if added:
            logger.debug("Stored artifact %s (%d bytes)", fingerprint, artifact.size)
            return artifact.ref(fingerprint, location=self.location(fingerprint))
        existing = self.require(fingerprint)
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
        raw = self._cache.get(_artifact_key(fingerprint), default=None, retry=True)
        if raw is None:
            return None
        return loads_msgpack(bytes(raw), target_type=Artifact)

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
            msg = f"No artifact stored for fingerprint {fingerprint} in {self.directory}."
            raise NotFoundError(msg)
        return artifact

    def contains(self, fingerprint: str) -> bool:
        """Return whether a fingerprint is stored.

        Returns
        -------
        bool
            True when stored.
        """
        return _artifact_key(fingerprint) in self._cache

    def fingerprints(self) -> Iterator[str]:
        """Iterate stored fingerprints.

        Yields
        ------
        str
            Stored fingerprint.
        """
        for key in self._cache.iterkeys():
            if isinstance(key, str) and key.startswith(ARTIFACT_KEY_PREFIX):
                yield key.removeprefix(ARTIFACT_KEY_PREFIX)

    def lock(self, fingerprint: str) -> AbstractContextManager[None]:
        """Return a cross-process guard for building a fingerprint.

        Returns
        -------
        AbstractContextManager[None]
            Guard usable in a ``with`` block.
        """
        return self._locked(fingerprint)

    @contextmanager
    def _locked(self, fingerprint: str) -> Iterator[None]:
        process_lock = Lock(
            self._cache,
            f"{LOCK_KEY_PREFIX}{fingerprint}",
            expire=self._lock_expire,
        )
        with self._thread_locks.hold(fingerprint), process_lock:
            yield

    def delete(self, fingerprint: str) -> bool:
        """Remove a fingerprint.

        Returns
        -------
        bool
            True when an entry was removed.
        """
        return bool(self._cache.delete(_artifact_key(fingerprint), retry=True))

    def location(self, fingerprint: str) -> str:
        """Return the cache directory and key for a fingerprint.

        Returns
        -------
        str
            Location label.
        """
        return f"{self.directory}#{_artifact_key(fingerprint)}"


def _artifact_key(fingerprint: str) -> str:
    return f"{ARTIFACT_KEY_PREFIX}{fingerprint}"


__all__ = ["ARTIFACT_KEY_PREFIX", "DiskCacheArtifactStore"]
