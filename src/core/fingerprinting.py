"""Composite fingerprinting utilities."""

from __future__ import annotations

from collections.abc import Mapping

from serde_msgspec import StructBaseStrict
from utils.hashing import CacheKeyBuilder, hash_msgpack_canonical


class FingerprintComponent(StructBaseStrict, frozen=True):
    """Single named component of a composite fingerprint."""

    name: str
    value: str


class CompositeFingerprint(StructBaseStrict, frozen=True):
    """Versioned set of named components with a canonical digest.

    Components are kept sorted by name, so the digest never depends on the
    order in which callers supply them.
    """

    version: int
    components: tuple[FingerprintComponent, ...]

    @classmethod
    def from_components(
        cls,
        version: int,
        **components: str,
    ) -> CompositeFingerprint:
        """Create a composite fingerprint from named components.

        Returns
        -------
        CompositeFingerprint
            Composite fingerprint instance.
        """
        return cls(
            version=version,
            components=tuple(
                FingerprintComponent(name=name, value=value)
                for name, value in sorted(components.items())
            ),
        )

    def digest(self) -> str:
        """Return the SHA-256 digest of the canonical msgpack encoding.

        Returns
        -------
        str
            Hex digest.
        """
        return hash_msgpack_canonical(
            (self.version, tuple((item.name, item.value) for item in self.components))
        )

    def as_cache_key(self, *, prefix: str = "") -> str:
        """Return a deterministic cache key for the fingerprint.

        Returns
        -------
        str
            Cache key string.
        """
        builder = CacheKeyBuilder(prefix=prefix)
        builder.add("version", self.version)
        builder.add("components", dict(self.mapping()))
        return builder.build()

    def mapping(self) -> Mapping[str, str]:
        """Return components as a name -> value mapping.

        Returns
        -------
        Mapping[str, str]
            Component values keyed by name.
        """
        return {component.name: component.value for component in self.components}

    def extend(self, **additional: str) -> CompositeFingerprint:
        """Return a new fingerprint with additional or replaced components.

        Returns
        -------
        CompositeFingerprint
            New composite fingerprint.
        """
        merged = dict(self.mapping())
        merged.update(additional)
        return CompositeFingerprint.from_components(self.version, **merged)


__all__ = ["CompositeFingerprint", "FingerprintComponent"]
