"""Artifact payloads and references held by the store."""

from __future__ import annotations

from serde_msgspec import StructBaseStrict
from utils.hashing import hash_sha256_hex

ARTIFACT_FORMATS: frozenset[str] = frozenset({"pickle", "json", "arrow", "text", "rds", "jls"})


class Artifact(StructBaseStrict, frozen=True):
    """Serialized output of a derivation.

    ``format`` is a codec name from ``ARTIFACT_FORMATS`` or the identifier of
    the custom serializer hook that produced the payload.
    """

    payload: bytes
    language: str
    format: str
    digest: str

    @classmethod
    def from_payload(cls, payload: bytes, *, language: str, fmt: str) -> Artifact:
        """Return an artifact with its payload digest computed.

        Returns
        -------
        Artifact
            Artifact value.
        """
        return cls(
            payload=payload,
            language=language,
            format=fmt,
            digest=hash_sha256_hex(payload),
        )

    @property
    def size(self) -> int:
        """Return the payload size in bytes.

        Returns
        -------
        int
            Payload size.
        """
        return len(self.payload)

    def ref(self, fingerprint: str, *, location: str) -> ArtifactRef:
        """Return a reference to this artifact stored under ``fingerprint``.

        Returns
        -------
        ArtifactRef
            Artifact reference.
        """
        return ArtifactRef(
            fingerprint=fingerprint,
            location=location,
            language=self.language,
            format=self.format,
            size=self.size,
            digest=self.digest,
        )


class ArtifactRef(StructBaseStrict, frozen=True):
    """Pointer to a stored artifact; nodes and log entries only hold these."""

    fingerprint: str
    location: str
    language: str
    format: str
    size: int
    digest: str


__all__ = ["ARTIFACT_FORMATS", "Artifact", "ArtifactRef"]
