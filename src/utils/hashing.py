"""Explicit hash utilities with stable serialization semantics."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from serde_msgspec import JSON_ENCODER_SORTED, MSGPACK_ENCODER, to_builtins

if TYPE_CHECKING:
    from pathlib import Path


def hash_sha256_hex(payload: bytes, *, length: int | None = None) -> str:
    """Return SHA-256 hex digest, optionally truncated.

    Parameters
    ----------
    payload
        Raw bytes to hash.
    length
        Optional length of hex digest to return.

    Returns
    -------
    str
        Hex digest string (possibly truncated).
    """
    digest = hashlib.sha256(payload).hexdigest()
    return digest if length is None else digest[:length]


# -----------------------------------------------------------------------------
# Payload hashing
# -----------------------------------------------------------------------------


def hash_msgpack_canonical(payload: object) -> str:
    """Return SHA-256 hexdigest using MSGPACK_ENCODER (deterministic order).

    Parameters
    ----------
    payload
        Payload to encode.

    Returns
    -------
    str
        SHA-256 hexdigest.
    """
    return hash_sha256_hex(MSGPACK_ENCODER.encode(payload))


def hash_json_canonical(payload: object, *, str_keys: bool = False) -> str:
    """Return SHA-256 hexdigest using JSON_ENCODER_SORTED.

    Parameters
    ----------
    payload
        Payload to encode.
    str_keys
        Whether to coerce mapping keys to strings.

    Returns
    -------
    str
        SHA-256 hexdigest.
    """
    buffer = bytearray()
    JSON_ENCODER_SORTED.encode_into(to_builtins(payload, str_keys=str_keys), buffer)
    return hash_sha256_hex(bytes(buffer))


# -----------------------------------------------------------------------------
# Cache key builder
# -----------------------------------------------------------------------------


@dataclass
class CacheKeyBuilder:
    """Builder for deterministic cache keys."""

    prefix: str = ""
    _components: dict[str, object] = field(default_factory=dict)

    def add(self, name: str, value: object) -> CacheKeyBuilder:
        """Add a component to the cache key.

        Returns
        -------
        CacheKeyBuilder
            The updated builder instance.
        """
        self._components[name] = value
        return self

    def build(self) -> str:
        """Return the cache key string.

        Returns
        -------
        str
            Cache key string.
        """
        digest = hash_msgpack_canonical(self._components)
        return f"{self.prefix}:{digest}" if self.prefix else digest


# -----------------------------------------------------------------------------
# File content hashing
# -----------------------------------------------------------------------------


def hash_file_sha256(path: Path, chunk_size: int = 1024 * 1024) -> str:
    """Return SHA-256 hexdigest of file contents (chunked reading).

    Parameters
    ----------
    path
        File path to hash.
    chunk_size
        Read chunk size in bytes.

    Returns
    -------
    str
        SHA-256 hexdigest.
    """
    h = hashlib.sha256()
    with path.open("rb") as handle:
        while chunk := handle.read(chunk_size):
            h.update(chunk)
    return h.hexdigest()


def hash_path_sha256(path: Path) -> str:
    """Return SHA-256 hexdigest of a file, or of every file under a directory.

    Directory digests combine relative paths and file digests in sorted order
    so that renames and content changes both alter the result.

    Returns
    -------
    str
        SHA-256 hexdigest.
    """
    if not path.is_dir():
        return hash_file_sha256(path)
    entries = [
        (candidate.relative_to(path).as_posix(), hash_file_sha256(candidate))
        for candidate in sorted(path.rglob("*"))
        if candidate.is_file()
    ]
    return hash_msgpack_canonical(entries)


__all__ = [
    "CacheKeyBuilder",
    "hash_file_sha256",
    "hash_json_canonical",
    "hash_msgpack_canonical",
    "hash_path_sha256",
    "hash_sha256_hex",
]
