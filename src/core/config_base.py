"""Configuration fingerprinting helpers.

Fingerprints of configuration payloads key pooled resources such as DiskCache
instances, so the payload must stay JSON-compatible and include every setting
that changes how the resource behaves.
"""

from __future__ import annotations

from collections.abc import Mapping

from utils.hashing import hash_json_canonical


def config_fingerprint(payload: Mapping[str, object]) -> str:
    """Return a deterministic fingerprint for configuration payloads.

    Returns
    -------
    str
        SHA-256 hexdigest for the payload.
    """
    return hash_json_canonical(payload, str_keys=True)


__all__ = ["config_fingerprint"]
