"""Content fingerprints for pipeline nodes."""

from __future__ import annotations

from fingerprints.engine import (
    FINGERPRINT_VERSION,
    FingerprintEngine,
    FingerprintIndex,
    NodeFingerprint,
    fingerprint_graph,
)

__all__ = [
    "FINGERPRINT_VERSION",
    "FingerprintEngine",
    "FingerprintIndex",
    "NodeFingerprint",
    "fingerprint_graph",
]
