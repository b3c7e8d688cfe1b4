"""CompositeFingerprint stability tests."""

from __future__ import annotations

from core.fingerprinting import CompositeFingerprint


def test_composite_fingerprint_stable_order_and_key() -> None:
    """Ensure component ordering is stable regardless of input order."""
    first = CompositeFingerprint.from_components(1, b="2", a="1")
    second = CompositeFingerprint.from_components(1, a="1", b="2")

    assert first.components == second.components
    assert first.digest() == second.digest()
    assert first.as_cache_key(prefix="node") == second.as_cache_key(prefix="node")
    assert first.as_cache_key(prefix="node").startswith("node")


def test_composite_fingerprint_mapping_and_extend() -> None:
    """Ensure extension adds components and changes the digest."""
    fp = CompositeFingerprint.from_components(1, alpha="x")
    extended = fp.extend(beta="y")

    assert fp.mapping() == {"alpha": "x"}
    assert extended.mapping() == {"alpha": "x", "beta": "y"}
    assert extended.version == 1
    assert extended.digest() != fp.digest()


def test_composite_fingerprint_version_changes_digest() -> None:
    """Ensure the fingerprint version participates in the digest."""
    assert (
        CompositeFingerprint.from_components(1, alpha="x").digest()
        != CompositeFingerprint.from_components(2, alpha="x").digest()
    )
