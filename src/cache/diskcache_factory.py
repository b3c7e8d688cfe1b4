"""DiskCache configuration and factory helpers."""

from __future__ import annotations

import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Literal, TypedDict

import msgspec
from diskcache import Cache, Index

from core.config_base import config_fingerprint
from serde_msgspec import StructBaseStrict
from utils.env_utils import env_path

type DiskCacheKind = Literal["store", "buildlog"]


def _default_cache_root() -> Path:
    """Return the default root directory for durable pipeline state.

    Returns
    -------
    pathlib.Path
        ``$POLYPIPE_STORE_DIR`` when set, else ``~/.cache/polypipe``.
    """
    root = env_path("POLYPIPE_STORE_DIR")
    if root is not None:
        return root
    return Path.home() / ".cache" / "polypipe"


class DiskCacheSettings(StructBaseStrict, frozen=True):
    """Settings shared by DiskCache instances.

    Eviction defaults to ``none``: store entries may only disappear through an
    explicit garbage collection.
    """

    size_limit_bytes: int = 2**40
    eviction_policy: str = "none"
    statistics: bool = True
    timeout_seconds: float = 60.0
    disk_min_file_size: int | None = 32 * 1024
    sqlite_journal_mode: str | None = "wal"

    def fingerprint_payload(self) -> Mapping[str, object]:
        """Return canonical payload for settings fingerprinting.

        Returns
        -------
        Mapping[str, object]
            Payload used for settings fingerprinting.
        """
        return {
            "size_limit_bytes": self.size_limit_bytes,
            "eviction_policy": self.eviction_policy,
            "statistics": self.statistics,
            "timeout_seconds": self.timeout_seconds,
            "disk_min_file_size": self.disk_min_file_size,
            "sqlite_journal_mode": self.sqlite_journal_mode,
        }


class DiskCacheKwargs(TypedDict, total=False):
    eviction_policy: str
    statistics: bool
    disk_min_file_size: int
    sqlite_journal_mode: str


class DiskCacheProfile(StructBaseStrict, frozen=True):
    """DiskCache profile with a root directory and per-kind overrides."""

    root: Path = msgspec.field(default_factory=_default_cache_root)
    base_settings: DiskCacheSettings = msgspec.field(default_factory=DiskCacheSettings)
    overrides: Mapping[DiskCacheKind, DiskCacheSettings] = msgspec.field(default_factory=dict)

    def settings_for(self, kind: DiskCacheKind) -> DiskCacheSettings:
        """Return settings for a cache kind.

        Returns
        -------
        DiskCacheSettings
            Settings for the cache kind.
        """
        override = self.overrides.get(kind)
        return override if override is not None else self.base_settings

    def directory_for(self, kind: DiskCacheKind) -> Path:
        """Return the on-disk directory for a cache kind.

        Returns
        -------
        pathlib.Path
            Directory path.
        """
        return self.root / kind

    def fingerprint(self, kind: DiskCacheKind) -> str:
        """Return a fingerprint for the profile+kind combination.

        Returns
        -------
        str
            Stable profile fingerprint for the cache kind.
        """
        payload = {
            "root": str(self.root),
            "kind": kind,
            "settings": self.settings_for(kind).fingerprint_payload(),
        }
        return config_fingerprint(payload)


def diskcache_profile_for_root(root: Path) -> DiskCacheProfile:
    """Return the default profile rooted at ``root``.

    Returns
    -------
    DiskCacheProfile
        Profile with default settings for every kind.
    """
    return DiskCacheProfile(root=root.expanduser())


_CACHE_POOL: dict[str, Cache] = {}
_INDEX_POOL: dict[str, Index] = {}
_POOL_LOCK = threading.Lock()


def cache_for_kind(profile: DiskCacheProfile, kind: DiskCacheKind) -> Cache:
    """Return a pooled Cache instance for the kind.

    Returns
    -------
    Cache
        Cache instance for the kind.
    """
    fingerprint = profile.fingerprint(kind)
    with _POOL_LOCK:
        cache = _CACHE_POOL.get(fingerprint)
        if cache is not None:
            return cache
        settings = profile.settings_for(kind)
        cache = Cache(
            str(profile.directory_for(kind)),
            size_limit=settings.size_limit_bytes,
            timeout=int(settings.timeout_seconds),
            **_settings_kwargs(settings),
        )
        _CACHE_POOL[fingerprint] = cache
        return cache


def build_index(profile: DiskCacheProfile, *, kind: DiskCacheKind) -> Index:
    """Return a pooled, insertion-ordered DiskCache Index.

    ``Index`` always disables eviction and treats keyword arguments as initial
    items, so only the directory is passed through.

    Returns
    -------
    Index
        Persistent index backed by DiskCache.
    """
    fingerprint = profile.fingerprint(kind)
    with _POOL_LOCK:
        index = _INDEX_POOL.get(fingerprint)
        if index is not None:
            return index
        index = Index(str(profile.directory_for(kind)))
        _INDEX_POOL[fingerprint] = index
        return index


def close_pooled_caches() -> None:
    """Close and forget every pooled cache and index."""
    with _POOL_LOCK:
        for cache in _CACHE_POOL.values():
            cache.close()
        for index in _INDEX_POOL.values():
            index.cache.close()
        _CACHE_POOL.clear()
        _INDEX_POOL.clear()


def _settings_kwargs(settings: DiskCacheSettings) -> DiskCacheKwargs:
    kwargs: DiskCacheKwargs = {
        "eviction_policy": settings.eviction_policy,
        "statistics": settings.statistics,
    }
    if settings.disk_min_file_size is not None:
        kwargs["disk_min_file_size"] = settings.disk_min_file_size
    if settings.sqlite_journal_mode is not None:
        kwargs["sqlite_journal_mode"] = settings.sqlite_journal_mode
    return kwargs


__all__ = [
    "DiskCacheKind",
    "DiskCacheProfile",
    "DiskCacheSettings",
    "build_index",
    "cache_for_kind",
    "close_pooled_caches",
    "diskcache_profile_for_root",
]
