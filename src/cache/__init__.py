"""Cache utilities."""

from cache.diskcache_factory import (
    DiskCacheKind,
    DiskCacheProfile,
    DiskCacheSettings,
    build_index,
    cache_for_kind,
    close_pooled_caches,
    diskcache_profile_for_root,
)

__all__ = [
    "DiskCacheKind",
    "DiskCacheProfile",
    "DiskCacheSettings",
    "build_index",
    "cache_for_kind",
    "close_pooled_caches",
    "diskcache_profile_for_root",
]
