"""Injected collaborators shared by engine operations."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from buildlog.log import BuildLog, Clock, DiskBuildLog, InMemoryBuildLog, utc_now
from cache.diskcache_factory import diskcache_profile_for_root
from engine.config import EngineConfig
from runtimes.registry import (
    ConverterRegistry,
    RuntimeRegistry,
    default_converters,
    default_runtimes,
)
from store.disk import DiskCacheArtifactStore
from store.memory import InMemoryArtifactStore
from store.protocol import ArtifactStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineContext:
    """Store, build log, runtimes, converters and clock used by a build.

    Nothing in the engine reaches for global state; tests swap any of these
    collaborators by constructing the context directly.
    """

    store: ArtifactStore
    log: BuildLog
    runtimes: RuntimeRegistry = field(default_factory=default_runtimes)
    converters: ConverterRegistry = field(default_factory=default_converters)
    clock: Clock = utc_now
    config: EngineConfig = field(default_factory=EngineConfig)

    @classmethod
    def in_memory(
        cls,
        *,
        runtimes: RuntimeRegistry | None = None,
        converters: ConverterRegistry | None = None,
        clock: Clock | None = None,
        config: EngineConfig | None = None,
    ) -> EngineContext:
        """Return a context whose store and log live in process memory.

        Returns
        -------
        EngineContext
            Ephemeral context.
        """
        resolved_clock = clock or utc_now
        return cls(
            store=InMemoryArtifactStore(),
            log=InMemoryBuildLog(clock=resolved_clock),
            runtimes=runtimes or default_runtimes(),
            converters=converters or default_converters(),
            clock=resolved_clock,
            config=config or EngineConfig(),
        )

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        *,
        runtimes: RuntimeRegistry | None = None,
        converters: ConverterRegistry | None = None,
        clock: Clock | None = None,
    ) -> EngineContext:
        """Return a DiskCache-backed context rooted at ``config.store_dir``.

        Returns
        -------
        EngineContext
            Persistent context.
        """
        resolved_clock = clock or utc_now
        profile = diskcache_profile_for_root(config.store_path())
        logger.debug("Opening pipeline state under %s", profile.root)
        if runtimes is None:
            runtimes = default_runtimes(
                r_command=config.r_argv(),
                julia_command=config.julia_argv(),
                timeout_s=config.timeout,
            )
        return cls(
            store=DiskCacheArtifactStore(profile=profile),
            log=DiskBuildLog(profile=profile, clock=resolved_clock),
            runtimes=runtimes,
            converters=converters or default_converters(),
            clock=resolved_clock,
            config=config,
        )


__all__ = ["EngineContext"]
