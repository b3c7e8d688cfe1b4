"""Append-only build history with in-memory and DiskCache backends."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

from diskcache import Index

from buildlog.entries import BuildLogEntry, BuildStatus, NodeRecord
from cache.diskcache_factory import DiskCacheProfile, build_index, diskcache_profile_for_root
from core.errors import AmbiguousSelectorError, NotFoundError
from serde_msgspec import dumps_msgpack, loads_msgpack
from utils.uuid_factory import build_log_id

logger = logging.getLogger(__name__)

type Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current UTC time.

    Returns
    -------
    datetime
        Timezone-aware current time.
    """
    return datetime.now(tz=UTC)


@runtime_checkable
class BuildLog(Protocol):
    """Queryable, append-only build history."""

    def record(
        self,
        nodes: Sequence[NodeRecord],
        *,
        status: BuildStatus,
        partial: bool = False,
        root: str | None = None,
    ) -> BuildLogEntry:
        """Append an entry for a finished build and return it."""
        ...

    def list(self) -> LogListing:
        """Return entries newest first."""
        ...

    def get(self, log_id: str) -> BuildLogEntry | None:
        """Return an entry by exact id."""
        ...

    def resolve(self, selector: str | None = None) -> BuildLogEntry:
        """Return the entry matching a selector (default: most recent)."""
        ...

    def lookup(self, name: str, selector: str | None = None) -> NodeRecord:
        """Return the record of a node within a selected entry."""
        ...

    def latest(self, name: str) -> NodeRecord:
        """Return the most recent record of a node that holds an artifact."""
        ...

    def entries(self) -> tuple[BuildLogEntry, ...]:
        """Return every entry, oldest first."""
        ...


class LogListing:
    """Lazy, restartable, newest-first view over a build log.

    Every iteration starts from the newest entry present at that moment, so
    the listing can be consumed more than once.
    """

    def __init__(self, log: BuildLogBase) -> None:
        self._log = log

    def __iter__(self) -> Iterator[BuildLogEntry]:
        for log_id in self._log.iter_ids(newest_first=True):
            entry = self._log.get(log_id)
            if entry is not None:
                yield entry

    def __len__(self) -> int:
        return self._log.count()

    def ids(self) -> tuple[str, ...]:
        """Return log ids newest first.

        Returns
        -------
        tuple[str, ...]
            Log ids.
        """
        return self._log.ordered_ids(newest_first=True)


class BuildLogBase:
    """Selector and lookup logic shared by build-log backends.

    Subclasses provide ``iter_ids``, ``newest_id``, ``count``, ``get`` and
    ``_append``. Exact ids and the default selector resolve without walking
    the history; only substring selectors scan ids.
    """

    def __init__(self, *, clock: Clock | None = None) -> None:
        self._clock: Clock = clock or utc_now

    def iter_ids(self, *, newest_first: bool = False) -> Iterator[str]:
        raise NotImplementedError

    def newest_id(self) -> str | None:
        raise NotImplementedError

    def count(self) -> int:
        raise NotImplementedError

    def ordered_ids(self, *, newest_first: bool = False) -> tuple[str, ...]:
        """Return every log id.

        Returns
        -------
        tuple[str, ...]
            Log ids in insertion order, or newest first.
        """
        return tuple(self.iter_ids(newest_first=newest_first))

    def get(self, log_id: str) -> BuildLogEntry | None:
        raise NotImplementedError

    def _append(self, entry: BuildLogEntry) -> bool:
        raise NotImplementedError

    def record(
        self,
        nodes: Sequence[NodeRecord],
        *,
        status: BuildStatus,
        partial: bool = False,
        root: str | None = None,
    ) -> BuildLogEntry:
        """Append an entry stamped with the injected clock.

        Returns
        -------
        BuildLogEntry
            Recorded entry.
        """
        timestamp = self._clock()
        while True:
            entry = BuildLogEntry(
                log_id=build_log_id(timestamp),
                timestamp=timestamp,
                status=status,
                nodes=tuple(nodes),
                partial=partial,
                root=root,
            )
            if self._append(entry):
                break
        logger.info("Recorded build log %s (%s)", entry.log_id, entry.status)
        return entry

    def list(self) -> LogListing:
        """Return a lazy newest-first listing.

        Returns
        -------
        LogListing
            Restartable listing.
        """
        return LogListing(self)

    def entries(self) -> tuple[BuildLogEntry, ...]:
        """Return every entry, oldest first.

        Returns
        -------
        tuple[BuildLogEntry, ...]
            Entries in insertion order.
        """
        resolved = (self.get(log_id) for log_id in self.iter_ids())
        return tuple(entry for entry in resolved if entry is not None)

    def resolve(self, selector: str | None = None) -> BuildLogEntry:
        """Return the entry matching a selector.

        ``None`` selects the most recent entry. An exact id wins; otherwise
        the selector must be a substring of exactly one id, such as a date
        (``20250815``) or the random suffix.

        Returns
        -------
        BuildLogEntry
            Selected entry.

        Raises
        ------
        NotFoundError
            Raised when the log is empty or nothing matches.
        AmbiguousSelectorError
            Raised when several ids match.
        """
        if selector is None or not selector.strip():
            newest = self.newest_id()
            if newest is None:
                msg = "The build log is empty."
                raise NotFoundError(msg)
            chosen = newest
        else:
            exact = self.get(selector)
            if exact is not None:
                return exact
            matches = [log_id for log_id in self.iter_ids(newest_first=True) if selector in log_id]
            if not matches:
                msg = f"No build log matches selector {selector!r}."
                raise NotFoundError(msg)
            if len(matches) > 1:
                raise AmbiguousSelectorError(selector, matches)
            chosen = matches[0]
        entry = self.get(chosen)
        if entry is None:
            msg = f"Build log {chosen} disappeared while resolving {selector!r}."
            raise NotFoundError(msg)
        return entry

    def lookup(self, name: str, selector: str | None = None) -> NodeRecord:
        """Return the record of a node within a selected entry.

        Returns
        -------
        NodeRecord
            Node record.

        Raises
        ------
        NotFoundError
            Raised when the entry has no record for ``name``.
        """
        entry = self.resolve(selector)
        record = entry.node(name)
        if record is None:
            msg = f"Derivation {name!r} is not part of build log {entry.log_id}."
            raise NotFoundError(msg, node=name)
        return record

    def latest(self, name: str) -> NodeRecord:
        """Return the newest record of ``name`` that references an artifact.

        Returns
        -------
        NodeRecord
            Node record.

        Raises
        ------
        NotFoundError
            Raised when no entry holds an artifact for ``name``.
        """
        for entry in self.list():
            record = entry.node(name)
            if record is not None and record.artifact is not None:
                return record
        msg = f"No build log holds an artifact for derivation {name!r}."
        raise NotFoundError(msg, node=name)


class InMemoryBuildLog(BuildLogBase):
    """Process-local build log."""

    def __init__(self, *, clock: Clock | None = None) -> None:
        super().__init__(clock=clock)
        self._entries: dict[str, BuildLogEntry] = {}
        self._lock = threading.Lock()

    def iter_ids(self, *, newest_first: bool = False) -> Iterator[str]:
        """Yield log ids from a snapshot taken at call time.

        Yields
        ------
        str
            Log id.
        """
        with self._lock:
            ids = tuple(self._entries)
        yield from (reversed(ids) if newest_first else ids)

    def newest_id(self) -> str | None:
        """Return the most recently recorded id.

        Returns
        -------
        str | None
            Log id, or None when the log is empty.
        """
        with self._lock:
            return next(reversed(self._entries), None)

    def count(self) -> int:
        """Return the number of entries.

        Returns
        -------
        int
            Entry count.
        """
        with self._lock:
            return len(self._entries)

    def get(self, log_id: str) -> BuildLogEntry | None:
        """Return an entry by exact id.

        Returns
        -------
        BuildLogEntry | None
            Entry, or None.
        """
        with self._lock:
            return self._entries.get(log_id)

    def _append(self, entry: BuildLogEntry) -> bool:
        with self._lock:
            if entry.log_id in self._entries:
                return False
            self._entries[entry.log_id] = entry
            return True


class DiskBuildLog(BuildLogBase):
    """Build log persisted in an insertion-ordered DiskCache ``Index``."""

    def __init__(
        self,
        root: Path | None = None,
        *,
        profile: DiskCacheProfile | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(clock=clock)
        if profile is None:
            profile = diskcache_profile_for_root(root) if root else DiskCacheProfile()
        self.profile = profile
        self._index: Index = build_index(profile, kind="buildlog")

    @property
    def directory(self) -> Path:
        """Return the index directory.

        Returns
        -------
        pathlib.Path
            DiskCache directory.
        """
        return Path(self._index.directory)

    def iter_ids(self, *, newest_first: bool = False) -> Iterator[str]:
        """Walk the index keys lazily.

        Yields
        ------
        str
            Log id.
        """
        keys = reversed(self._index) if newest_first else iter(self._index)
        for key in keys:
            yield str(key)

    def newest_id(self) -> str | None:
        """Return the last key of the index without walking the others.

        Returns
        -------
        str | None
            Log id, or None when the log is empty.
        """
        key = next(reversed(self._index), None)
        return None if key is None else str(key)

    def count(self) -> int:
        """Return the number of entries.

        Returns
        -------
        int
            Entry count.
        """
        return len(self._index)

    def get(self, log_id: str) -> BuildLogEntry | None:
        """Return an entry by exact id.

        Returns
        -------
        BuildLogEntry | None
            Entry, or None.
        """
        raw = self._index.get(log_id)
        if raw is None:
            return None
        return loads_msgpack(bytes(raw), target_type=BuildLogEntry)

    def _append(self, entry: BuildLogEntry) -> bool:
        payload = dumps_msgpack(entry)
        stored = self._index.setdefault(entry.log_id, payload)
        return stored == payload


__all__ = [
    "BuildLog",
    "BuildLogBase",
    "Clock",
    "DiskBuildLog",
    "InMemoryBuildLog",
    "LogListing",
    "utc_now",
]
