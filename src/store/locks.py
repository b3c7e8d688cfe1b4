"""Per-fingerprint thread locks shared by the artifact stores."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field


@dataclass
class _LockEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class FingerprintLocks:
    """Thread locks keyed by fingerprint.

    An entry lives only while some thread holds or waits for it, so the table
    stays bounded by the number of builds in flight.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[str, _LockEntry] = {}

    @contextmanager
    def hold(self, fingerprint: str) -> Iterator[None]:
        """Hold the lock for ``fingerprint`` for the duration of the block.

        Yields
        ------
        None
            Control while the lock is held.
        """
        with self._guard:
            entry = self._entries.get(fingerprint)
            if entry is None:
                entry = _LockEntry()
                self._entries[fingerprint] = entry
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._entries[fingerprint]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


__all__ = ["FingerprintLocks"]
