"""Time-ordered identifier helpers.

Build-log identifiers pair a UTC timestamp with the random tail of a UUIDv7 so
that identifiers sort chronologically to the second and stay unique.
"""

from __future__ import annotations

import threading
import uuid
from datetime import UTC, datetime
from typing import Final

import uuid6

UUID7_HEX_LENGTH: Final[int] = 32
LOG_ID_TIME_FORMAT: Final[str] = "%Y%m%dT%H%M%SZ"
_UUID_LOCK: Final[threading.Lock] = threading.Lock()


def uuid7() -> uuid.UUID:
    """Return a time-ordered UUIDv7 (thread-safe, monotone).

    Returns
    -------
    uuid.UUID
        Fresh UUIDv7 value.
    """
    with _UUID_LOCK:
        return uuid6.uuid7()


def uuid7_hex() -> str:
    """Return a UUIDv7 as a 32-character hex string.

    Returns
    -------
    str
        Hex-encoded UUIDv7 (32 characters).
    """
    return uuid7().hex


def uuid7_suffix(length: int = 12) -> str:
    """Return a short suffix from the UUIDv7 random tail.

    Returns
    -------
    str
        Suffix string from the UUIDv7 value.

    Raises
    ------
    ValueError
        Raised when ``length`` is outside ``1..32``.
    """
    if length <= 0:
        msg = "length must be positive."
        raise ValueError(msg)
    if length > UUID7_HEX_LENGTH:
        msg = "length must not exceed 32."
        raise ValueError(msg)
    return uuid7().hex[-length:]


def build_log_id(timestamp: datetime) -> str:
    """Return a sortable build-log identifier for a timestamp.

    Returns
    -------
    str
        Identifier such as ``20250815T113000Z-1a2b3c4d5e6f``.
    """
    stamp = timestamp.astimezone(UTC).strftime(LOG_ID_TIME_FORMAT)
    return f"{stamp}-{uuid7_suffix()}"


__all__ = [
    "LOG_ID_TIME_FORMAT",
    "UUID7_HEX_LENGTH",
    "build_log_id",
    "uuid7",
    "uuid7_hex",
    "uuid7_suffix",
]
