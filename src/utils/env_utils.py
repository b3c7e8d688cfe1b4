"""Environment variable resolution for ``POLYPIPE_*`` settings."""

from __future__ import annotations

import logging
import os
from pathlib import Path

_LOGGER = logging.getLogger(__name__)

ENV_PREFIX = "POLYPIPE_"


def env_name(key: str) -> str:
    """Return the prefixed environment variable name for a config key.

    Returns
    -------
    str
        Upper-cased, ``POLYPIPE_``-prefixed variable name.
    """
    return f"{ENV_PREFIX}{key.upper()}"


def env_value(name: str) -> str | None:
    """Return stripped env var value, or None if empty/not set.

    Returns
    -------
    str | None
        Stripped value or None.
    """
    raw = os.environ.get(name)
    if raw is None:
        return None
    stripped = raw.strip()
    return stripped if stripped else None


def env_int(name: str, *, default: int | None = None) -> int | None:
    """Parse an environment variable as an integer.

    Returns
    -------
    int | None
        Parsed integer or default.
    """
    raw = env_value(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        _LOGGER.warning("Invalid integer for %s: %r", name, raw)
        return default


def env_path(name: str) -> Path | None:
    """Return an environment variable as an expanded path.

    Returns
    -------
    pathlib.Path | None
        Expanded path or None when unset.
    """
    raw = env_value(name)
    return Path(raw).expanduser() if raw else None


__all__ = [
    "ENV_PREFIX",
    "env_int",
    "env_name",
    "env_path",
    "env_value",
]
