"""Version reporting for the polypipe CLI."""

from __future__ import annotations

import json
import platform
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version

from runtimes.registry import default_runtimes


def get_version() -> str:
    """Get the polypipe package version string.

    Returns
    -------
    str
        Version string, or "0.0.0-dev" if not installed.
    """
    return _package_version("polypipe") or "0.0.0-dev"


def get_version_info() -> dict[str, object]:
    """Get detailed version information.

    Returns
    -------
    dict[str, object]
        Structured version payload.
    """
    return {
        "polypipe": get_version(),
        "python": sys.version.split()[0],
        "platform": platform.platform(),
        "runtimes": default_runtimes().availability(),
        "dependencies": {
            name: _package_version(name)
            for name in ("cyclopts", "diskcache", "msgspec", "pyarrow", "rustworkx")
        },
    }


def version_command() -> int:
    """Show version, interpreter availability and dependency versions.

    Returns
    -------
    int
        Exit status code.
    """
    payload = json.dumps(get_version_info(), indent=2, sort_keys=True)
    sys.stdout.write(payload + "\n")
    return 0


def _package_version(name: str) -> str | None:
    try:
        return pkg_version(name)
    except PackageNotFoundError:
        return None


__all__ = ["get_version", "get_version_info", "version_command"]
