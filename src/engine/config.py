"""Engine configuration loading.

Settings resolve in three layers, later layers winning:

1. ``polypipe.toml`` or ``[tool.polypipe]`` in ``pyproject.toml``, found in
   the current directory or its parents (``polypipe.toml`` takes precedence);
2. ``POLYPIPE_*`` environment variables;
3. explicit overrides, usually CLI flags.
"""

from __future__ import annotations

import logging
import shlex
from collections.abc import Mapping
from enum import StrEnum
from pathlib import Path
from typing import cast

import msgspec

from core_types import JsonValue
from serde_msgspec import StructBaseStrict, validation_error_payload
from utils.env_utils import env_int, env_name, env_value

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "polypipe.toml"
PYPROJECT_FILENAME = "pyproject.toml"
TOOL_SECTION = "polypipe"


class ConfigSource(StrEnum):
    """Layer a configuration value came from."""

    DEFAULT = "default"
    CONFIG_FILE = "config_file"
    ENV = "env"
    CLI = "cli"


class EngineConfig(StructBaseStrict, frozen=True):
    """Resolved engine settings."""

    store_dir: str | None = None
    max_workers: int | None = None
    r_command: str | None = None
    julia_command: str | None = None
    timeout: float | None = None
    log_level: str = "INFO"
    plan_dir: str | None = None

    def __post_init__(self) -> None:
        if self.max_workers is not None and self.max_workers < 1:
            msg = "max_workers must be at least 1."
            raise ValueError(msg)
        if self.timeout is not None and self.timeout <= 0:
            msg = "timeout must be positive."
            raise ValueError(msg)

    def store_path(self) -> Path:
        """Return the directory holding the store and build log.

        Returns
        -------
        pathlib.Path
            ``store_dir`` expanded, else ``~/.cache/polypipe``.
        """
        if self.store_dir:
            return Path(self.store_dir).expanduser()
        return Path.home() / ".cache" / "polypipe"

    def plan_path(self) -> Path:
        """Return the directory plan manifests are written to.

        Returns
        -------
        pathlib.Path
            ``plan_dir`` expanded, else ``<store_dir>/plans``.
        """
        if self.plan_dir:
            return Path(self.plan_dir).expanduser()
        return self.store_path() / "plans"

    def r_argv(self) -> tuple[str, ...] | None:
        """Return the R command split into argv, or None for the default.

        Returns
        -------
        tuple[str, ...] | None
            Command argv.
        """
        return tuple(shlex.split(self.r_command)) if self.r_command else None

    def julia_argv(self) -> tuple[str, ...] | None:
        """Return the Julia command split into argv, or None for the default.

        Returns
        -------
        tuple[str, ...] | None
            Command argv.
        """
        return tuple(shlex.split(self.julia_command)) if self.julia_command else None


class ResolvedConfig(StructBaseStrict, frozen=True):
    """Engine config plus the layer each setting came from."""

    config: EngineConfig
    sources: dict[str, ConfigSource]
    location: str | None = None


_FIELDS: tuple[str, ...] = EngineConfig.__struct_fields__


def load_engine_config(
    config_file: str | Path | None = None,
    *,
    overrides: Mapping[str, object] | None = None,
    start: Path | None = None,
) -> EngineConfig:
    """Load the effective engine configuration.

    Returns
    -------
    EngineConfig
        Merged configuration.
    """
    return resolve_engine_config(config_file, overrides=overrides, start=start).config


def resolve_engine_config(
    config_file: str | Path | None = None,
    *,
    overrides: Mapping[str, object] | None = None,
    start: Path | None = None,
) -> ResolvedConfig:
    """Load the effective engine configuration with per-key sources.

    Parameters
    ----------
    config_file
        Explicit ``polypipe.toml`` or ``pyproject.toml``; skips discovery.
    overrides
        Highest-priority values; ``None`` entries are ignored.
    start
        Directory discovery starts from, defaulting to the cwd.

    Returns
    -------
    ResolvedConfig
        Merged configuration and value sources.

    Raises
    ------
    ValueError
        Raised when a config file is missing or fails validation.
    """
    values: dict[str, object] = {}
    sources: dict[str, ConfigSource] = dict.fromkeys(_FIELDS, ConfigSource.DEFAULT)
    raw, location = _file_payload(config_file, start=start)
    for key, value in raw.items():
        values[key] = value
        sources[key] = ConfigSource.CONFIG_FILE
    for key, value in _env_payload().items():
        values[key] = value
        sources[key] = ConfigSource.ENV
    for key, value in (overrides or {}).items():
        if value is None:
            continue
        values[key] = value
        sources[key] = ConfigSource.CLI
    config = _decode_config(values, location=location or "<environment>")
    return ResolvedConfig(config=config, sources=sources, location=location)


def _file_payload(
    config_file: str | Path | None,
    *,
    start: Path | None,
) -> tuple[dict[str, JsonValue], str | None]:
    if config_file is not None:
        path = Path(config_file)
        if not path.exists():
            msg = f"Config file {path} does not exist."
            raise ValueError(msg)
        raw = _read_toml(path)
        if path.name == PYPROJECT_FILENAME:
            nested = _extract_tool_config(raw)
            if nested is None:
                msg = f"Config validation failed for {path}: missing [tool.{TOOL_SECTION}]."
                raise ValueError(msg)
            return nested, f"{path}:tool.{TOOL_SECTION}"
        return raw, str(path)
    polypipe_path = _find_in_parents(CONFIG_FILENAME, start=start)
    if polypipe_path is not None:
        return _read_toml(polypipe_path), str(polypipe_path)
    pyproject_path = _find_in_parents(PYPROJECT_FILENAME, start=start)
    if pyproject_path is not None:
        nested = _extract_tool_config(_read_toml(pyproject_path))
        if nested is not None:
            return nested, f"{pyproject_path}:tool.{TOOL_SECTION}"
    return {}, None


def _env_payload() -> dict[str, object]:
    payload: dict[str, object] = {}
    for key in ("store_dir", "r_command", "julia_command", "log_level", "plan_dir"):
        value = env_value(env_name(key))
        if value is not None:
            payload[key] = value
    workers = env_int(env_name("max_workers"))
    if workers is not None:
        payload["max_workers"] = workers
    timeout = env_value(env_name("timeout"))
    if timeout is not None:
        try:
            payload["timeout"] = float(timeout)
        except ValueError:
            logger.warning("Invalid float for %s: %r", env_name("timeout"), timeout)
    return payload


def _find_in_parents(filename: str, *, start: Path | None) -> Path | None:
    path = (start or Path.cwd()).resolve()
    while True:
        candidate = path / filename
        if candidate.exists():
            return candidate
        if path.parent == path:
            return None
        path = path.parent


def _read_toml(path: Path) -> dict[str, JsonValue]:
    try:
        payload = msgspec.toml.decode(path.read_text(encoding="utf-8"), type=object)
    except msgspec.DecodeError as exc:
        msg = f"Invalid TOML in {path}: {exc}"
        raise ValueError(msg) from exc
    if not isinstance(payload, dict):
        msg = f"Expected TOML mapping in {path}, got {type(payload).__name__}."
        raise TypeError(msg)
    return cast("dict[str, JsonValue]", payload)


def _extract_tool_config(raw: Mapping[str, JsonValue]) -> dict[str, JsonValue] | None:
    tool_section = raw.get("tool")
    if not isinstance(tool_section, dict):
        return None
    nested = tool_section.get(TOOL_SECTION)
    if not isinstance(nested, dict):
        return None
    return cast("dict[str, JsonValue]", nested)


def _decode_config(values: Mapping[str, object], *, location: str) -> EngineConfig:
    try:
        return msgspec.convert(dict(values), type=EngineConfig, strict=False)
    except msgspec.ValidationError as exc:
        details = validation_error_payload(exc)
        msg = f"Config validation failed for {location}: {details}"
        raise ValueError(msg) from exc


__all__ = [
    "CONFIG_FILENAME",
    "ConfigSource",
    "EngineConfig",
    "ResolvedConfig",
    "load_engine_config",
    "resolve_engine_config",
]
