"""Engine configuration layering tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from engine.config import ConfigSource, EngineConfig, load_engine_config, resolve_engine_config


def test_defaults_without_files_or_env(tmp_path: Path) -> None:
    """Ensure defaults apply when nothing configures the engine."""
    resolved = resolve_engine_config(start=tmp_path)

    assert resolved.config == EngineConfig()
    assert resolved.location is None
    assert set(resolved.sources.values()) == {ConfigSource.DEFAULT}
    assert resolved.config.store_path() == Path.home() / ".cache" / "polypipe"


def test_polypipe_toml_beats_pyproject(tmp_path: Path) -> None:
    """Ensure polypipe.toml takes precedence over [tool.polypipe]."""
    (tmp_path / "pyproject.toml").write_text(
        "[tool.polypipe]\nmax_workers = 2\n", encoding="utf-8"
    )
    (tmp_path / "polypipe.toml").write_text("max_workers = 6\n", encoding="utf-8")

    resolved = resolve_engine_config(start=tmp_path)

    assert resolved.config.max_workers == 6
    assert resolved.location == str((tmp_path / "polypipe.toml").resolve())
    assert resolved.sources["max_workers"] == ConfigSource.CONFIG_FILE


def test_pyproject_section_is_discovered_from_subdirectory(tmp_path: Path) -> None:
    """Ensure discovery walks up to the nearest pyproject.toml."""
    (tmp_path / "pyproject.toml").write_text(
        '[tool.polypipe]\nr_command = "Rscript --vanilla"\n', encoding="utf-8"
    )
    nested = tmp_path / "analysis" / "stage"
    nested.mkdir(parents=True)

    resolved = resolve_engine_config(start=nested)

    assert resolved.config.r_argv() == ("Rscript", "--vanilla")
    assert resolved.location is not None
    assert resolved.location.endswith("pyproject.toml:tool.polypipe")


def test_env_overrides_file_and_cli_overrides_env(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Ensure environment variables beat files and overrides beat both."""
    (tmp_path / "polypipe.toml").write_text(
        'max_workers = 2\nlog_level = "DEBUG"\ntimeout = 30.0\n', encoding="utf-8"
    )
    monkeypatch.setenv("POLYPIPE_MAX_WORKERS", "3")
    monkeypatch.setenv("POLYPIPE_STORE_DIR", str(tmp_path / "env-store"))

    resolved = resolve_engine_config(
        start=tmp_path,
        overrides={"store_dir": str(tmp_path / "cli-store"), "julia_command": None},
    )

    assert resolved.config.max_workers == 3
    assert resolved.config.log_level == "DEBUG"
    assert resolved.config.timeout == 30.0
    assert resolved.config.store_path() == tmp_path / "cli-store"
    assert resolved.sources["max_workers"] == ConfigSource.ENV
    assert resolved.sources["store_dir"] == ConfigSource.CLI
    assert resolved.sources["log_level"] == ConfigSource.CONFIG_FILE
    assert resolved.sources["julia_command"] == ConfigSource.DEFAULT


def test_invalid_env_integer_is_ignored(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Ensure unparsable numeric variables fall back to lower layers."""
    monkeypatch.setenv("POLYPIPE_MAX_WORKERS", "many")

    assert load_engine_config(start=tmp_path).max_workers is None


def test_explicit_config_file(tmp_path: Path) -> None:
    """Ensure explicit files skip discovery and honour pyproject sections."""
    explicit = tmp_path / "custom.toml"
    explicit.write_text('plan_dir = "plans-out"\n', encoding="utf-8")
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text('[project]\nname = "x"\n', encoding="utf-8")

    assert load_engine_config(explicit).plan_path() == Path("plans-out")
    with pytest.raises(ValueError, match=r"missing \[tool.polypipe\]"):
        load_engine_config(pyproject)
    with pytest.raises(ValueError, match="does not exist"):
        load_engine_config(tmp_path / "absent.toml")


@pytest.mark.parametrize(
    "content",
    [
        "max_workers = 0\n",
        "timeout = -1.0\n",
        'unknown_key = "x"\n',
        'max_workers = "lots"\n',
    ],
)
def test_invalid_config_values(tmp_path: Path, content: str) -> None:
    """Ensure invalid settings raise value errors."""
    (tmp_path / "polypipe.toml").write_text(content, encoding="utf-8")

    with pytest.raises(ValueError):
        load_engine_config(start=tmp_path)


def test_invalid_toml_is_reported(tmp_path: Path) -> None:
    """Ensure malformed TOML raises a value error."""
    (tmp_path / "polypipe.toml").write_text("max_workers = = 2\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid TOML"):
        load_engine_config(start=tmp_path)


def test_derived_paths(tmp_path: Path) -> None:
    """Ensure plan and command paths derive from the store settings."""
    config = EngineConfig(store_dir=str(tmp_path), julia_command="julia --threads=4")

    assert config.plan_path() == tmp_path / "plans"
    assert config.julia_argv() == ("julia", "--threads=4")
    assert EngineConfig().r_argv() is None
