"""Tests for svcconfig.config -- XDG paths, atomic writes, settings precedence."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from svcconfig.config import (
    DocumentFormat,
    ToolSettings,
    _atomic_write,
    get_config_dir,
    get_data_dir,
    load_project_settings,
    load_user_settings,
    resolve_settings,
    save_user_settings,
    update_user_setting,
    user_settings_path,
)
from svcconfig.diag import DEFAULT_MAX_ERRORS
from svcconfig.exceptions import ConfigError, InvalidUsageError
from svcconfig.exit_codes import EXIT_INVALID_USAGE


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    """Write a dict as JSON to *path*, creating parent dirs."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestXDGPathsLinux:
    """XDG paths on Linux (the default XDG platform)."""

    def test_config_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("svcconfig.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_config_dir()
        assert result == tmp_path / ".config" / "svcconfig"
        assert result.is_dir()

    def test_config_dir_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        custom = tmp_path / "custom_config"
        monkeypatch.setattr("svcconfig.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(custom))

        result = get_config_dir()
        assert result == custom / "svcconfig"
        assert result.is_dir()

    def test_data_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("svcconfig.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_DATA_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_data_dir()
        assert result == tmp_path / ".local" / "share" / "svcconfig"
        assert result.is_dir()


class TestXDGPathsFallback:
    """Fallback paths on non-XDG platforms (macOS, Windows)."""

    def test_config_dir_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("svcconfig.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_config_dir()
        assert result == tmp_path / ".svcconfig"
        assert result.is_dir()

    def test_data_dir_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("svcconfig.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_data_dir()
        assert result == tmp_path / ".svcconfig" / "logs"
        assert result.is_dir()


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_creates_file_with_content(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        _atomic_write(target, "hello world")
        assert target.read_text(encoding="utf-8") == "hello world"

    def test_overwrites_existing_file(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        target.write_text("old content", encoding="utf-8")
        _atomic_write(target, "new content")
        assert target.read_text(encoding="utf-8") == "new content"

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        target = tmp_path / "a" / "b" / "test.txt"
        _atomic_write(target, "deep write")
        assert target.read_text(encoding="utf-8") == "deep write"

    def test_no_temp_files_left_on_success(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        _atomic_write(target, "content")
        assert list(tmp_path.iterdir()) == [target]

    def test_no_temp_files_left_on_error(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        with patch("svcconfig.config.os.fsync", side_effect=OSError("disk error")):
            with pytest.raises(OSError, match="disk error"):
                _atomic_write(target, "will fail")
        files = list(tmp_path.iterdir())
        assert target not in files
        assert [f for f in files if ".tmp" in f.name] == []


# ---------------------------------------------------------------------------
# User and project settings
# ---------------------------------------------------------------------------


class TestUserSettings:
    """Loading and saving the user settings file."""

    def test_load_returns_defaults_when_missing(self, isolated_config: Path) -> None:
        settings = load_user_settings()
        assert settings == ToolSettings()
        assert settings.max_errors == DEFAULT_MAX_ERRORS
        assert settings.output_format == DocumentFormat.JSON

    def test_save_and_load_roundtrip(self, isolated_config: Path) -> None:
        save_user_settings(ToolSettings(experiments=["proto3_config_merging"], max_errors=3))
        loaded = load_user_settings()
        assert loaded.experiments == ["proto3_config_merging"]
        assert loaded.max_errors == 3

    def test_saved_file_is_valid_json(self, isolated_config: Path) -> None:
        save_user_settings(ToolSettings(namespace="petstore"))
        data = json.loads(user_settings_path().read_text(encoding="utf-8"))
        assert data["namespace"] == "petstore"

    def test_load_invalid_json_raises_config_error(self, isolated_config: Path) -> None:
        user_settings_path().write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid user settings"):
            load_user_settings()

    def test_load_invalid_schema_raises_config_error(self, isolated_config: Path) -> None:
        _write_json(user_settings_path(), {"max_errors": 0})
        with pytest.raises(ConfigError):
            load_user_settings()

    def test_bad_warning_filter_is_rejected(self, isolated_config: Path) -> None:
        _write_json(user_settings_path(), {"warning_filter": "("})
        with pytest.raises(ConfigError):
            load_user_settings()


class TestUpdateUserSetting:
    """Coercing ``config set`` values into validated settings."""

    def test_values_are_coerced_by_field_type(self, isolated_config: Path) -> None:
        assert update_user_setting("max_errors", "7").max_errors == 7
        assert update_user_setting("suppress_warnings", "yes").suppress_warnings is True
        assert update_user_setting("experiments", "a, ,b").experiments == ["a", "b"]

    def test_result_is_not_saved(self, isolated_config: Path) -> None:
        update_user_setting("namespace", "pets.v1")
        assert load_user_settings().namespace is None

    @pytest.mark.parametrize(
        "key, value, message",
        [
            ("nope", "1", "Unknown config key: nope"),
            ("max_errors", "many", "Expected integer for max_errors"),
            ("max_errors", "0", "Validation error"),
        ],
    )
    def test_invalid_usage(
        self, isolated_config: Path, key: str, value: str, message: str
    ) -> None:
        with pytest.raises(InvalidUsageError, match=message) as excinfo:
            update_user_setting(key, value)
        assert excinfo.value.exit_code == EXIT_INVALID_USAGE


class TestProjectSettings:
    def test_load_returns_none_when_missing(self, isolated_config: Path) -> None:
        assert load_project_settings() is None

    def test_load_valid_project_settings(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "svcconfig.json", {"namespace": "shop"})
        assert load_project_settings() == {"namespace": "shop"}

    def test_non_object_raises_config_error(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "svcconfig.json", ["a"])
        with pytest.raises(ConfigError, match="expected a JSON object"):
            load_project_settings()


# ---------------------------------------------------------------------------
# Precedence resolution
# ---------------------------------------------------------------------------


class TestResolveSettings:
    """Test the full precedence chain: CLI > env > project > user > defaults."""

    def test_defaults(self, isolated_config: Path) -> None:
        assert resolve_settings() == ToolSettings()

    def test_project_overrides_user(self, isolated_config: Path) -> None:
        save_user_settings(ToolSettings(namespace="user_ns", max_errors=7))
        _write_json(isolated_config / "svcconfig.json", {"namespace": "project_ns"})

        settings = resolve_settings()
        assert settings.namespace == "project_ns"
        assert settings.max_errors == 7

    def test_env_overrides_project(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _write_json(isolated_config / "svcconfig.json", {"namespace": "project_ns"})
        monkeypatch.setenv("SVCCONFIG_NAMESPACE", "env_ns")
        monkeypatch.setenv("SVCCONFIG_MAX_WARNINGS", "12")

        settings = resolve_settings()
        assert settings.namespace == "env_ns"
        assert settings.max_warnings == 12

    def test_env_experiments_are_comma_separated(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("SVCCONFIG_EXPERIMENTS", "proto3_config_merging, other ,")
        assert resolve_settings().experiments == ["proto3_config_merging", "other"]

    def test_cli_overrides_env(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("SVCCONFIG_NAMESPACE", "env_ns")
        settings = resolve_settings({"namespace": "cli_ns", "output_format": None})
        assert settings.namespace == "cli_ns"
        assert settings.output_format == DocumentFormat.JSON

    def test_cli_format(self, isolated_config: Path) -> None:
        settings = resolve_settings({"output_format": DocumentFormat.YAML})
        assert settings.output_format == DocumentFormat.YAML

    def test_invalid_env_value_raises_config_error(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("SVCCONFIG_MAX_ERRORS", "lots")
        with pytest.raises(ConfigError, match="Invalid settings"):
            resolve_settings()
