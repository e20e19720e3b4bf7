"""Tool settings with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent settings of svcconfig:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.svcconfig/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **User settings** -- A single :class:`ToolSettings` JSON file in the
  config directory, managed via :func:`load_user_settings` and
  :func:`save_user_settings`.
* **Precedence resolution** -- :func:`resolve_settings` merges CLI flags,
  environment variables, the project file and the user file into the
  effective settings of a run.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import enum
import json
import os
import platform
import re
import tempfile
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from svcconfig.diag import DEFAULT_MAX_ERRORS, DEFAULT_MAX_WARNINGS
from svcconfig.exceptions import ConfigError, InvalidUsageError

_APP_NAME = "svcconfig"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "svcconfig.json"

ENV_PREFIX = "SVCCONFIG_"


class DocumentFormat(str, enum.Enum):
    """Serialization of emitted configuration documents."""

    JSON = "json"
    YAML = "yaml"


class ToolSettings(BaseModel):
    """Effective settings of one svcconfig run.

    Attributes:
        experiments: Names of enabled experiments, e.g.
            ``proto3_config_merging``.
        max_errors: Errors recorded before the run is aborted.
        max_warnings: Warnings recorded before further warnings are dropped.
        suppress_warnings: Drop all warnings.
        warning_filter: Drop warnings whose identifier matches this regex.
        namespace: Proto package of imported types; derived from the API
            title when unset.
        output_format: Serialization of the emitted configuration.
    """

    experiments: list[str] = Field(default_factory=list)
    max_errors: int = Field(default=DEFAULT_MAX_ERRORS, ge=1)
    max_warnings: int = Field(default=DEFAULT_MAX_WARNINGS, ge=1)
    suppress_warnings: bool = False
    warning_filter: Optional[str] = None
    namespace: Optional[str] = None
    output_format: DocumentFormat = DocumentFormat.JSON

    @field_validator("warning_filter")
    @classmethod
    def _check_filter(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            try:
                re.compile(value)
            except re.error as exc:
                raise ValueError(f"invalid regular expression: {exc}") from exc
        return value


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/svcconfig/`` (default ``~/.config/svcconfig/``).
    On macOS/Windows: ``~/.svcconfig/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/svcconfig/`` (default ``~/.local/share/svcconfig/``).
    On macOS/Windows: ``~/.svcconfig/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
    temp file is cleaned up.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Settings files ---


def user_settings_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def _read_json_object(path: Path, what: str) -> Optional[dict[str, Any]]:
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError, ValueError) as exc:
        raise ConfigError(f"Invalid {what} at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid {what} at {path}: expected a JSON object")
    return data


def load_user_settings() -> ToolSettings:
    """Load the user settings file, or defaults when there is none.

    Raises:
        ConfigError: If the file contains invalid JSON or fails validation.
    """
    path = user_settings_path()
    data = _read_json_object(path, "user settings")
    if data is None:
        return ToolSettings()
    try:
        return ToolSettings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid user settings at {path}: {exc}") from exc


def save_user_settings(settings: ToolSettings) -> None:
    """Persist the user settings atomically."""
    data = settings.model_dump(mode="json")
    _atomic_write(user_settings_path(), json.dumps(data, indent=2) + "\n")


def update_user_setting(key: str, value: str) -> ToolSettings:
    """Return the user settings with *key* set from the command-line text *value*.

    The value is coerced to the type of the existing setting: booleans
    accept ``true``, ``1`` or ``yes``, lists take comma-separated items. The
    result is validated but not saved.

    Raises:
        InvalidUsageError: If the key is unknown, the value cannot be
            coerced, or validation fails.
    """
    data = load_user_settings().model_dump(mode="json")
    if key not in ToolSettings.model_fields:
        raise InvalidUsageError(f"Unknown config key: {key}")

    current = data[key]
    coerced: object
    if isinstance(current, bool):
        coerced = value.lower() in ("true", "1", "yes")
    elif isinstance(current, int):
        try:
            coerced = int(value)
        except ValueError:
            raise InvalidUsageError(f"Expected integer for {key}, got: {value}") from None
    elif isinstance(current, list):
        coerced = [item.strip() for item in value.split(",") if item.strip()]
    else:
        coerced = value
    data[key] = coerced

    try:
        return ToolSettings.model_validate(data)
    except ValidationError as exc:
        raise InvalidUsageError(f"Validation error: {exc}") from None


def load_project_settings() -> Optional[dict[str, Any]]:
    """Load project-local settings from ``./svcconfig.json``.

    Returns:
        The parsed JSON object, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    return _read_json_object(Path.cwd() / _PROJECT_CONFIG_FILENAME, "project settings")


def _env_settings() -> dict[str, Any]:
    values: dict[str, Any] = {}
    experiments = os.environ.get(ENV_PREFIX + "EXPERIMENTS")
    if experiments:
        values["experiments"] = [e.strip() for e in experiments.split(",") if e.strip()]
    for key in ("max_errors", "max_warnings", "namespace"):
        value = os.environ.get(ENV_PREFIX + key.upper())
        if value:
            values[key] = value
    return values


# --- Precedence resolution ---


def resolve_settings(cli_overrides: Optional[Mapping[str, Any]] = None) -> ToolSettings:
    """Resolve settings with the full precedence chain.

    Precedence (high to low):
        1. CLI flags (*cli_overrides*; ``None`` values are ignored)
        2. Environment variables (``SVCCONFIG_EXPERIMENTS``,
           ``SVCCONFIG_MAX_ERRORS``, ``SVCCONFIG_MAX_WARNINGS``,
           ``SVCCONFIG_NAMESPACE``)
        3. Project settings (``./svcconfig.json``)
        4. User settings (``~/.config/svcconfig/config.json``)
        5. Defaults

    Raises:
        ConfigError: If any layer is unreadable or the result is invalid.
    """
    merged: dict[str, Any] = load_user_settings().model_dump(mode="json")
    project = load_project_settings()
    if project is not None:
        merged.update(project)
    merged.update(_env_settings())
    if cli_overrides:
        merged.update({k: v for k, v in cli_overrides.items() if v is not None})
    try:
        return ToolSettings.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings: {exc}") from exc
