"""Configuration management with XDG paths, atomic writes, and environment reading.

This module handles everything dbauth reads from outside the process,
apart from the profile file itself (see :mod:`dbauth.profiles`):

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.dbauth/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Engine settings** -- A single :class:`Settings` JSON file holding
  refresh thresholds, timeouts, retry bounds, and delegate tool paths.
  See :func:`load_settings` and :func:`save_settings`.
* **Environment** -- :func:`read_environment` snapshots the recognised
  ``DATABRICKS_*`` variables into a :class:`~dbauth.models.ConfigContext`
  exactly once, so that nothing deeper in the engine reads ``os.environ``.
* **Profile file location** -- :func:`default_config_file`.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, Field, ValidationError

from dbauth.exceptions import ConfigError
from dbauth.models import ConfigContext

_APP_NAME = "dbauth"
_SETTINGS_FILENAME = "config.json"
_DEFAULT_PROFILE_FILENAME = ".databrickscfg"

ENV_HOST = "DATABRICKS_HOST"
ENV_TOKEN = "DATABRICKS_TOKEN"
ENV_CLIENT_ID = "DATABRICKS_CLIENT_ID"
ENV_CLIENT_SECRET = "DATABRICKS_CLIENT_SECRET"
ENV_ACCOUNT_ID = "DATABRICKS_ACCOUNT_ID"
ENV_PROFILE = "DATABRICKS_CONFIG_PROFILE"
ENV_AUTH_TYPE = "DATABRICKS_AUTH_TYPE"
ENV_CONFIG_FILE = "DATABRICKS_CONFIG_FILE"

ENVIRONMENT_VARIABLES: dict[str, str] = {
    "host": ENV_HOST,
    "token": ENV_TOKEN,
    "client_id": ENV_CLIENT_ID,
    "client_secret": ENV_CLIENT_SECRET,
    "account_id": ENV_ACCOUNT_ID,
    "profile": ENV_PROFILE,
    "auth_type": ENV_AUTH_TYPE,
    "config_file": ENV_CONFIG_FILE,
}
"""Maps :class:`~dbauth.models.ConfigContext` field names to the variables they are read from."""


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

    On Linux/BSD: ``$XDG_CONFIG_HOME/dbauth/`` (default ``~/.config/dbauth/``).
    On macOS/Windows: ``~/.dbauth/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs, persisted refresh tokens), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/dbauth/`` (default ``~/.local/share/dbauth/``).
    On macOS/Windows: ``~/.dbauth/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. When *mode* is
    given, permissions are applied before any content is written.
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
        if mode is not None:
            os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any error (including KeyboardInterrupt).
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Engine settings ---


class Settings(BaseModel):
    """Engine-wide tuning persisted at ``~/.config/dbauth/config.json``.

    Every external call made by the engine is bounded by one of these
    values; none of them may be infinite.
    """

    refresh_threshold_seconds: float = Field(
        default=40.0, ge=0, description="Refresh tokens with less than this lifetime left"
    )
    http_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Timeout for token endpoint requests"
    )
    max_retries: int = Field(
        default=3, ge=1, description="Attempts per token request on transport errors and 5xx"
    )
    max_refresh_attempts: int = Field(
        default=3, ge=1, description="Consecutive refresh/exchange failures before giving up"
    )
    cli_timeout_seconds: float = Field(
        default=60.0, gt=0, description="Timeout for delegated CLI invocations"
    )
    databricks_cli_path: str = Field(default="databricks")
    azure_cli_path: str = Field(default="az")
    persist_refresh_tokens: bool = Field(
        default=False, description="Store refresh tokens under the data directory"
    )
    delegated_host_fallback: bool = Field(
        default=False,
        description="Let a delegated auth_type take its host from the other of "
        "explicit config and environment",
    )


def _settings_path() -> Path:
    return get_config_dir() / _SETTINGS_FILENAME


def load_settings() -> Settings:
    """Load engine settings from the XDG config directory.

    Returns:
        The deserialised :class:`Settings`. If the file does not exist, a
        default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            validation.
    """
    path = _settings_path()
    if not path.is_file():
        return Settings()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return Settings.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid settings at {path}: {exc}") from exc


def save_settings(settings: Settings) -> None:
    """Persist engine settings atomically to disk."""
    data = settings.model_dump(mode="json")
    atomic_write(_settings_path(), json.dumps(data, indent=2) + "\n")


# --- Environment ---


def read_environment(environ: Optional[Mapping[str, str]] = None) -> ConfigContext:
    """Snapshot the recognised environment variables into a :class:`ConfigContext`.

    Args:
        environ: Mapping to read from. Defaults to ``os.environ``; tests pass
            a plain dict.

    Raises:
        ConfigError: If ``DATABRICKS_AUTH_TYPE`` names an unsupported method.
    """
    if environ is None:
        environ = os.environ
    values = {
        field_name: environ[var]
        for field_name, var in ENVIRONMENT_VARIABLES.items()
        if environ.get(var)
    }
    try:
        return ConfigContext.model_validate(values)
    except ValidationError as exc:
        raise ConfigError(
            f"Invalid {ENV_AUTH_TYPE}={environ.get(ENV_AUTH_TYPE)!r}: {exc.errors()[0]['msg']}"
        ) from exc


def default_config_file(
    context: Optional[ConfigContext] = None,
    environment: Optional[ConfigContext] = None,
) -> Path:
    """Return the profile file path for a resolution.

    Precedence: ``context.config_file``, then ``DATABRICKS_CONFIG_FILE`` (as
    captured in *environment*), then ``~/.databrickscfg``.
    """
    for source in (context, environment):
        if source is not None and source.config_file:
            return Path(source.config_file).expanduser()
    return Path.home() / _DEFAULT_PROFILE_FILENAME
