"""Tests for dbauth.config -- XDG paths, atomic writes, settings, environment."""

from __future__ import annotations

import json
import os
import stat
from pathlib import Path

import pytest

from dbauth.config import (
    atomic_write,
    default_config_file,
    get_config_dir,
    get_data_dir,
    load_settings,
    read_environment,
    save_settings,
    Settings,
)
from dbauth.exceptions import ConfigError
from dbauth.models import AuthType, ConfigContext


class TestXDGPaths:
    def test_config_dir_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        custom = tmp_path / "custom_config"
        monkeypatch.setattr("dbauth.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(custom))

        result = get_config_dir()
        assert result == custom / "dbauth"
        assert result.is_dir()

    def test_data_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("dbauth.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_DATA_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_data_dir() == tmp_path / ".local" / "share" / "dbauth"

    def test_non_xdg_platform(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("dbauth.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_config_dir() == tmp_path / ".dbauth"
        assert get_data_dir() == tmp_path / ".dbauth" / "data"


class TestAtomicWrite:
    def test_writes_content(self, tmp_path: Path) -> None:
        target = tmp_path / "sub" / "file.json"
        atomic_write(target, '{"a": 1}')
        assert target.read_text() == '{"a": 1}'

    def test_mode_applied(self, tmp_path: Path) -> None:
        target = tmp_path / "secret.json"
        atomic_write(target, "x", mode=0o600)
        assert stat.S_IMODE(os.stat(target).st_mode) == 0o600

    def test_no_temp_files_left(self, tmp_path: Path) -> None:
        target = tmp_path / "file.txt"
        atomic_write(target, "one")
        atomic_write(target, "two")
        assert target.read_text() == "two"
        assert [p.name for p in tmp_path.iterdir()] == ["file.txt"]


class TestSettings:
    def test_defaults_when_missing(self, isolated_config: Path) -> None:
        settings = load_settings()
        assert settings == Settings()
        assert settings.refresh_threshold_seconds == 40
        assert settings.delegated_host_fallback is False

    def test_round_trip(self, isolated_config: Path) -> None:
        save_settings(Settings(max_retries=5, persist_refresh_tokens=True))
        loaded = load_settings()
        assert loaded.max_retries == 5
        assert loaded.persist_refresh_tokens is True

    def test_invalid_json_raises(self, isolated_config: Path) -> None:
        (get_config_dir() / "config.json").write_text("{not json")
        with pytest.raises(ConfigError, match="Invalid settings"):
            load_settings()

    def test_invalid_value_raises(self, isolated_config: Path) -> None:
        (get_config_dir() / "config.json").write_text(json.dumps({"http_timeout_seconds": 0}))
        with pytest.raises(ConfigError):
            load_settings()


class TestReadEnvironment:
    def test_empty(self) -> None:
        assert read_environment({}) == ConfigContext()

    def test_reads_recognised_variables(self) -> None:
        ctx = read_environment(
            {
                "DATABRICKS_HOST": "adb-1.azuredatabricks.net/",
                "DATABRICKS_TOKEN": "dapi1",
                "DATABRICKS_CONFIG_PROFILE": "dev",
                "DATABRICKS_AUTH_TYPE": "azure-cli",
                "UNRELATED": "x",
            }
        )
        assert ctx.host == "https://adb-1.azuredatabricks.net"
        assert ctx.token == "dapi1"
        assert ctx.profile == "dev"
        assert ctx.auth_type is AuthType.AZURE_CLI

    def test_blank_values_ignored(self) -> None:
        ctx = read_environment({"DATABRICKS_HOST": "", "DATABRICKS_TOKEN": "   "})
        assert ctx.is_empty()

    def test_reads_os_environ_by_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DATABRICKS_CLIENT_ID", "sp-1")
        assert read_environment().client_id == "sp-1"

    def test_unknown_auth_type(self) -> None:
        with pytest.raises(ConfigError, match="DATABRICKS_AUTH_TYPE"):
            read_environment({"DATABRICKS_AUTH_TYPE": "basic"})


class TestDefaultConfigFile:
    def test_home_default(self, isolated_config: Path) -> None:
        assert default_config_file() == Path.home() / ".databrickscfg"

    def test_environment_overrides_home(self) -> None:
        env = ConfigContext(config_file="/etc/dbcfg")
        assert default_config_file(ConfigContext(), env) == Path("/etc/dbcfg")

    def test_context_overrides_environment(self) -> None:
        ctx = ConfigContext(config_file="/tmp/mine")
        env = ConfigContext(config_file="/etc/dbcfg")
        assert default_config_file(ctx, env) == Path("/tmp/mine")
