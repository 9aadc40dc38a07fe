"""Tests for persisted refresh tokens."""

from __future__ import annotations

import os
import stat
from pathlib import Path

from dbauth.auth.token_store import TokenStore
from dbauth.models import TokenKey


KEY = TokenKey(adapter="oauth-m2m", host="https://h", principal="client-1")


class TestTokenStore:
    def test_save_and_load(self, tmp_path: Path) -> None:
        store = TokenStore(tmp_path)
        store.save(KEY, "refresh-abc")
        assert store.load(KEY) == "refresh-abc"

    def test_file_permissions(self, tmp_path: Path) -> None:
        store = TokenStore(tmp_path)
        store.save(KEY, "refresh-abc")
        mode = stat.S_IMODE(os.stat(store.path_for(KEY)).st_mode)
        assert mode == 0o600

    def test_missing(self, tmp_path: Path) -> None:
        assert TokenStore(tmp_path).load(KEY) is None

    def test_distinct_keys_distinct_files(self, tmp_path: Path) -> None:
        store = TokenStore(tmp_path)
        other = TokenKey(adapter="oauth-m2m", host="https://h", principal="client-2")
        assert store.path_for(KEY) != store.path_for(other)

    def test_corrupt_file_ignored(self, tmp_path: Path) -> None:
        store = TokenStore(tmp_path)
        store.path_for(KEY).write_text("{broken")
        assert store.load(KEY) is None

    def test_clear(self, tmp_path: Path) -> None:
        store = TokenStore(tmp_path)
        store.save(KEY, "refresh-abc")
        store.clear(KEY)
        assert store.load(KEY) is None
        store.clear(KEY)

    def test_default_directory(self, isolated_config: Path) -> None:
        store = TokenStore()
        assert store.directory == isolated_config / "data" / "dbauth" / "tokens"
        assert store.directory.is_dir()
