"""Persistent refresh-token store keyed by token cache identity.

Stores refresh tokens in ``~/.local/share/dbauth/tokens/<digest>.json``
(XDG) or the platform-equivalent directory, where ``<digest>`` is derived
from the :class:`~dbauth.models.TokenKey`. Files are written atomically
with ``0o600`` permissions so that secrets are never world-readable, even
momentarily.

Only refresh tokens are persisted. Access tokens live in memory in the
:class:`~dbauth.auth.token_cache.TokenCache` and are re-obtained on the
next process start. Persistence is off unless
:attr:`~dbauth.config.Settings.persist_refresh_tokens` is enabled.
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from dbauth.config import atomic_write, get_data_dir
from dbauth.models import TokenKey

logger = logging.getLogger(__name__)


class StoredToken(BaseModel):
    """A refresh token on disk, with the identity it was issued for.

    Attributes:
        key: The cache identity (adapter, host, principal).
        refresh_token: The secret value.
        saved_at: When the entry was written (UTC).
    """

    key: TokenKey
    refresh_token: str = Field(repr=False)
    saved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def _tokens_dir() -> Path:
    """Return the tokens directory, creating it if needed."""
    path = get_data_dir() / "tokens"
    path.mkdir(parents=True, exist_ok=True)
    return path


class TokenStore:
    """Read/write persisted refresh tokens.

    Args:
        directory: Where token files live. Defaults to the ``tokens``
            directory under :func:`~dbauth.config.get_data_dir`.

    Example::

        store = TokenStore()
        store.save(key, "refresh-abc")
        assert store.load(key) == "refresh-abc"
    """

    def __init__(self, directory: Optional[Path] = None) -> None:
        self._directory = directory

    @property
    def directory(self) -> Path:
        if self._directory is None:
            self._directory = _tokens_dir()
        return self._directory

    def path_for(self, key: TokenKey) -> Path:
        digest = hashlib.sha256(
            f"{key.adapter}\n{key.host}\n{key.principal}".encode("utf-8")
        ).hexdigest()[:32]
        return self.directory / f"{digest}.json"

    def save(self, key: TokenKey, refresh_token: str) -> None:
        """Persist *refresh_token* for *key* atomically with ``0o600`` permissions.

        Raises:
            OSError: If the file cannot be written.
        """
        entry = StoredToken(key=key, refresh_token=refresh_token)
        text = json.dumps(entry.model_dump(mode="json"), indent=2) + "\n"
        atomic_write(self.path_for(key), text, mode=0o600)

    def load(self, key: TokenKey) -> Optional[str]:
        """Return the stored refresh token for *key*.

        Returns ``None`` if there is no file, it cannot be parsed, or it
        was written for a different identity.
        """
        path = self.path_for(key)
        if not path.is_file():
            return None
        try:
            entry = StoredToken.model_validate_json(path.read_text(encoding="utf-8"))
        except (ValueError, OSError):
            logger.debug("Ignoring unreadable token file %s", path)
            return None
        if entry.key != key:
            return None
        return entry.refresh_token

    def clear(self, key: TokenKey) -> None:
        """Delete the stored refresh token for *key*; a no-op when absent."""
        path = self.path_for(key)
        if path.is_file():
            path.unlink()
