"""In-memory OAuth token cache with lazy, single-flight refresh.

:class:`TokenCache` holds one :class:`~dbauth.models.TokenRecord` per
:class:`~dbauth.models.TokenKey`. Callers get a :class:`TokenAccessor`
from :meth:`TokenCache.get_or_exchange`; every
:meth:`TokenAccessor.current_value` call returns a bearer value that has at
least ``refresh_threshold_seconds`` of lifetime left, refreshing first when
it does not.

Refresh happens on access, never on a timer:

* Fresh records are read without taking any lock.
* A record inside the refresh threshold is renewed under a per-key lock.
  Threads that queue on the lock re-check after acquiring it, so N
  concurrent callers trigger exactly one exchange and all see its result.
  Different keys refresh independently.
* Renewal uses the stored refresh token when there is one, otherwise the
  original exchange. A failed refresh evicts the record and drops the
  refresh token, then falls back to a full exchange. After
  ``max_refresh_attempts`` consecutive failures
  :class:`~dbauth.exceptions.AuthExchangeError` is raised; the next call
  starts over.
* A record is stored only after an exchange returns successfully, so an
  exchange interrupted by the caller's timeout leaves nothing behind.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from dbauth.config import Settings
from dbauth.exceptions import AuthExchangeError
from dbauth.models import TokenKey, TokenRecord

logger = logging.getLogger(__name__)

ExchangeFn = Callable[[], TokenRecord]
"""Obtains a brand-new token (client-credentials grant, CLI invocation)."""

RefreshFn = Callable[[str], TokenRecord]
"""Obtains a new token from a refresh token."""


class _Entry:
    __slots__ = ("record", "exchange", "refresh", "lock")

    def __init__(self, exchange: ExchangeFn, refresh: Optional[RefreshFn]) -> None:
        self.record: Optional[TokenRecord] = None
        self.exchange = exchange
        self.refresh = refresh
        self.lock = threading.Lock()


class TokenAccessor:
    """Live handle on one cache entry. Obtained from :meth:`TokenCache.get_or_exchange`."""

    def __init__(self, cache: "TokenCache", key: TokenKey) -> None:
        self._cache = cache
        self._key = key

    @property
    def key(self) -> TokenKey:
        return self._key

    def current_value(self) -> str:
        """Return a bearer value, refreshing first if it is about to expire.

        Raises:
            AuthExchangeError: If renewal failed ``max_refresh_attempts``
                times in a row.
        """
        return self._cache._current(self._key).access_token

    def expires_at(self) -> Optional[float]:
        record = self._cache.peek(self._key)
        return record.expires_at if record is not None else None


class TokenCache:
    """Shared token cache for OAuth and delegated adapters.

    Args:
        settings: Supplies ``refresh_threshold_seconds``,
            ``max_refresh_attempts`` and ``persist_refresh_tokens``.
        clock: Returns the current time as epoch seconds.
        store: Optional refresh-token persistence. Created automatically
            when ``settings.persist_refresh_tokens`` is enabled.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.time,
        store=None,
    ) -> None:
        self.settings = settings or Settings()
        self._clock = clock
        if store is None and self.settings.persist_refresh_tokens:
            from dbauth.auth.token_store import TokenStore

            store = TokenStore()
        self._store = store
        self._entries: dict[TokenKey, _Entry] = {}
        self._guard = threading.Lock()

    def get_or_exchange(
        self,
        key: TokenKey,
        exchange_fn: ExchangeFn,
        refresh_fn: Optional[RefreshFn] = None,
    ) -> TokenAccessor:
        """Return an accessor for *key*, exchanging for a token on first use.

        The most recent *exchange_fn* / *refresh_fn* replace earlier ones for
        the same key, so rotated client secrets are used on the next renewal.

        Raises:
            AuthExchangeError: If the initial exchange fails repeatedly.
        """
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _Entry(exchange_fn, refresh_fn)
                self._entries[key] = entry
            else:
                entry.exchange = exchange_fn
                entry.refresh = refresh_fn

        with entry.lock:
            if entry.record is None:
                persisted = self._store.load(key) if self._store is not None else None
                entry.record = self._renew(key, entry, persisted)
        return TokenAccessor(self, key)

    def now(self) -> float:
        """Current time according to the cache's clock, in epoch seconds."""
        return self._clock()

    def peek(self, key: TokenKey) -> Optional[TokenRecord]:
        """Return the cached record for *key* without refreshing."""
        entry = self._entries.get(key)
        return entry.record if entry is not None else None

    def invalidate(self, key: TokenKey) -> None:
        """Drop the cached record for *key*; the next access re-exchanges."""
        entry = self._entries.get(key)
        if entry is None:
            return
        with entry.lock:
            entry.record = None

    def clear(self) -> None:
        """Drop every cached record.

        Exchange functions stay registered, so credentials already handed
        out re-exchange on their next access.
        """
        with self._guard:
            entries = list(self._entries.values())
        for entry in entries:
            with entry.lock:
                entry.record = None

    def _is_fresh(self, record: Optional[TokenRecord]) -> bool:
        if record is None:
            return False
        return record.remaining(self._clock()) >= self.settings.refresh_threshold_seconds

    def _current(self, key: TokenKey) -> TokenRecord:
        entry = self._entries[key]
        record = entry.record
        if self._is_fresh(record):
            assert record is not None
            return record

        with entry.lock:
            # Another thread may have refreshed while we waited.
            record = entry.record
            if self._is_fresh(record):
                assert record is not None
                return record
            refresh_token = record.refresh_token if record is not None else None
            logger.debug("Token for %s is expiring, renewing", key)
            entry.record = self._renew(key, entry, refresh_token)
            return entry.record

    def _renew(self, key: TokenKey, entry: _Entry, refresh_token: Optional[str]) -> TokenRecord:
        """Obtain a new record for *key*; caller holds ``entry.lock``."""
        attempts = self.settings.max_refresh_attempts
        last_error: Optional[AuthExchangeError] = None
        for attempt in range(1, attempts + 1):
            used_refresh = refresh_token is not None and entry.refresh is not None
            try:
                if used_refresh:
                    assert refresh_token is not None and entry.refresh is not None
                    record = entry.refresh(refresh_token)
                else:
                    record = entry.exchange()
            except AuthExchangeError as exc:
                last_error = exc
                logger.warning(
                    "Token %s for %s failed (attempt %d/%d): %s",
                    "refresh" if used_refresh else "exchange",
                    key,
                    attempt,
                    attempts,
                    exc,
                )
                entry.record = None
                if used_refresh:
                    refresh_token = None
                    if self._store is not None:
                        self._store.clear(key)
                continue

            if record.refresh_token is None and refresh_token is not None and used_refresh:
                record = record.model_copy(update={"refresh_token": refresh_token})
            record = record.model_copy(update={"identity": key})
            if self._store is not None and record.refresh_token:
                self._store.save(key, record.refresh_token)
            logger.debug("Obtained token for %s", key)
            return record

        raise AuthExchangeError(
            f"could not obtain a token for {key} after {attempts} attempt(s): {last_error}"
        ) from last_error
