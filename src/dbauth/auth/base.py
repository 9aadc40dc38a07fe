"""Abstract base class for credential source adapters.

Every authentication method dbauth supports is implemented as a
:class:`CredentialAdapter`. An adapter:

1. Declares its :attr:`~CredentialAdapter.auth_type` tag.
2. Lists the :attr:`~CredentialAdapter.required_fields` it needs from a
   single tier (see :class:`~dbauth.models.AuthFields`).
3. Turns those fields into a :class:`~dbauth.models.Credential` in
   :meth:`~CredentialAdapter.produce_credential`.

Adapters never read the process environment or the profile file; the
resolver hands them everything through ``AuthFields``. Only the OAuth and
delegated adapters touch shared state, through the
:class:`~dbauth.auth.token_cache.TokenCache` they are constructed with.

See Also:
    :mod:`dbauth.auth.registry` for adapter registration and dispatch.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from dbauth.auth.token_cache import TokenCache
from dbauth.config import Settings
from dbauth.exceptions import MissingFieldError
from dbauth.models import AuthFields, AuthType, Credential, TokenKey


class CredentialAdapter(ABC):
    """Abstract base class for credential source adapters.

    Args:
        settings: Engine settings (timeouts, retry bounds, tool paths).
        cache: Token cache shared by every adapter of one resolver.
    """

    required_fields: tuple[str, ...] = ("host",)

    def __init__(
        self,
        settings: Optional[Settings] = None,
        cache: Optional[TokenCache] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.cache = cache or TokenCache(self.settings)

    @property
    @abstractmethod
    def auth_type(self) -> AuthType:
        """Return the tag this adapter handles."""
        ...

    @abstractmethod
    def produce_credential(self, fields: AuthFields) -> Credential:
        """Build a credential from one tier's fields.

        Implementations call :meth:`require` first so that incomplete
        input fails with :class:`~dbauth.exceptions.MissingFieldError`
        before any network or subprocess activity.

        Raises:
            MissingFieldError: If required fields are absent.
            AuthExchangeError: If a token exchange is rejected.
            ExternalToolError: If a delegated tool cannot be run.
        """
        ...

    def missing_fields(self, fields: AuthFields) -> list[str]:
        """Return the names of required fields absent from *fields*.

        An empty list means the adapter has everything it needs.
        """
        return [name for name in self.required_fields if not getattr(fields, name)]

    def require(self, fields: AuthFields) -> None:
        """Raise :class:`MissingFieldError` unless all required fields are present."""
        missing = self.missing_fields(fields)
        if missing:
            raise MissingFieldError(self.auth_type.value, missing)

    def _cached_credential(self, key: TokenKey, host: str, exchange, refresh=None) -> Credential:
        """Wrap a token-cache accessor in a :class:`Credential`."""
        accessor = self.cache.get_or_exchange(key, exchange, refresh)
        return Credential(
            host,
            self.auth_type,
            accessor.current_value,
            expiry=accessor.expires_at,
        )
