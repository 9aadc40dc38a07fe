"""Adapter registry -- the closed set of authentication methods.

The :class:`AdapterRegistry` maps each :class:`~dbauth.models.AuthType`
tag to one :class:`~dbauth.auth.base.CredentialAdapter` instance. The set
of tags is fixed; :meth:`AdapterRegistry.infer` covers profiles that omit
``auth_type`` by looking at which credential fields are populated.

For most use cases, call :func:`create_default_registry` to get a registry
pre-loaded with every built-in adapter sharing one token cache.
"""

from __future__ import annotations

from typing import Optional

from dbauth.auth.base import CredentialAdapter
from dbauth.auth.token_cache import TokenCache
from dbauth.config import Settings
from dbauth.exceptions import AuthError
from dbauth.models import AuthFields, AuthType

CREDENTIAL_METHODS: tuple[AuthType, ...] = (AuthType.PAT, AuthType.OAUTH_M2M)
"""Methods that can be recognised from fields alone, in reporting order."""


class AdapterRegistry:
    """Registry and dispatcher for credential adapters.

    Example::

        registry = AdapterRegistry()
        registry.register(StaticTokenAdapter())
        adapter = registry.get(AuthType.PAT)
    """

    def __init__(self) -> None:
        self._adapters: dict[AuthType, CredentialAdapter] = {}

    def register(self, adapter: CredentialAdapter) -> None:
        """Register an adapter under its tag, replacing any previous one."""
        self._adapters[adapter.auth_type] = adapter

    def get(self, auth_type: AuthType) -> CredentialAdapter:
        """Return the adapter for *auth_type*.

        Raises:
            AuthError: If no adapter is registered for the tag.
        """
        adapter = self._adapters.get(auth_type)
        if adapter is None:
            available = ", ".join(t.value for t in self.list_types()) or "(none)"
            raise AuthError(
                f"No adapter registered for auth type '{auth_type.value}'. "
                f"Available types: {available}"
            )
        return adapter

    def complete_methods(self, fields: AuthFields) -> list[AuthType]:
        """Return the credential-bearing methods whose required fields are all present."""
        return [
            method
            for method in CREDENTIAL_METHODS
            if method in self._adapters and not self._adapters[method].missing_fields(fields)
        ]

    def infer(self, fields: AuthFields) -> list[AuthType]:
        """Guess the method(s) a tag-less field set is meant for.

        A method counts when its distinguishing secret is present (a token
        for ``pat``; a client id and secret for ``oauth-m2m``), even if the
        host is missing, so that an incomplete profile reports what it lacks.
        """
        candidates: list[AuthType] = []
        if fields.token:
            candidates.append(AuthType.PAT)
        if fields.client_id and fields.client_secret:
            candidates.append(AuthType.OAUTH_M2M)
        return [c for c in candidates if c in self._adapters]

    def list_types(self) -> list[AuthType]:
        return sorted(self._adapters, key=lambda t: t.value)


def create_default_registry(
    settings: Optional[Settings] = None,
    cache: Optional[TokenCache] = None,
    runner=None,
) -> AdapterRegistry:
    """Create an :class:`AdapterRegistry` holding all built-in adapters.

    - ``pat`` -- static personal access token.
    - ``oauth-m2m`` -- OAuth client-credentials exchange.
    - ``databricks-cli`` -- token from ``databricks auth token``.
    - ``azure-cli`` -- token from ``az account get-access-token``.

    Args:
        settings: Engine settings; defaults are used when omitted.
        cache: Token cache shared by the OAuth and delegated adapters.
        runner: Optional subprocess runner injected into the delegated
            adapters (see :data:`dbauth.adapters.delegated.Runner`).
    """
    from dbauth.adapters.azure_cli import AzureCLIAdapter
    from dbauth.adapters.databricks_cli import DatabricksCLIAdapter
    from dbauth.adapters.oauth_m2m import OAuthM2MAdapter
    from dbauth.adapters.pat import StaticTokenAdapter

    settings = settings or Settings()
    cache = cache or TokenCache(settings)
    delegated_kwargs = {"runner": runner} if runner is not None else {}

    registry = AdapterRegistry()
    registry.register(StaticTokenAdapter(settings, cache))
    registry.register(OAuthM2MAdapter(settings, cache))
    registry.register(DatabricksCLIAdapter(settings, cache, **delegated_kwargs))
    registry.register(AzureCLIAdapter(settings, cache, **delegated_kwargs))
    return registry
