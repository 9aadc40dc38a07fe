"""Credential resolution for dbauth.

This package turns configuration into a usable credential:

- :class:`CredentialAdapter` -- abstract base class for one auth method.
- :class:`AdapterRegistry` / :func:`create_default_registry` -- the closed
  set of built-in adapters, keyed by :class:`~dbauth.models.AuthType`.
- :class:`TokenCache` -- shared OAuth token cache with single-flight refresh.
- :class:`TokenStore` -- optional on-disk refresh-token persistence.
- :class:`Resolver` / :func:`select_method` -- the precedence engine.
- :func:`explain` -- human-readable view of a resolution trace.

Typical usage::

    from dbauth.auth import Resolver
    from dbauth.models import ConfigContext

    credential = Resolver().resolve(ConfigContext(profile="my-workspace"))
    credential.headers()  # {"Authorization": "Bearer ..."}
"""

from dbauth.auth.base import CredentialAdapter
from dbauth.auth.explain import explain, summarize
from dbauth.auth.registry import AdapterRegistry, create_default_registry
from dbauth.auth.resolver import Resolver, Selection, select_method
from dbauth.auth.token_cache import TokenAccessor, TokenCache
from dbauth.auth.token_store import TokenStore

__all__ = [
    "AdapterRegistry",
    "CredentialAdapter",
    "Resolver",
    "Selection",
    "TokenAccessor",
    "TokenCache",
    "TokenStore",
    "create_default_registry",
    "explain",
    "select_method",
    "summarize",
]
