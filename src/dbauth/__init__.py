"""dbauth -- credential resolution and profile management for workspace tooling.

This package decides which credential a CLI or infrastructure-as-code
provider should use for a workspace or account, and keeps OAuth tokens
fresh for it. Credentials can come from explicit configuration,
``DATABRICKS_*`` environment variables, named profiles in
``~/.databrickscfg``, or a delegated CLI (``databricks``, ``az``).

Typical usage::

    from dbauth import ConfigContext, Resolver

    credential = Resolver().resolve(ConfigContext(profile="my-workspace"))
    httpx.get(f"{credential.host}/api/2.0/clusters/list", headers=credential.headers())

Modules:
    models: Pydantic models shared across the package.
    config: XDG-aware settings and environment reading.
    profiles: Profile file parsing and lookup.
    auth: Adapters, token cache, resolver and explain surface.
    exceptions: Exception hierarchy with exit-code mapping.
    app: Typer CLI entry point.
"""

__version__ = "0.1.0"

from dbauth.auth.resolver import Resolver
from dbauth.models import AuthType, ConfigContext, Credential

__all__ = ["AuthType", "ConfigContext", "Credential", "Resolver", "__version__"]
