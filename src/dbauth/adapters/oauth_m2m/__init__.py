"""OAuth machine-to-machine adapter.

Implements the ``oauth-m2m`` auth type, which exchanges a service
principal's ``client_id`` and ``client_secret`` for short-lived access
tokens at the workspace or account OIDC endpoint.

Tokens are held in the shared token cache and renewed on access.

See Also:
    :class:`~dbauth.adapters.oauth_m2m.adapter.OAuthM2MAdapter`
"""

from dbauth.adapters.oauth_m2m.adapter import OAuthM2MAdapter, token_endpoint

__all__ = ["OAuthM2MAdapter", "token_endpoint"]
