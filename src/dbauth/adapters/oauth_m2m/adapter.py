"""OAuth2 client-credentials (machine-to-machine) adapter.

This module provides :class:`OAuthM2MAdapter`, which implements the
``oauth-m2m`` auth type. It performs the non-interactive Client
Credentials grant (:rfc:`6749` section 4.4), sending the service
principal's ``client_id`` and ``client_secret`` as HTTP Basic auth to:

* ``{host}/oidc/v1/token`` for a workspace, or
* ``{host}/oidc/accounts/{account_id}/v1/token`` when ``account_id`` is set.

Tokens are stored in the shared :class:`~dbauth.auth.token_cache.TokenCache`
keyed by ``(oauth-m2m, host, client_id)``. If the issuer returns a
``refresh_token`` it is used for renewal; otherwise renewal repeats the
client-credentials grant.

Transport errors and 5xx responses are retried up to
:attr:`~dbauth.config.Settings.max_retries` times; 4xx responses fail
immediately.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from dbauth.auth.base import CredentialAdapter
from dbauth.exceptions import AuthExchangeError
from dbauth.models import AuthFields, AuthType, Credential, TokenKey, TokenRecord

logger = logging.getLogger(__name__)

DEFAULT_SCOPE = "all-apis"


def token_endpoint(host: str, account_id: Optional[str] = None) -> str:
    """Return the OIDC token endpoint for a workspace or account host."""
    if account_id:
        return f"{host}/oidc/accounts/{account_id}/v1/token"
    return f"{host}/oidc/v1/token"


class OAuthM2MAdapter(CredentialAdapter):
    """Authenticate via the OAuth2 Client Credentials grant.

    Returns a credential whose bearer value is served from the token cache
    and renewed before it expires.
    """

    required_fields = ("host", "client_id", "client_secret")

    @property
    def auth_type(self) -> AuthType:
        return AuthType.OAUTH_M2M

    def produce_credential(self, fields: AuthFields) -> Credential:
        """Exchange client credentials for a token and wrap it in a live credential.

        Raises:
            MissingFieldError: If host, client_id or client_secret is absent.
            AuthExchangeError: If the token endpoint rejects the request.
        """
        self.require(fields)
        assert fields.host is not None and fields.client_id is not None
        url = token_endpoint(fields.host, fields.account_id)
        principal = fields.client_id
        if fields.account_id:
            principal = f"{fields.account_id}/{fields.client_id}"
        key = TokenKey(adapter=self.auth_type.value, host=fields.host, principal=principal)

        def exchange() -> TokenRecord:
            return self._request_token(
                url, fields, {"grant_type": "client_credentials", "scope": DEFAULT_SCOPE}
            )

        def refresh(refresh_token: str) -> TokenRecord:
            return self._request_token(
                url, fields, {"grant_type": "refresh_token", "refresh_token": refresh_token}
            )

        return self._cached_credential(key, fields.host, exchange, refresh)

    def _request_token(self, url: str, fields: AuthFields, data: dict[str, str]) -> TokenRecord:
        """POST to the token endpoint and build a :class:`TokenRecord`.

        Raises:
            AuthExchangeError: On a 4xx response, on persistent transport or
                5xx failures, or if ``access_token`` is absent.
        """
        assert fields.client_id is not None and fields.client_secret is not None
        attempts = self.settings.max_retries
        token_data: Any = None
        for attempt in range(1, attempts + 1):
            try:
                response = httpx.post(
                    url,
                    data=data,
                    auth=(fields.client_id, fields.client_secret),
                    headers={"Accept": "application/json"},
                    timeout=self.settings.http_timeout_seconds,
                )
                response.raise_for_status()
                token_data = response.json()
                break
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                if status >= 500 and attempt < attempts:
                    logger.debug("Token endpoint returned %d, retrying (%d/%d)", status, attempt, attempts)
                    continue
                raise AuthExchangeError(
                    f"Token request failed with status {status}: {exc.response.text}"
                ) from exc
            except httpx.HTTPError as exc:
                if attempt < attempts:
                    logger.debug("Token request failed: %s, retrying (%d/%d)", exc, attempt, attempts)
                    continue
                raise AuthExchangeError(f"Token request failed: {exc}") from exc
            except ValueError as exc:
                raise AuthExchangeError("Token response is not valid JSON") from exc

        if not isinstance(token_data, dict) or "access_token" not in token_data:
            raise AuthExchangeError("Token response missing 'access_token' field")

        expires_in = token_data.get("expires_in")
        expires_at: Optional[float] = None
        if expires_in is not None:
            try:
                expires_at = self.cache.now() + float(expires_in)
            except (TypeError, ValueError) as exc:
                raise AuthExchangeError(f"Invalid expires_in in token response: {expires_in!r}") from exc
        else:
            # Default to 1 hour if no expiry provided
            expires_at = self.cache.now() + 3600.0

        return TokenRecord(
            access_token=str(token_data["access_token"]),
            expires_at=expires_at,
            refresh_token=token_data.get("refresh_token"),
            token_type=str(token_data.get("token_type", "Bearer")),
        )
