"""Static token adapter.

This module provides :class:`StaticTokenAdapter`, which implements the
``pat`` auth type. The token supplied by the tier (explicit ``token``,
``DATABRICKS_TOKEN``, or a profile's ``token`` key) is used as-is.

This adapter does not perform any token exchange or refresh. For
exchanged tokens see :mod:`dbauth.adapters.oauth_m2m`.
"""

from __future__ import annotations

from dbauth.auth.base import CredentialAdapter
from dbauth.models import AuthFields, AuthType, Credential


class StaticTokenAdapter(CredentialAdapter):
    """Authenticate with a pre-issued personal access token."""

    required_fields = ("host", "token")

    @property
    def auth_type(self) -> AuthType:
        return AuthType.PAT

    def produce_credential(self, fields: AuthFields) -> Credential:
        self.require(fields)
        assert fields.host is not None and fields.token is not None
        return Credential.static(fields.host, self.auth_type, fields.token)
