"""Token delegation to the ``databricks`` CLI.

This module provides :class:`DatabricksCLIAdapter`, which implements the
``databricks-cli`` auth type. The CLI owns the OAuth login state (created
by ``databricks auth login``) and its own token refresh; this adapter runs::

    databricks auth token --host <host>
    databricks auth token --profile <name>     # when resolved from a profile

and reads the JSON it prints::

    {"access_token": "...", "token_type": "Bearer", "expiry": "2024-05-01T10:00:00.123456789+02:00"}

A profile-based run sets ``DATABRICKS_CONFIG_FILE`` to the file the profile
was read from, so the CLI finds the same section.
"""

from __future__ import annotations

from typing import Any, Optional

from dbauth.adapters.delegated import DelegatedCLIAdapter, parse_timestamp
from dbauth.config import ENV_CONFIG_FILE
from dbauth.exceptions import AuthExchangeError
from dbauth.models import AuthFields, AuthType, TokenRecord


class DatabricksCLIAdapter(DelegatedCLIAdapter):
    """Obtain tokens from ``databricks auth token``."""

    @property
    def auth_type(self) -> AuthType:
        return AuthType.DATABRICKS_CLI

    def command(self, fields: AuthFields) -> list[str]:
        args = [self.settings.databricks_cli_path, "auth", "token"]
        if fields.profile:
            args += ["--profile", fields.profile]
        else:
            assert fields.host is not None
            args += ["--host", fields.host]
            if fields.account_id:
                args += ["--account-id", fields.account_id]
        return args

    def environment(self, fields: AuthFields) -> Optional[dict[str, str]]:
        # The CLI must look the profile up in the file it was resolved from.
        if fields.profile and fields.config_file:
            return {ENV_CONFIG_FILE: fields.config_file}
        return None

    def principal(self, fields: AuthFields) -> str:
        if fields.profile and fields.config_file:
            return f"{fields.config_file}[{fields.profile}]"
        return super().principal(fields)

    def parse_output(self, payload: dict[str, Any]) -> TokenRecord:
        access_token = payload.get("access_token")
        if not access_token or not isinstance(access_token, str):
            raise AuthExchangeError("databricks CLI output missing 'access_token' field")

        expires_at: Optional[float] = None
        if payload.get("expiry"):
            expires_at = parse_timestamp(str(payload["expiry"]))
        elif payload.get("expires_in") is not None:
            try:
                expires_at = self.cache.now() + float(payload["expires_in"])
            except (TypeError, ValueError) as exc:
                raise AuthExchangeError(
                    f"invalid expires_in in databricks CLI output: {payload['expires_in']!r}"
                ) from exc

        return TokenRecord(
            access_token=access_token,
            expires_at=expires_at,
            token_type=str(payload.get("token_type") or "Bearer"),
        )
