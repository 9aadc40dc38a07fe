"""Token passthrough from the Azure CLI.

This module provides :class:`AzureCLIAdapter`, which implements the
``azure-cli`` auth type for Azure-hosted workspaces. It runs::

    az account get-access-token --resource 2ff814a6-3304-4ab8-85cb-cd0e6f879c1d --output json

where the resource is the well-known AzureDatabricks application id, and
reads ``accessToken`` plus ``expires_on`` (epoch seconds, newer CLIs) or
``expiresOn`` (local time, older CLIs).

Only hosts under an Azure Databricks domain are accepted.
"""

from __future__ import annotations

from typing import Any, Optional
from urllib.parse import urlparse

from dbauth.adapters.delegated import DelegatedCLIAdapter, parse_timestamp
from dbauth.exceptions import AuthExchangeError, UnsupportedHostError
from dbauth.models import AuthFields, AuthType, TokenRecord

AZURE_DATABRICKS_RESOURCE_ID = "2ff814a6-3304-4ab8-85cb-cd0e6f879c1d"

AZURE_HOST_SUFFIXES: tuple[str, ...] = (
    ".azuredatabricks.net",
    ".databricks.azure.cn",
    ".databricks.azure.us",
)


def is_azure_host(host: str) -> bool:
    hostname = urlparse(host).hostname or ""
    return hostname.endswith(AZURE_HOST_SUFFIXES)


class AzureCLIAdapter(DelegatedCLIAdapter):
    """Obtain AzureDatabricks tokens from ``az account get-access-token``."""

    @property
    def auth_type(self) -> AuthType:
        return AuthType.AZURE_CLI

    def check_host(self, host: str) -> None:
        if not is_azure_host(host):
            raise UnsupportedHostError(self.auth_type.value, host)

    def principal(self, fields: AuthFields) -> str:
        # az issues one token per signed-in account, whichever workspace asks.
        return "az"

    def command(self, fields: AuthFields) -> list[str]:
        return [
            self.settings.azure_cli_path,
            "account",
            "get-access-token",
            "--resource",
            AZURE_DATABRICKS_RESOURCE_ID,
            "--output",
            "json",
        ]

    def parse_output(self, payload: dict[str, Any]) -> TokenRecord:
        access_token = payload.get("accessToken")
        if not access_token or not isinstance(access_token, str):
            raise AuthExchangeError("Azure CLI output missing 'accessToken' field")

        expires_at: Optional[float] = None
        if payload.get("expires_on") is not None:
            try:
                expires_at = float(payload["expires_on"])
            except (TypeError, ValueError) as exc:
                raise AuthExchangeError(
                    f"invalid expires_on in Azure CLI output: {payload['expires_on']!r}"
                ) from exc
        elif payload.get("expiresOn"):
            expires_at = parse_timestamp(str(payload["expiresOn"]))

        return TokenRecord(
            access_token=access_token,
            expires_at=expires_at,
            token_type=str(payload.get("tokenType") or "Bearer"),
        )
