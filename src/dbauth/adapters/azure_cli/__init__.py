"""Azure CLI passthrough adapter (``azure-cli``).

See Also:
    :class:`~dbauth.adapters.azure_cli.adapter.AzureCLIAdapter`
"""

from dbauth.adapters.azure_cli.adapter import AZURE_HOST_SUFFIXES, AzureCLIAdapter

__all__ = ["AZURE_HOST_SUFFIXES", "AzureCLIAdapter"]
