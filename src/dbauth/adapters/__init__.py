"""Built-in credential source adapters.

One sub-package per supported :class:`~dbauth.models.AuthType`:

- :mod:`dbauth.adapters.pat` -- static personal access token.
- :mod:`dbauth.adapters.oauth_m2m` -- OAuth client-credentials exchange.
- :mod:`dbauth.adapters.databricks_cli` -- token delegated to the ``databricks`` CLI.
- :mod:`dbauth.adapters.azure_cli` -- token delegated to the Azure CLI.

:mod:`dbauth.adapters.delegated` holds the subprocess plumbing shared by
the two CLI-delegated adapters.
"""
