"""CLI-delegated OAuth adapter (``databricks-cli``).

See Also:
    :class:`~dbauth.adapters.databricks_cli.adapter.DatabricksCLIAdapter`
"""

from dbauth.adapters.databricks_cli.adapter import DatabricksCLIAdapter

__all__ = ["DatabricksCLIAdapter"]
