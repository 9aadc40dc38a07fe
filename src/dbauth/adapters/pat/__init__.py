"""Static personal access token adapter.

Implements the ``pat`` auth type: a host and a pre-issued token are turned
into a credential directly, with no exchange or refresh.

See Also:
    :class:`~dbauth.adapters.pat.adapter.StaticTokenAdapter`
"""

from dbauth.adapters.pat.adapter import StaticTokenAdapter

__all__ = ["StaticTokenAdapter"]
