"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~dbauth.exceptions.DbauthError` subclass.
Wrappers around the ``dbauth`` CLI (CI scripts, provider shims) can inspect
the exit code to tell a missing profile from a rejected credential without
parsing stderr.

Example::

    $ dbauth auth token --profile missing
    $ echo $?
    4   # EXIT_NOT_FOUND -- the named profile does not exist
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_AMBIGUOUS_AUTH = 2
"""Two or more authentication methods were fully configured at the same tier."""

EXIT_AUTH_FAILURE = 3
"""No usable credential could be resolved, or the credential exchange was rejected."""

EXIT_NOT_FOUND = 4
"""A named profile does not exist in the profile file."""

EXIT_EXTERNAL_TOOL = 6
"""A delegated CLI (``databricks``, ``az``) was missing or exited non-zero."""

EXIT_CONFIG_PARSE_ERROR = 7
"""The profile file could not be parsed."""
