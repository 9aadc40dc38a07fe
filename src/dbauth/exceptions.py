"""Exception hierarchy for dbauth.

All exceptions inherit from :class:`DbauthError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`dbauth.exit_codes`
and an optional :class:`~dbauth.models.ResolutionTrace`. The top-level
handler in :func:`dbauth.app.main` catches ``DbauthError`` and exits with
the appropriate code.

Subclass hierarchy::

    DbauthError               (exit 1)
    +-- ConfigError           (exit 1)
    |   +-- ConfigParseError  (exit 7)
    +-- NotFoundError         (exit 4)
    +-- AuthError             (exit 3)
        +-- MissingFieldError     (exit 3)
        |   +-- UnsupportedHostError
        +-- AmbiguousAuthError    (exit 2)
        +-- NoAuthError           (exit 3)
        +-- AuthExchangeError     (exit 3)
        +-- ExternalToolError     (exit 6)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence

from dbauth.exit_codes import (
    EXIT_AMBIGUOUS_AUTH,
    EXIT_AUTH_FAILURE,
    EXIT_CONFIG_PARSE_ERROR,
    EXIT_EXTERNAL_TOOL,
    EXIT_GENERIC_FAILURE,
    EXIT_NOT_FOUND,
)

if TYPE_CHECKING:
    from dbauth.models import ResolutionTrace


class DbauthError(Exception):
    """Base exception for all dbauth errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`dbauth.exit_codes`.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
        trace: The resolution trace collected before the failure, if any.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        trace: Optional["ResolutionTrace"] = None,
    ):
        super().__init__(message)
        self.reason = message
        self.message = message
        self.trace = trace
        if exit_code is not None:
            self.exit_code = exit_code

    def with_trace(self, trace: "ResolutionTrace") -> "DbauthError":
        """Attach *trace* and append its explanation to the message.

        Returns the same instance so callers can ``raise exc.with_trace(t)``.
        Attaching a second trace is a no-op.
        """
        if self.trace is not None:
            return self
        from dbauth.auth.explain import summarize

        self.trace = trace
        summary = summarize(trace)
        if summary:
            self.message = f"{self.message}\nResolution trace:\n{summary}"
            self.args = (self.message,)
        return self


class ConfigError(DbauthError):
    """Raised for configuration problems (invalid settings file, unreadable paths)."""

    exit_code = EXIT_GENERIC_FAILURE


class ConfigParseError(ConfigError):
    """Raised when the profile file has malformed syntax.

    Args:
        message: Description of the problem.
        path: The file being parsed.
        line: 1-based line number of the offending line, when known.
        section: The section being parsed, when known.
    """

    exit_code = EXIT_CONFIG_PARSE_ERROR

    def __init__(
        self,
        message: str,
        path: str | None = None,
        line: int | None = None,
        section: str | None = None,
    ):
        location = []
        if path:
            location.append(path)
        if line is not None:
            location.append(f"line {line}")
        if section:
            location.append(f"section [{section}]")
        if location:
            message = f"{message} ({', '.join(location)})"
        super().__init__(message)
        self.path = path
        self.line = line
        self.section = section


class NotFoundError(DbauthError):
    """Raised when a named profile is not present in the profile file."""

    exit_code = EXIT_NOT_FOUND


class AuthError(DbauthError):
    """Raised when authentication cannot be established."""

    exit_code = EXIT_AUTH_FAILURE


class MissingFieldError(AuthError):
    """An adapter's required fields are incomplete within one tier.

    Args:
        method: The auth type whose fields are incomplete.
        missing: Names of the fields that were absent.
    """

    def __init__(self, method: str, missing: Sequence[str], message: str | None = None):
        self.method = method
        self.missing = list(missing)
        if message is None:
            message = f"{method} auth is missing required field(s): {', '.join(self.missing)}"
        super().__init__(message)


class UnsupportedHostError(MissingFieldError):
    """The host does not match the patterns a vendor adapter accepts."""

    def __init__(self, method: str, host: str):
        self.host = host
        super().__init__(
            method,
            ["host"],
            message=f"{method} auth does not support host '{host}'",
        )


class AmbiguousAuthError(AuthError):
    """Two or more fully specified methods were found at the same tier."""

    exit_code = EXIT_AMBIGUOUS_AUTH

    def __init__(self, methods: Sequence[str], source: str):
        self.methods = list(methods)
        self.source = source
        super().__init__(
            f"more than one auth method is configured in {source}: "
            f"{' and '.join(self.methods)}. Remove all but one, or set auth_type"
        )


class NoAuthError(AuthError):
    """No tier produced a usable authentication method."""


class AuthExchangeError(AuthError):
    """A token exchange or refresh was rejected or could not be parsed."""


class ExternalToolError(AuthError):
    """A delegated CLI was unavailable or exited with a non-zero status.

    Args:
        tool: Name or path of the tool that failed.
        output: The tool's diagnostic output (stderr), if any.
    """

    exit_code = EXIT_EXTERNAL_TOOL

    def __init__(self, tool: str, message: str, output: str = ""):
        self.tool = tool
        self.output = output
        if output:
            message = f"{message}: {output.strip()}"
        super().__init__(message)
