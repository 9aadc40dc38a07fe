"""Shared plumbing for adapters that delegate token issuance to an external CLI.

A delegated adapter does not hold any secret. It runs a tool that manages
its own login state (``databricks auth token``, ``az account
get-access-token``), parses the JSON the tool prints, and caches the
resulting token until it nears expiry, at which point the tool is run again.

The tool is invoked through an injected :data:`Runner` so tests (and
callers that sandbox subprocesses) can substitute their own. The default
runner uses :func:`subprocess.run` with a finite timeout.
"""

from __future__ import annotations

import json
import logging
import os
import re
import subprocess
from abc import abstractmethod
from datetime import datetime
from typing import Any, Callable, Mapping, Optional, Sequence

from dbauth.auth.base import CredentialAdapter
from dbauth.auth.token_cache import TokenCache
from dbauth.config import Settings
from dbauth.exceptions import AuthExchangeError, ExternalToolError
from dbauth.models import AuthFields, Credential, TokenKey, TokenRecord

logger = logging.getLogger(__name__)

Runner = Callable[..., "subprocess.CompletedProcess[str]"]
"""Runs ``(args, timeout, env=...)`` and returns the completed process.

``env`` holds extra environment variables for the tool, or ``None``.
"""

_FRACTION = re.compile(r"\.(\d+)")


def run_subprocess(
    args: Sequence[str], timeout: float, env: Optional[Mapping[str, str]] = None
) -> "subprocess.CompletedProcess[str]":
    """Default :data:`Runner`: run *args* capturing text output."""
    return subprocess.run(
        list(args),
        capture_output=True,
        text=True,
        timeout=timeout,
        check=False,
        env={**os.environ, **env} if env else None,
    )


def parse_timestamp(value: str) -> float:
    """Parse an RFC 3339 / ISO 8601 timestamp into epoch seconds.

    Accepts a trailing ``Z``, fractional seconds of any precision (Go
    tools emit nanoseconds), and a space instead of ``T``. Naive values are
    taken as local time, which is what the Azure CLI prints.

    Raises:
        AuthExchangeError: If *value* is not a timestamp.
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    try:
        return datetime.fromisoformat(text).timestamp()
    except ValueError as exc:
        raise AuthExchangeError(f"invalid expiry timestamp {value!r}") from exc


class DelegatedCLIAdapter(CredentialAdapter):
    """Base class for adapters backed by an external CLI.

    Subclasses provide :meth:`command` and :meth:`parse_output`, and may
    override :meth:`check_host`, :meth:`principal` and :meth:`environment`.

    Args:
        settings: Engine settings (tool paths, ``cli_timeout_seconds``).
        cache: Shared token cache.
        runner: Subprocess runner; defaults to :func:`run_subprocess`.
    """

    required_fields = ("host",)

    def __init__(
        self,
        settings: Optional[Settings] = None,
        cache: Optional[TokenCache] = None,
        runner: Runner = run_subprocess,
    ) -> None:
        super().__init__(settings, cache)
        self._runner = runner

    @abstractmethod
    def command(self, fields: AuthFields) -> list[str]:
        """Return the argv that prints a token for *fields*."""
        ...

    @abstractmethod
    def parse_output(self, payload: dict[str, Any]) -> TokenRecord:
        """Build a :class:`TokenRecord` from the tool's decoded JSON output.

        Raises:
            AuthExchangeError: If the payload has no usable token.
        """
        ...

    def check_host(self, host: str) -> None:
        """Reject hosts this tool cannot issue tokens for. Accepts all by default."""

    def environment(self, fields: AuthFields) -> Optional[dict[str, str]]:
        """Extra environment variables for the tool, or ``None``."""
        return None

    def principal(self, fields: AuthFields) -> str:
        return fields.profile or fields.host or ""

    def require(self, fields: AuthFields) -> None:
        super().require(fields)
        assert fields.host is not None
        self.check_host(fields.host)

    def produce_credential(self, fields: AuthFields) -> Credential:
        """Run the tool once and return a credential that re-runs it near expiry.

        Raises:
            MissingFieldError: If the host is absent or unsupported.
            ExternalToolError: If the tool is missing or exits non-zero.
            AuthExchangeError: If the tool's output cannot be parsed.
        """
        self.require(fields)
        assert fields.host is not None
        key = TokenKey(
            adapter=self.auth_type.value,
            host=fields.host,
            principal=self.principal(fields),
        )
        return self._cached_credential(key, fields.host, lambda: self.fetch_token(fields))

    def fetch_token(self, fields: AuthFields) -> TokenRecord:
        """Invoke the tool and parse its output."""
        args = self.command(fields)
        tool = args[0]
        timeout = self.settings.cli_timeout_seconds
        logger.debug("Running %s", " ".join(args))
        try:
            result = self._runner(args, timeout, env=self.environment(fields))
        except FileNotFoundError as exc:
            raise ExternalToolError(tool, f"{tool} is not installed or not on PATH") from exc
        except subprocess.TimeoutExpired as exc:
            raise ExternalToolError(tool, f"{tool} did not finish within {timeout:g}s") from exc
        except OSError as exc:
            raise ExternalToolError(tool, f"cannot run {tool}: {exc}") from exc

        if result.returncode != 0:
            raise ExternalToolError(
                tool,
                f"`{' '.join(args)}` exited with status {result.returncode}",
                output=result.stderr or result.stdout or "",
            )

        try:
            payload = json.loads(result.stdout)
        except (TypeError, ValueError) as exc:
            raise AuthExchangeError(f"cannot parse {tool} output as JSON") from exc
        if not isinstance(payload, dict):
            raise AuthExchangeError(f"unexpected {tool} output: expected a JSON object")
        return self.parse_output(payload)
