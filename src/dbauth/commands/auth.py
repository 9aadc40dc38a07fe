"""Auth commands -- inspect and exercise credential resolution.

Provides the ``dbauth auth`` sub-command group:

* ``describe`` -- resolve a target and show which source won and why.
* ``token`` -- resolve a target and print a current bearer token as JSON,
  for shell scripts and tools that cannot link this package.

Typical workflow::

    dbauth auth describe --profile my-workspace
    dbauth auth token --host https://adb-123.azuredatabricks.net --auth-type azure-cli
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Optional

import typer

from dbauth.output import error, get_output, suggest


auth_app = typer.Typer(no_args_is_help=True)

_PROFILE_OPT = typer.Option(None, "--profile", "-p", help="Profile name in the profile file.")
_HOST_OPT = typer.Option(None, "--host", help="Workspace or account host.")
_AUTH_TYPE_OPT = typer.Option(
    None, "--auth-type", help="pat, oauth-m2m, databricks-cli or azure-cli."
)
_ACCOUNT_OPT = typer.Option(None, "--account-id", help="Account id for account-level auth.")
_CONFIG_FILE_OPT = typer.Option(None, "--config-file", help="Profile file to read.")


def _resolve(
    ctx: typer.Context,
    profile: Optional[str],
    host: Optional[str],
    auth_type: Optional[str],
    account_id: Optional[str],
    config_file: Optional[str],
):
    """Resolve the target described by CLI flags plus the environment.

    Exits with the error's exit code, after printing the trace, when
    resolution fails.
    """
    from dbauth.auth import Resolver, explain
    from dbauth.config import load_settings, read_environment
    from dbauth.exceptions import DbauthError
    from dbauth.models import ConfigContext

    obj = ctx.obj or {}
    try:
        context = ConfigContext(
            profile=profile or obj.get("profile"),
            host=host,
            auth_type=auth_type,
            account_id=account_id,
            config_file=config_file,
        )
    except ValueError as exc:
        error(f"Invalid option: {exc}")
        raise typer.Exit(code=2) from None

    try:
        resolver = Resolver(settings=load_settings())
        return resolver.resolve_with_trace(context, read_environment())
    except DbauthError as exc:
        if exc.trace is not None:
            get_output().print_lines(explain(exc.trace))
        error(exc.reason)
        raise typer.Exit(code=exc.exit_code) from None


def _format_expiry(expires_at: Optional[float]) -> Optional[str]:
    if expires_at is None:
        return None
    return datetime.fromtimestamp(expires_at, tz=timezone.utc).isoformat()


@auth_app.command("describe")
def auth_describe(
    ctx: typer.Context,
    profile: Optional[str] = _PROFILE_OPT,
    host: Optional[str] = _HOST_OPT,
    auth_type: Optional[str] = _AUTH_TYPE_OPT,
    account_id: Optional[str] = _ACCOUNT_OPT,
    config_file: Optional[str] = _CONFIG_FILE_OPT,
) -> None:
    """Show which credential source is used and why.

    Prints the effective host and auth type, then one line per source
    checked. Secrets are never printed.

    Example::

        dbauth auth describe --profile my-workspace
    """
    from dbauth.auth import explain

    credential, trace = _resolve(ctx, profile, host, auth_type, account_id, config_file)
    selected = trace.selected
    output = get_output()
    output.print_record(
        {
            "host": credential.host,
            "auth_type": credential.auth_type.value,
            "source": selected.source if selected is not None else None,
        }
    )
    output.print_lines(explain(trace))


@auth_app.command("token")
def auth_token(
    ctx: typer.Context,
    profile: Optional[str] = _PROFILE_OPT,
    host: Optional[str] = _HOST_OPT,
    auth_type: Optional[str] = _AUTH_TYPE_OPT,
    account_id: Optional[str] = _ACCOUNT_OPT,
    config_file: Optional[str] = _CONFIG_FILE_OPT,
) -> None:
    """Print a current bearer token as JSON.

    Example::

        dbauth auth token --profile my-workspace | jq -r .access_token
    """
    from dbauth.exceptions import DbauthError

    credential, _ = _resolve(ctx, profile, host, auth_type, account_id, config_file)
    try:
        token = credential.token()
    except DbauthError as exc:
        error(exc.reason)
        suggest("Run `dbauth auth describe` with the same options to see the resolution trace.")
        raise typer.Exit(code=exc.exit_code) from None

    payload = {
        "access_token": token,
        "token_type": "Bearer",
        "expiry": _format_expiry(credential.expires_at()),
    }
    get_output().print_data(json.dumps(payload, indent=2))
