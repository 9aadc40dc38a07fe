"""Profile commands -- inspect the profile file.

Provides the ``dbauth profiles`` sub-command group. Both commands are
read-only; the profile file is owned by the user and companion tools.
"""

from __future__ import annotations

from typing import Optional

import typer

from dbauth.output import error, get_output, info


profiles_app = typer.Typer(no_args_is_help=True)

_SECRET_KEYS = ("token", "secret", "password")
_REDACTED = "********"


def _redact(fields: dict[str, str]) -> dict[str, str]:
    return {
        key: _REDACTED if any(part in key.lower() for part in _SECRET_KEYS) else value
        for key, value in fields.items()
    }


def _load(config_file: Optional[str]):
    from dbauth.config import default_config_file, read_environment
    from dbauth.exceptions import DbauthError
    from dbauth.models import ConfigContext
    from dbauth.profiles import ProfileStore

    try:
        path = default_config_file(ConfigContext(config_file=config_file), read_environment())
        store = ProfileStore(path)
        return store, store.load()
    except DbauthError as exc:
        error(exc.reason)
        raise typer.Exit(code=exc.exit_code) from None


def _status(name: str, profiles, registry) -> tuple[str, str]:
    """Return the method a profile selects and whether it is complete."""
    from dbauth.auth.resolver import select_method
    from dbauth.exceptions import AuthError
    from dbauth.models import ConfigContext

    profile = profiles[name]
    try:
        selection = select_method(ConfigContext(profile=name), ConfigContext(), profiles, registry)
    except AuthError as exc:
        method = profile.auth_type.value if profile.auth_type else "-"
        return method, f"no ({exc.reason})"
    return selection.auth_type.value, "yes"


@profiles_app.command("list")
def profiles_list(
    config_file: Optional[str] = typer.Option(None, "--config-file", help="Profile file to read."),
) -> None:
    """List profiles with their host, auth type and completeness.

    Example::

        dbauth profiles list
        dbauth --json profiles list
    """
    from dbauth.auth import create_default_registry

    store, profiles = _load(config_file)
    if not profiles:
        info(f"No profiles in {store.path}.")
        return

    registry = create_default_registry()
    rows = []
    for name, profile in profiles.items():
        method, complete = _status(name, profiles, registry)
        rows.append([name, profile.host or "-", method, complete])
    get_output().print_table(
        ["name", "host", "auth_type", "complete"], rows, title=str(store.path)
    )


@profiles_app.command("show")
def profiles_show(
    name: str = typer.Argument(help="Profile name."),
    config_file: Optional[str] = typer.Option(None, "--config-file", help="Profile file to read."),
) -> None:
    """Show one profile's fields with secrets redacted.

    Example::

        dbauth profiles show my-workspace
    """
    from dbauth.exceptions import NotFoundError

    store, _ = _load(config_file)
    try:
        profile = store.get(name)
    except NotFoundError as exc:
        error(exc.reason)
        raise typer.Exit(code=exc.exit_code) from None

    get_output().print_record({"profile": profile.name, **_redact(profile.fields())})
