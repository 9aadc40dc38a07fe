"""Typer application and CLI entry point for dbauth.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers, registers the built-in
sub-commands (``profiles``, ``auth``) and invokes the Typer app.
:class:`~dbauth.exceptions.DbauthError` exits with the error's code;
any other exception is written to a crash log under the data directory.

See Also:
    :mod:`dbauth.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from dbauth import __version__
from dbauth.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="dbauth",
    help="Resolve workspace credentials from config, environment, profiles and CLIs.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"dbauth {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool, console: Any) -> None:
    from rich.logging import RichHandler

    root = logging.getLogger("dbauth")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    if verbose:
        root.addHandler(RichHandler(console=console, show_path=False))
        root.setLevel(logging.DEBUG)
    else:
        root.setLevel(logging.WARNING)


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    profile: Optional[str] = typer.Option(
        None, "--profile", "-p", help="Default profile for sub-commands."
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~dbauth.output.OutputManager` from CLI
    flags, routes ``dbauth`` log records to stderr when ``--verbose`` is
    given, and stores shared options in ``ctx.obj``.
    """
    from dbauth.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    set_output(output)
    _configure_logging(verbose, output.stderr_console)

    ctx.ensure_object(dict)
    ctx.obj["profile"] = profile
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from dbauth.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    )
    return str(log_path)


def register_commands() -> None:
    """Attach the built-in sub-command groups to :data:`app`."""
    from dbauth.commands.auth import auth_app
    from dbauth.commands.profiles import profiles_app

    registered = {group.name for group in app.registered_groups}
    if "profiles" not in registered:
        app.add_typer(profiles_app, name="profiles", help="Inspect the profile file.")
    if "auth" not in registered:
        app.add_typer(auth_app, name="auth", help="Describe and exercise credential resolution.")


def main() -> None:
    """CLI entry point invoked by the ``dbauth`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        register_commands()
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from dbauth.exceptions import DbauthError
        from dbauth.output import error

        if isinstance(exc, DbauthError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
