"""Built-in CLI sub-commands for dbauth.

* :mod:`~dbauth.commands.profiles` -- list and show profiles from the
  profile file.
* :mod:`~dbauth.commands.auth` -- describe how a target resolves and print
  tokens for it.

Each module exports a :class:`typer.Typer` sub-application registered on
the root app by :func:`dbauth.app.main`.
"""
