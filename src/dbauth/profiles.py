"""Profile store -- loads named connection profiles from the profile file.

The profile file is INI-like::

    [DEFAULT]
    host  = https://adb-1234.azuredatabricks.net
    token = dapi...

    [my-workspace]
    host      = https://my-workspace.cloud.databricks.com
    auth_type = databricks-cli

Section names and keys are case-sensitive. ``DEFAULT`` is an ordinary
section that acts as the fallback profile; unlike :mod:`configparser`'s
own default section, its keys are never inherited by other sections.
Interpolation is disabled so secrets containing ``%`` survive intact.
Comments (``#`` and ``;``) and blank lines are ignored.

The file is read fresh on every :meth:`ProfileStore.load` so that edits made
by a companion CLI (for example after ``databricks auth login``) are picked
up without restarting. This module never writes the file.
"""

from __future__ import annotations

import configparser
import logging
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from dbauth.exceptions import ConfigParseError, NotFoundError
from dbauth.models import Profile

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = "DEFAULT"
"""Reserved section name used when no profile is named."""

# configparser treats its default section specially; point that behaviour at
# a name no real file uses so DEFAULT stays an ordinary section.
_NO_INHERITANCE = "\x00dbauth-no-default-section"


def _new_parser() -> configparser.ConfigParser:
    parser = configparser.ConfigParser(
        default_section=_NO_INHERITANCE,
        interpolation=None,
        strict=True,
        comment_prefixes=("#", ";"),
        inline_comment_prefixes=None,
    )
    parser.optionxform = str  # type: ignore[assignment,method-assign]
    return parser


def _parse_error(exc: configparser.Error, path: Optional[str]) -> ConfigParseError:
    """Map a :mod:`configparser` error to :class:`ConfigParseError` with location."""
    if isinstance(exc, configparser.MissingSectionHeaderError):
        return ConfigParseError("key outside of any [section]", path=path, line=exc.lineno)
    if isinstance(exc, configparser.DuplicateSectionError):
        return ConfigParseError(
            "duplicate section", path=path, line=exc.lineno, section=exc.section
        )
    if isinstance(exc, configparser.DuplicateOptionError):
        return ConfigParseError(
            f"duplicate key '{exc.option}'", path=path, line=exc.lineno, section=exc.section
        )
    if isinstance(exc, configparser.ParsingError):
        line = exc.errors[0][0] if exc.errors else None
        return ConfigParseError("line is not a 'key = value' pair", path=path, line=line)
    return ConfigParseError(str(exc), path=path)


def parse_profiles(text: str, path: Optional[str] = None) -> dict[str, Profile]:
    """Parse profile-file *text* into profiles keyed by section name.

    Args:
        text: The file contents.
        path: File the text was read from. Used in error messages and
            recorded as each profile's :attr:`~dbauth.models.Profile.source_path`.

    Returns:
        Profiles in file order.

    Raises:
        ConfigParseError: On malformed syntax or an unsupported ``auth_type``.
    """
    parser = _new_parser()
    try:
        parser.read_string(text, source=path or "<string>")
    except configparser.Error as exc:
        raise _parse_error(exc, path) from exc

    profiles: dict[str, Profile] = {}
    for section in parser.sections():
        values = dict(parser.items(section, raw=True))
        try:
            profiles[section] = Profile.from_section(section, values, source_path=path)
        except ValidationError as exc:
            err = exc.errors()[0]
            field_name = ".".join(str(p) for p in err["loc"])
            raise ConfigParseError(
                f"invalid value for '{field_name}': {err['msg']}",
                path=path,
                section=section,
            ) from exc
    return profiles


def load_profiles(path: Union[str, Path]) -> dict[str, Profile]:
    """Read and parse the profile file at *path*.

    A missing file yields an empty mapping.

    Raises:
        ConfigParseError: If the file exists but is malformed or unreadable.
    """
    path = Path(path).expanduser()
    if not path.is_file():
        logger.debug("Profile file %s does not exist", path)
        return {}
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigParseError(f"cannot read profile file: {exc}", path=str(path)) from exc
    profiles = parse_profiles(text, str(path))
    logger.debug("Loaded %d profile(s) from %s", len(profiles), path)
    return profiles


class ProfileStore:
    """Named profiles backed by one profile file.

    Each :meth:`load` re-reads the file. :meth:`get`, :meth:`names` and
    :meth:`fallback` work on the most recent load, loading on first use.
    A store is safe to share between threads: a load builds a new mapping
    and swaps it in whole.

    Args:
        path: Location of the profile file.

    Example::

        store = ProfileStore("~/.databrickscfg")
        store.load()
        profile = store.get("my-workspace")
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path).expanduser()
        self._profiles: Optional[dict[str, Profile]] = None

    @property
    def path(self) -> Path:
        return self._path

    def load(self, path: Union[str, Path, None] = None) -> dict[str, Profile]:
        """Read the file fresh and return all profiles keyed by name.

        Args:
            path: Optional replacement path; subsequent calls use it too.
        """
        if path is not None:
            self._path = Path(path).expanduser()
        profiles = load_profiles(self._path)
        self._profiles = profiles
        return dict(profiles)

    def _current(self) -> dict[str, Profile]:
        profiles = self._profiles
        if profiles is None:
            self.load()
            profiles = self._profiles
            assert profiles is not None
        return profiles

    def get(self, name: str) -> Profile:
        """Return the profile called *name*.

        Raises:
            NotFoundError: If the file has no such section.
        """
        profiles = self._current()
        try:
            return profiles[name]
        except KeyError:
            available = ", ".join(profiles) or "(none)"
            raise NotFoundError(
                f"profile '{name}' not found in {self._path}. Available profiles: {available}"
            ) from None

    def names(self) -> list[str]:
        return list(self._current())

    def fallback(self) -> Optional[Profile]:
        """Return the reserved ``DEFAULT`` profile, or ``None``."""
        return self._current().get(DEFAULT_PROFILE)

    def __contains__(self, name: object) -> bool:
        return name in self._current()
