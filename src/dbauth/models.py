"""Canonical models shared across all dbauth modules.

This is the single source of truth for data shapes in the project. The
models fall into three groups:

**Inputs** -- what a caller hands to the resolver:
    :class:`AuthType`, :class:`ConfigContext`, and :class:`Profile`.

**Outputs** -- what the resolver hands back:
    :class:`Credential` (with a live bearer accessor) and the diagnostic
    :class:`ResolutionTrace` made of :class:`TraceEntry` items.

**Token cache internals** -- :class:`TokenKey` and :class:`TokenRecord`.

All pydantic models use Pydantic v2. Inputs are frozen so a single
resolution always sees the same values. :class:`Profile` uses
``extra="allow"`` so that keys this engine does not understand are kept in
``model_extra`` rather than rejected.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator


class AuthType(str, enum.Enum):
    """Closed set of supported authentication methods.

    Each value is the tag written in a profile's ``auth_type`` key and in
    ``DATABRICKS_AUTH_TYPE``.
    """

    PAT = "pat"
    OAUTH_M2M = "oauth-m2m"
    DATABRICKS_CLI = "databricks-cli"
    AZURE_CLI = "azure-cli"

    @property
    def is_delegated(self) -> bool:
        """Whether the token comes from an external CLI rather than config fields."""
        return self in (AuthType.DATABRICKS_CLI, AuthType.AZURE_CLI)


def normalize_host(value: Optional[str]) -> Optional[str]:
    """Return *value* with an ``https://`` scheme and no trailing slash."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if "://" not in value:
        value = f"https://{value}"
    return value.rstrip("/")


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class ConfigContext(BaseModel):
    """One resolution request.

    Explicit fields set by the caller (for example provider arguments or CLI
    flags). The process environment is read into this same shape by
    :func:`dbauth.config.read_environment` so the resolver compares like
    with like.

    Example::

        ConfigContext(profile="my-workspace")
        ConfigContext(host="https://h", token="dapi123")
    """

    model_config = ConfigDict(frozen=True)

    host: Optional[str] = None
    token: Optional[str] = Field(default=None, repr=False)
    client_id: Optional[str] = None
    client_secret: Optional[str] = Field(default=None, repr=False)
    auth_type: Optional[AuthType] = None
    account_id: Optional[str] = None
    profile: Optional[str] = None
    config_file: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def _strip_blanks(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("host")
    @classmethod
    def _normalize_host(cls, value: Optional[str]) -> Optional[str]:
        return normalize_host(value)

    def credential_fields(self) -> dict[str, str]:
        """Return the populated connection and credential fields."""
        names = ("host", "token", "client_id", "client_secret", "account_id")
        return {n: getattr(self, n) for n in names if getattr(self, n) is not None}

    def is_empty(self) -> bool:
        return not self.credential_fields() and self.auth_type is None


class Profile(BaseModel):
    """A named section loaded from the profile file.

    Values are kept exactly as written; hosts are normalised later, when
    the profile becomes :class:`AuthFields`. Keys the engine does not model
    (``cluster_id``, ``azure_tenant_id``, ``warehouse_id``...) are preserved
    in ``model_extra``, including a key literally called ``name``: the
    section name lives outside the field namespace.

    See Also:
        :class:`~dbauth.profiles.ProfileStore`: Loads profiles from disk.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    host: Optional[str] = None
    auth_type: Optional[AuthType] = None
    token: Optional[str] = Field(default=None, repr=False)
    client_id: Optional[str] = None
    client_secret: Optional[str] = Field(default=None, repr=False)
    account_id: Optional[str] = None

    _name: str = PrivateAttr(default="")
    _source_path: Optional[str] = PrivateAttr(default=None)

    def __init__(self, name: str, **data: Any) -> None:
        super().__init__(**data)
        self._name = name

    @classmethod
    def from_section(
        cls, name: str, values: dict[str, str], source_path: Optional[str] = None
    ) -> "Profile":
        """Build a profile from one parsed section.

        Args:
            name: Section name.
            values: Raw key/value pairs of the section.
            source_path: File the section was read from, if any.

        Raises:
            pydantic.ValidationError: If a known key has an invalid value.
        """
        profile = cls.model_validate(values)
        profile._name = name
        profile._source_path = source_path
        return profile

    @property
    def name(self) -> str:
        return self._name

    @property
    def source_path(self) -> Optional[str]:
        """Profile file this section came from; ``None`` when built in memory."""
        return self._source_path

    @field_validator("host", "token", "client_id", "client_secret", "account_id", "auth_type", mode="before")
    @classmethod
    def _strip_blanks(cls, value: Any) -> Any:
        return _blank_to_none(value)

    def fields(self) -> dict[str, str]:
        """Return every populated key of the section, known and unknown."""
        data = self.model_dump(exclude_none=True, mode="json")
        return {k: str(v) for k, v in data.items()}


class AuthFields(BaseModel):
    """The fields one tier supplies to an adapter.

    Built from a single tier only; the resolver never merges two tiers into
    one ``AuthFields``. ``config_file`` is set when the fields came from a
    profile file, so delegated tools can be pointed at the same file.
    """

    model_config = ConfigDict(frozen=True)

    host: Optional[str] = None
    token: Optional[str] = Field(default=None, repr=False)
    client_id: Optional[str] = None
    client_secret: Optional[str] = Field(default=None, repr=False)
    account_id: Optional[str] = None
    profile: Optional[str] = None
    config_file: Optional[str] = None
    source: str = ""

    @field_validator("host")
    @classmethod
    def _normalize_host(cls, value: Optional[str]) -> Optional[str]:
        return normalize_host(value)

    @classmethod
    def from_context(cls, context: ConfigContext, source: str) -> "AuthFields":
        return cls(source=source, **context.credential_fields())

    @classmethod
    def from_profile(cls, profile: Profile) -> "AuthFields":
        return cls(
            host=profile.host,
            token=profile.token,
            client_id=profile.client_id,
            client_secret=profile.client_secret,
            account_id=profile.account_id,
            profile=profile.name,
            config_file=profile.source_path,
            source=f"profile [{profile.name}]",
        )


# --- Token cache ---


class TokenKey(BaseModel):
    """Identity of a cache entry: which adapter issued a token, for which host and principal."""

    model_config = ConfigDict(frozen=True)

    adapter: str
    host: str
    principal: str

    def __str__(self) -> str:
        return f"{self.adapter}:{self.principal}@{self.host}"


class TokenRecord(BaseModel):
    """An issued OAuth token held by :class:`~dbauth.auth.token_cache.TokenCache`.

    Attributes:
        access_token: The bearer value.
        expires_at: Expiry as epoch seconds, or ``None`` for tokens that do
            not expire.
        refresh_token: Refresh token issued alongside the access token.
        token_type: Token type reported by the issuer.
        identity: The cache key this record was issued for.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(repr=False)
    expires_at: Optional[float] = None
    refresh_token: Optional[str] = Field(default=None, repr=False)
    token_type: str = "Bearer"
    identity: Optional[TokenKey] = None

    def remaining(self, now: float) -> float:
        """Seconds of lifetime left at *now* (``inf`` for non-expiring tokens)."""
        if self.expires_at is None:
            return math.inf
        return self.expires_at - now


# --- Resolved credential ---


class Credential:
    """A resolved credential for one logical target.

    ``host`` and ``auth_type`` are fixed when the credential is produced;
    only the bearer value may change as the underlying token is refreshed.

    Args:
        host: Effective workspace or account host.
        auth_type: The method that produced this credential.
        bearer: Zero-argument callable returning the current bearer value.
        expiry: Optional zero-argument callable returning the current
            token's expiry (epoch seconds), for diagnostics.

    Example::

        cred = resolver.resolve(ConfigContext(profile="dev"))
        httpx.get(f"{cred.host}/api/2.0/clusters/list", headers=cred.headers())
    """

    def __init__(
        self,
        host: str,
        auth_type: AuthType,
        bearer: Callable[[], str],
        expiry: Optional[Callable[[], Optional[float]]] = None,
    ):
        self._host = host
        self._auth_type = auth_type
        self._bearer = bearer
        self._expiry = expiry

    @classmethod
    def static(cls, host: str, auth_type: AuthType, token: str) -> "Credential":
        return cls(host, auth_type, lambda: token)

    @property
    def host(self) -> str:
        return self._host

    @property
    def auth_type(self) -> AuthType:
        return self._auth_type

    def token(self) -> str:
        """Return a currently valid bearer value, refreshing if needed."""
        return self._bearer()

    def expires_at(self) -> Optional[float]:
        if self._expiry is None:
            return None
        return self._expiry()

    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token()}"}

    def __repr__(self) -> str:
        return f"Credential(host={self._host!r}, auth_type={self._auth_type.value!r})"


# --- Diagnostics ---


class Tier(enum.IntEnum):
    """Precedence levels, highest first."""

    EXPLICIT = 1
    ENVIRONMENT = 2
    NAMED_PROFILE = 3
    DEFAULT_PROFILE = 4
    DELEGATED = 5

    @property
    def label(self) -> str:
        return {
            Tier.EXPLICIT: "explicit config",
            Tier.ENVIRONMENT: "environment",
            Tier.NAMED_PROFILE: "named profile",
            Tier.DEFAULT_PROFILE: "default profile",
            Tier.DELEGATED: "delegated auth_type",
        }[self]


class Outcome(str, enum.Enum):
    SELECTED = "selected"
    SKIPPED = "skipped"
    INCOMPLETE = "incomplete"
    AMBIGUOUS = "ambiguous"
    NOT_FOUND = "not_found"
    ERROR = "error"


class TraceEntry(BaseModel):
    """One (source checked, outcome) pair."""

    model_config = ConfigDict(frozen=True)

    tier: Tier
    source: str
    outcome: Outcome
    detail: str = ""
    auth_type: Optional[AuthType] = None


@dataclass
class ResolutionTrace:
    """Ordered record of what one resolution checked. Never persisted."""

    entries: list[TraceEntry] = field(default_factory=list)

    def record(
        self,
        tier: Tier,
        source: str,
        outcome: Outcome,
        detail: str = "",
        auth_type: Optional[AuthType] = None,
    ) -> TraceEntry:
        entry = TraceEntry(
            tier=tier, source=source, outcome=outcome, detail=detail, auth_type=auth_type
        )
        self.entries.append(entry)
        return entry

    @property
    def selected(self) -> Optional[TraceEntry]:
        for entry in self.entries:
            if entry.outcome == Outcome.SELECTED:
                return entry
        return None

    def __iter__(self) -> Iterator[TraceEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)
