"""Resolution engine -- picks exactly one credential source for a target.

Precedence (high to low, first match wins, each tier all-or-nothing):

1. **Explicit config** -- fields set on the :class:`~dbauth.models.ConfigContext`.
2. **Environment** -- ``DATABRICKS_*`` variables, read once into a
   ``ConfigContext`` by :func:`~dbauth.config.read_environment`.
3. **Named profile** -- ``context.profile`` or ``DATABRICKS_CONFIG_PROFILE``.
4. **Fallback profile** -- the ``DEFAULT`` section (only when no profile
   was named).
5. **Delegated auth_type** -- an explicit ``databricks-cli`` / ``azure-cli``
   auth type, with the host from the same source.

In tiers 1 and 2 only methods recognisable from fields are considered
(``pat``: host + token; ``oauth-m2m``: host + client id + secret). Two
complete methods in one tier is an :class:`~dbauth.exceptions.AmbiguousAuthError`
unless ``auth_type`` picks one. Fields are never merged across tiers.

The choice itself is made by :func:`select_method`, a pure function over
its inputs; :class:`Resolver` adds profile loading and adapter dispatch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Union

from dbauth.auth.base import CredentialAdapter
from dbauth.auth.registry import AdapterRegistry, create_default_registry
from dbauth.auth.token_cache import TokenCache
from dbauth.config import Settings, default_config_file, read_environment
from dbauth.exceptions import (
    AmbiguousAuthError,
    DbauthError,
    MissingFieldError,
    NoAuthError,
    NotFoundError,
)
from dbauth.models import (
    AuthFields,
    AuthType,
    ConfigContext,
    Credential,
    Outcome,
    Profile,
    ResolutionTrace,
    Tier,
)
from dbauth.profiles import DEFAULT_PROFILE, ProfileStore

logger = logging.getLogger(__name__)

ProfileSource = Union[Mapping[str, Profile], Callable[[], Mapping[str, Profile]]]
"""Profiles by name, or a zero-argument loader called only if a profile tier is reached."""


@dataclass(frozen=True)
class Selection:
    """The method chosen by :func:`select_method` and the single tier's fields for it."""

    auth_type: AuthType
    fields: AuthFields
    tier: Tier


def _missing(adapter: CredentialAdapter, fields: AuthFields) -> Optional[MissingFieldError]:
    try:
        adapter.require(fields)
    except MissingFieldError as exc:
        return exc
    return None


def _field_tier(
    tier: Tier,
    context: ConfigContext,
    source: str,
    registry: AdapterRegistry,
    trace: ResolutionTrace,
) -> tuple[Optional[Selection], Optional[MissingFieldError]]:
    """Evaluate tier 1 or 2 over one context."""
    fields = AuthFields.from_context(context, source)
    requested = context.auth_type

    if requested is not None and requested.is_delegated:
        trace.record(tier, source, Outcome.SKIPPED, f"auth_type {requested.value} is delegated")
        return None, None

    if requested is not None:
        error = _missing(registry.get(requested), fields)
        if error is None:
            trace.record(tier, source, Outcome.SELECTED, "auth_type set", auth_type=requested)
            return Selection(requested, fields, tier), None
        trace.record(
            tier, source, Outcome.INCOMPLETE, f"missing {', '.join(error.missing)}", auth_type=requested
        )
        return None, error

    complete = registry.complete_methods(fields)
    if len(complete) > 1:
        names = [m.value for m in complete]
        trace.record(tier, source, Outcome.AMBIGUOUS, " and ".join(names))
        raise AmbiguousAuthError(names, source)
    if complete:
        trace.record(tier, source, Outcome.SELECTED, auth_type=complete[0])
        return Selection(complete[0], fields, tier), None

    partial = registry.infer(fields)
    if partial:
        error = _missing(registry.get(partial[0]), fields)
        assert error is not None
        trace.record(
            tier, source, Outcome.INCOMPLETE, f"missing {', '.join(error.missing)}", auth_type=partial[0]
        )
        return None, error

    trace.record(tier, source, Outcome.SKIPPED, "no complete credential set")
    return None, None


def _profile_tier(
    tier: Tier,
    profile: Profile,
    registry: AdapterRegistry,
    trace: ResolutionTrace,
) -> tuple[Optional[Selection], Optional[MissingFieldError]]:
    """Evaluate tier 3 or 4 over one profile."""
    fields = AuthFields.from_profile(profile)
    source = fields.source

    if profile.auth_type is not None:
        method = profile.auth_type
        detail = "auth_type set"
    else:
        candidates = registry.infer(fields)
        if len(candidates) > 1:
            names = [m.value for m in candidates]
            trace.record(tier, source, Outcome.AMBIGUOUS, " and ".join(names))
            raise AmbiguousAuthError(names, source)
        if not candidates:
            error = MissingFieldError(
                "profile",
                ["auth_type"],
                message=f"{source} has no auth_type and no token or client credentials",
            )
            trace.record(tier, source, Outcome.INCOMPLETE, "no auth_type and no credential fields")
            return None, error
        method = candidates[0]
        detail = "inferred from fields"

    error = _missing(registry.get(method), fields)
    if error is not None:
        trace.record(tier, source, Outcome.INCOMPLETE, str(error), auth_type=method)
        return None, error
    trace.record(tier, source, Outcome.SELECTED, detail, auth_type=method)
    return Selection(method, fields, tier), None


def _delegated_tier(
    context: ConfigContext,
    environment: ConfigContext,
    registry: AdapterRegistry,
    settings: Settings,
    trace: ResolutionTrace,
) -> tuple[Optional[Selection], Optional[MissingFieldError]]:
    """Evaluate tier 5: an explicit delegated auth_type."""
    tier = Tier.DELEGATED
    candidates = (
        (context, "explicit config", environment, "environment"),
        (environment, "environment", context, "explicit config"),
    )
    for source_ctx, source, other_ctx, other in candidates:
        requested = source_ctx.auth_type
        if requested is None or not requested.is_delegated:
            continue

        host = source_ctx.host
        detail = "host from same source"
        if host is None and settings.delegated_host_fallback and other_ctx.host is not None:
            host = other_ctx.host
            detail = f"host from {other}"
        fields = AuthFields(host=host, account_id=source_ctx.account_id, source=source)

        error = _missing(registry.get(requested), fields)
        if error is not None:
            trace.record(tier, source, Outcome.INCOMPLETE, str(error), auth_type=requested)
            return None, error
        trace.record(tier, source, Outcome.SELECTED, detail, auth_type=requested)
        return Selection(requested, fields, tier), None

    trace.record(tier, "auth_type", Outcome.SKIPPED, "no delegated auth_type given")
    return None, None


def select_method(
    context: ConfigContext,
    environment: ConfigContext,
    profiles: ProfileSource,
    registry: Optional[AdapterRegistry] = None,
    settings: Optional[Settings] = None,
    trace: Optional[ResolutionTrace] = None,
) -> Selection:
    """Apply the precedence order and return the single selected method.

    Performs no network or subprocess activity. Profiles are only loaded if
    tier 3 or 4 is reached.

    Args:
        context: Explicit fields from the caller.
        environment: The environment snapshot, in the same shape.
        profiles: Profiles by name, or a loader returning them.
        registry: Supplies each method's required fields. Defaults to
            :func:`~dbauth.auth.registry.create_default_registry`.
        settings: Consulted for ``delegated_host_fallback``.
        trace: Receives one entry per tier checked.

    Raises:
        AmbiguousAuthError: Two complete methods at one tier.
        NotFoundError: The named profile does not exist.
        ConfigParseError: The profile file was needed and is malformed.
        MissingFieldError: The last tier with a candidate was incomplete.
        NoAuthError: No tier produced a candidate.
    """
    settings = settings or Settings()
    registry = registry or create_default_registry(settings)
    trace = trace if trace is not None else ResolutionTrace()
    last_missing: Optional[MissingFieldError] = None

    for tier, ctx, source in (
        (Tier.EXPLICIT, context, "explicit config"),
        (Tier.ENVIRONMENT, environment, "environment"),
    ):
        selection, missing = _field_tier(tier, ctx, source, registry, trace)
        if selection is not None:
            return selection
        last_missing = missing or last_missing

    loaded: Optional[Mapping[str, Profile]] = None
    profile_name = context.profile or environment.profile

    def _profiles() -> Mapping[str, Profile]:
        nonlocal loaded
        if loaded is None:
            try:
                loaded = profiles() if callable(profiles) else profiles
            except DbauthError as exc:
                tier = Tier.NAMED_PROFILE if profile_name else Tier.DEFAULT_PROFILE
                trace.record(tier, "profile file", Outcome.ERROR, exc.message.splitlines()[0])
                raise
        return loaded

    if profile_name:
        source = "explicit config" if context.profile else "environment"
        profile = _profiles().get(profile_name)
        if profile is None:
            trace.record(Tier.NAMED_PROFILE, f"profile [{profile_name}]", Outcome.NOT_FOUND, f"named in {source}")
            available = ", ".join(_profiles()) or "(none)"
            raise NotFoundError(
                f"profile '{profile_name}' not found. Available profiles: {available}"
            )
        selection, missing = _profile_tier(Tier.NAMED_PROFILE, profile, registry, trace)
        if selection is not None:
            return selection
        last_missing = missing or last_missing
        trace.record(Tier.DEFAULT_PROFILE, f"profile [{DEFAULT_PROFILE}]", Outcome.SKIPPED, "a profile was named")
    else:
        trace.record(Tier.NAMED_PROFILE, "profile", Outcome.SKIPPED, "no profile named")
        fallback = _profiles().get(DEFAULT_PROFILE)
        if fallback is None:
            trace.record(Tier.DEFAULT_PROFILE, f"profile [{DEFAULT_PROFILE}]", Outcome.SKIPPED, "not present")
        else:
            selection, missing = _profile_tier(Tier.DEFAULT_PROFILE, fallback, registry, trace)
            if selection is not None:
                return selection
            last_missing = missing or last_missing

    selection, missing = _delegated_tier(context, environment, registry, settings, trace)
    if selection is not None:
        return selection
    last_missing = missing or last_missing

    if last_missing is not None:
        raise last_missing
    raise NoAuthError(
        "no authentication method is configured. Set host and token or client "
        "credentials, name a profile, or add a [DEFAULT] profile"
    )


class Resolver:
    """Resolves a :class:`ConfigContext` into a :class:`Credential`.

    One resolver is meant to be shared across a process: its token cache
    lets concurrent resolutions for the same principal share one token.

    Args:
        store: Profile store to use. When omitted, a store is built per call
            from :func:`~dbauth.config.default_config_file`.
        registry: Adapter registry. Defaults to
            :func:`~dbauth.auth.registry.create_default_registry`.
        cache: Token cache shared with the default registry.
        settings: Engine settings.

    Example::

        resolver = Resolver()
        credential = resolver.resolve(ConfigContext(profile="my-workspace"))
        headers = credential.headers()
    """

    def __init__(
        self,
        store: Optional[ProfileStore] = None,
        registry: Optional[AdapterRegistry] = None,
        cache: Optional[TokenCache] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.cache = cache or TokenCache(self.settings)
        self.registry = registry or create_default_registry(self.settings, self.cache)
        self._store = store

    def resolve(
        self,
        context: ConfigContext,
        environment: Optional[ConfigContext] = None,
    ) -> Credential:
        """Resolve *context* into a credential.

        Args:
            context: Explicit fields from the caller.
            environment: Environment snapshot; read from ``os.environ`` when
                omitted.

        Raises:
            DbauthError: Any resolution failure, with the trace attached.
        """
        credential, _ = self.resolve_with_trace(context, environment)
        return credential

    def resolve_with_trace(
        self,
        context: ConfigContext,
        environment: Optional[ConfigContext] = None,
    ) -> tuple[Credential, ResolutionTrace]:
        """Like :meth:`resolve`, also returning the trace of what was checked."""
        if environment is None:
            environment = read_environment()
        trace = ResolutionTrace()
        store = self._store_for(context, environment)
        try:
            selection = select_method(
                context, environment, store.load, self.registry, self.settings, trace
            )
            adapter = self.registry.get(selection.auth_type)
            try:
                credential = adapter.produce_credential(selection.fields)
            except DbauthError as exc:
                trace.record(
                    selection.tier,
                    selection.fields.source,
                    Outcome.ERROR,
                    exc.message.splitlines()[0],
                    auth_type=selection.auth_type,
                )
                raise
        except DbauthError as exc:
            exc.with_trace(trace)
            raise

        logger.debug(
            "Resolved %s credential for %s from %s",
            credential.auth_type.value,
            credential.host,
            selection.fields.source,
        )
        return credential, trace

    def trace(
        self,
        context: ConfigContext,
        environment: Optional[ConfigContext] = None,
    ) -> tuple[Optional[Credential], ResolutionTrace]:
        """Resolve for diagnostics: never raises a resolution error.

        Returns ``(None, trace)`` when resolution fails; the failing tier is
        the last entry of the trace.
        """
        try:
            return self.resolve_with_trace(context, environment)
        except DbauthError as exc:
            logger.debug("Resolution failed: %s", exc.reason)
            return None, exc.trace if exc.trace is not None else ResolutionTrace()

    def _store_for(self, context: ConfigContext, environment: ConfigContext) -> ProfileStore:
        # An explicit config_file on the context overrides even an injected store.
        if self._store is not None and not context.config_file:
            return self._store
        return ProfileStore(default_config_file(context, environment))
