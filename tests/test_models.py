"""Tests for dbauth.models."""

from __future__ import annotations

import math

import pytest
from pydantic import ValidationError

from dbauth.models import (
    AuthFields,
    AuthType,
    ConfigContext,
    Credential,
    Outcome,
    Profile,
    ResolutionTrace,
    Tier,
    TokenKey,
    TokenRecord,
    normalize_host,
)


class TestNormalizeHost:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("https://h.example.com/", "https://h.example.com"),
            ("h.example.com", "https://h.example.com"),
            ("http://localhost:8080", "http://localhost:8080"),
            ("  ", None),
            (None, None),
        ],
    )
    def test_normalize(self, raw, expected) -> None:
        assert normalize_host(raw) == expected


class TestAuthType:
    def test_values(self) -> None:
        assert [t.value for t in AuthType] == ["pat", "oauth-m2m", "databricks-cli", "azure-cli"]

    def test_is_delegated(self) -> None:
        assert AuthType.DATABRICKS_CLI.is_delegated
        assert AuthType.AZURE_CLI.is_delegated
        assert not AuthType.PAT.is_delegated
        assert not AuthType.OAUTH_M2M.is_delegated


class TestConfigContext:
    def test_frozen(self) -> None:
        ctx = ConfigContext(host="h")
        with pytest.raises(ValidationError):
            ctx.host = "other"  # type: ignore[misc]

    def test_secrets_not_in_repr(self) -> None:
        ctx = ConfigContext(host="h", token="dapi-secret", client_secret="shh")
        assert "dapi-secret" not in repr(ctx)
        assert "shh" not in repr(ctx)

    def test_auth_type_from_string(self) -> None:
        assert ConfigContext(auth_type="oauth-m2m").auth_type is AuthType.OAUTH_M2M

    def test_credential_fields(self) -> None:
        ctx = ConfigContext(host="h", token="t", profile="p")
        assert ctx.credential_fields() == {"host": "https://h", "token": "t"}

    def test_is_empty(self) -> None:
        assert ConfigContext(profile="p").is_empty()
        assert not ConfigContext(auth_type="azure-cli").is_empty()


class TestAuthFields:
    def test_from_profile(self) -> None:
        profile = Profile(name="dev", host="h", token="t")
        fields = AuthFields.from_profile(profile)
        assert fields.profile == "dev"
        assert fields.source == "profile [dev]"
        assert fields.host == "https://h"
        assert fields.config_file is None
        assert profile.host == "h"

    def test_from_section_keeps_source(self) -> None:
        profile = Profile.from_section("dev", {"host": "h", "name": "x"}, source_path="/cfg")
        assert profile.name == "dev"
        assert profile.model_extra == {"name": "x"}
        assert AuthFields.from_profile(profile).config_file == "/cfg"

    def test_from_context(self) -> None:
        fields = AuthFields.from_context(ConfigContext(client_id="c"), "environment")
        assert fields.client_id == "c"
        assert fields.source == "environment"
        assert fields.profile is None


class TestTokenRecord:
    def test_remaining(self) -> None:
        record = TokenRecord(access_token="a", expires_at=100.0)
        assert record.remaining(40.0) == 60.0

    def test_never_expires(self) -> None:
        assert TokenRecord(access_token="a").remaining(1e12) == math.inf

    def test_key_is_hashable(self) -> None:
        key = TokenKey(adapter="oauth-m2m", host="https://h", principal="c")
        assert {key: 1}[TokenKey(adapter="oauth-m2m", host="https://h", principal="c")] == 1
        assert str(key) == "oauth-m2m:c@https://h"


class TestCredential:
    def test_static(self) -> None:
        cred = Credential.static("https://h", AuthType.PAT, "dapi1")
        assert cred.token() == "dapi1"
        assert cred.headers() == {"Authorization": "Bearer dapi1"}
        assert cred.expires_at() is None

    def test_bearer_is_called_each_time(self) -> None:
        values = iter(["one", "two"])
        cred = Credential("https://h", AuthType.OAUTH_M2M, lambda: next(values))
        assert cred.token() == "one"
        assert cred.token() == "two"

    def test_repr_hides_token(self) -> None:
        cred = Credential.static("https://h", AuthType.PAT, "dapi-secret")
        assert "dapi-secret" not in repr(cred)


class TestResolutionTrace:
    def test_record_and_selected(self) -> None:
        trace = ResolutionTrace()
        trace.record(Tier.EXPLICIT, "explicit config", Outcome.SKIPPED)
        trace.record(Tier.ENVIRONMENT, "environment", Outcome.SELECTED, auth_type=AuthType.PAT)
        assert len(trace) == 2
        assert trace.selected is not None
        assert trace.selected.tier is Tier.ENVIRONMENT
        assert [e.outcome for e in trace] == [Outcome.SKIPPED, Outcome.SELECTED]

    def test_no_selection(self) -> None:
        assert ResolutionTrace().selected is None

    def test_tier_labels(self) -> None:
        assert Tier.DEFAULT_PROFILE.label == "default profile"
