"""Tests for the OAuth client-credentials adapter."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import httpx
import pytest

from dbauth.adapters.oauth_m2m import OAuthM2MAdapter, token_endpoint
from dbauth.auth.token_cache import TokenCache
from dbauth.config import Settings
from dbauth.exceptions import AuthExchangeError, MissingFieldError
from dbauth.models import AuthFields, AuthType, TokenKey


POST = "dbauth.adapters.oauth_m2m.adapter.httpx.post"

FIELDS = AuthFields(
    host="https://h.cloud.databricks.com", client_id="sp-1", client_secret="s3cret", source="environment"
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_token_response(
    access_token: str = "m2m-token",
    expires_in: int | None = 3600,
    refresh_token: str | None = None,
) -> dict[str, object]:
    data: dict[str, object] = {"access_token": access_token, "token_type": "Bearer"}
    if expires_in is not None:
        data["expires_in"] = expires_in
    if refresh_token is not None:
        data["refresh_token"] = refresh_token
    return data


def _mock_httpx_post(
    token_response: dict[str, object] | None = None,
    status_code: int = 200,
) -> MagicMock:
    """Create a mock for httpx.post that returns a token response."""
    if token_response is None:
        token_response = _make_token_response()

    mock_response = MagicMock(spec=httpx.Response)
    mock_response.status_code = status_code
    mock_response.json.return_value = token_response
    mock_response.text = str(token_response)

    if status_code >= 400:
        mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
            message=f"HTTP {status_code}",
            request=MagicMock(),
            response=mock_response,
        )
    else:
        mock_response.raise_for_status.return_value = None

    return mock_response


@pytest.fixture
def adapter(settings: Settings, clock) -> OAuthM2MAdapter:
    return OAuthM2MAdapter(settings, TokenCache(settings, clock=clock))


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestTokenEndpoint:
    def test_workspace(self) -> None:
        assert token_endpoint("https://h") == "https://h/oidc/v1/token"

    def test_account(self) -> None:
        assert token_endpoint("https://accounts", "acc-1") == "https://accounts/oidc/accounts/acc-1/v1/token"


class TestOAuthM2MAdapter:
    def test_auth_type(self, adapter) -> None:
        assert adapter.auth_type is AuthType.OAUTH_M2M

    def test_successful_exchange(self, adapter, clock) -> None:
        with patch(POST, return_value=_mock_httpx_post()) as mock_post:
            credential = adapter.produce_credential(FIELDS)

        assert credential.token() == "m2m-token"
        assert credential.host == "https://h.cloud.databricks.com"
        assert credential.expires_at() == clock() + 3600
        mock_post.assert_called_once()
        args, kwargs = mock_post.call_args
        assert args[0] == "https://h.cloud.databricks.com/oidc/v1/token"
        assert kwargs["data"] == {"grant_type": "client_credentials", "scope": "all-apis"}
        assert kwargs["auth"] == ("sp-1", "s3cret")
        assert kwargs["timeout"] == 30.0

    def test_account_level_endpoint_and_key(self, adapter) -> None:
        fields = FIELDS.model_copy(update={"account_id": "acc-1"})
        with patch(POST, return_value=_mock_httpx_post()) as mock_post:
            adapter.produce_credential(fields)
        assert mock_post.call_args[0][0].endswith("/oidc/accounts/acc-1/v1/token")
        key = TokenKey(adapter="oauth-m2m", host=fields.host, principal="acc-1/sp-1")
        assert adapter.cache.peek(key) is not None

    def test_credential_survives_cache_clear(self, adapter) -> None:
        responses = [
            _mock_httpx_post(_make_token_response(access_token="t1")),
            _mock_httpx_post(_make_token_response(access_token="t2")),
        ]
        with patch(POST, side_effect=responses) as mock_post:
            credential = adapter.produce_credential(FIELDS)
            assert credential.token() == "t1"
            adapter.cache.clear()
            assert credential.token() == "t2"
        assert mock_post.call_count == 2

    def test_token_reused_until_near_expiry(self, adapter, clock) -> None:
        with patch(POST, return_value=_mock_httpx_post(_make_token_response(expires_in=100))) as mock_post:
            credential = adapter.produce_credential(FIELDS)
            credential.token()
            credential.token()
            assert mock_post.call_count == 1
            clock.advance(70)
            credential.token()
            assert mock_post.call_count == 2

    def test_refresh_token_grant(self, adapter, clock) -> None:
        responses = [
            _mock_httpx_post(_make_token_response("first", expires_in=100, refresh_token="r1")),
            _mock_httpx_post(_make_token_response("second", expires_in=100)),
        ]
        with patch(POST, side_effect=responses) as mock_post:
            credential = adapter.produce_credential(FIELDS)
            clock.advance(80)
            assert credential.token() == "second"
        assert mock_post.call_args[1]["data"] == {"grant_type": "refresh_token", "refresh_token": "r1"}

    def test_missing_expiry_defaults_to_one_hour(self, adapter, clock) -> None:
        with patch(POST, return_value=_mock_httpx_post(_make_token_response(expires_in=None))):
            credential = adapter.produce_credential(FIELDS)
        assert credential.expires_at() == clock() + 3600

    def test_client_error_not_retried(self, adapter) -> None:
        with patch(POST, return_value=_mock_httpx_post({"error": "invalid_client"}, 401)) as mock_post:
            with pytest.raises(AuthExchangeError, match="status 401"):
                adapter.produce_credential(FIELDS)
        # One request per cache attempt, no transport-level retries.
        assert mock_post.call_count == adapter.settings.max_refresh_attempts

    def test_server_error_retried(self, adapter) -> None:
        responses = [_mock_httpx_post({}, 503), _mock_httpx_post()]
        with patch(POST, side_effect=responses) as mock_post:
            credential = adapter.produce_credential(FIELDS)
        assert credential.token() == "m2m-token"
        assert mock_post.call_count == 2

    def test_transport_error_retried(self, adapter) -> None:
        with patch(POST, side_effect=[httpx.ConnectError("refused"), _mock_httpx_post()]):
            credential = adapter.produce_credential(FIELDS)
        assert credential.token() == "m2m-token"

    def test_missing_access_token(self, adapter) -> None:
        with patch(POST, return_value=_mock_httpx_post({"token_type": "Bearer"})):
            with pytest.raises(AuthExchangeError):
                adapter.produce_credential(FIELDS)

    def test_missing_fields_before_network(self, adapter) -> None:
        with patch(POST) as mock_post:
            with pytest.raises(MissingFieldError) as exc_info:
                adapter.produce_credential(AuthFields(host="https://h", client_id="sp-1"))
        assert exc_info.value.missing == ["client_secret"]
        mock_post.assert_not_called()
