"""Tests for credential validation, header derivation, and token refresh."""

from __future__ import annotations

import base64
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import httpx
import pytest

from zdcli.auth.oauth import OAuthConfig, OAuthToken, refresh_token
from zdcli.auth.token import (
    authorization_header,
    encode_token_credentials,
    validate_instance,
)
from zdcli.exceptions import AuthError, CredentialError
from zdcli.models import AuthType, Instance

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _token_response(status: int = 200, **body) -> httpx.Response:
    request = httpx.Request("POST", "https://acme.zendesk.com/oauth/tokens")
    return httpx.Response(status, json=body, request=request)


# ---------------------------------------------------------------------------
# Header derivation
# ---------------------------------------------------------------------------


class TestAuthorizationHeader:
    def test_token_credentials_encoding(self) -> None:
        encoded = encode_token_credentials("agent@acme.com", "tok123")
        assert base64.b64decode(encoded) == b"agent@acme.com/token:tok123"

    def test_token_mode_uses_basic(self, token_instance: Instance) -> None:
        header = authorization_header(token_instance)
        scheme, credentials = header.split(" ", 1)
        assert scheme == "Basic"
        assert base64.b64decode(credentials).decode() == "agent@acme.com/token:tok123"

    def test_oauth_mode_uses_bearer(self, oauth_instance: Instance) -> None:
        assert authorization_header(oauth_instance) == "Bearer access-1"

    def test_token_fields_ignored_in_oauth_mode(self, oauth_instance: Instance) -> None:
        oauth_instance.email = "someone@acme.com"
        oauth_instance.api_token = "unused"
        assert authorization_header(oauth_instance).startswith("Bearer ")


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidateInstance:
    def test_valid_token_instance(self, token_instance: Instance) -> None:
        validate_instance(token_instance)

    @pytest.mark.parametrize(
        "field,expected",
        [("email", "email"), ("api_token", "API token")],
    )
    def test_token_mode_requires_fields(
        self, token_instance: Instance, field: str, expected: str
    ) -> None:
        setattr(token_instance, field, "")
        with pytest.raises(CredentialError, match=expected) as exc_info:
            validate_instance(token_instance)
        assert exc_info.value.field == field

    @pytest.mark.parametrize(
        "field",
        [
            "oauth_client_id",
            "oauth_client_secret",
            "oauth_access_token",
            "oauth_refresh_token",
            "oauth_expiry",
        ],
    )
    def test_oauth_mode_requires_fields(self, oauth_instance: Instance, field: str) -> None:
        setattr(oauth_instance, field, None if field == "oauth_expiry" else "")
        with pytest.raises(CredentialError) as exc_info:
            validate_instance(oauth_instance)
        assert exc_info.value.field == field

    def test_first_missing_oauth_field_is_reported(self) -> None:
        instance = Instance(name="o", subdomain="acme", auth_type=AuthType.OAUTH)
        with pytest.raises(CredentialError) as exc_info:
            validate_instance(instance)
        assert exc_info.value.field == "oauth_client_id"

    def test_subdomain_required(self, token_instance: Instance) -> None:
        token_instance.subdomain = ""
        with pytest.raises(CredentialError, match="subdomain"):
            validate_instance(token_instance)

    def test_credential_error_is_auth_failure(self, token_instance: Instance) -> None:
        token_instance.email = ""
        with pytest.raises(AuthError) as exc_info:
            validate_instance(token_instance)
        assert exc_info.value.exit_code == 3


# ---------------------------------------------------------------------------
# OAuthToken
# ---------------------------------------------------------------------------


class TestOAuthToken:
    def test_valid_before_expiry(self) -> None:
        token = OAuthToken(access_token="a", expiry=NOW + timedelta(minutes=5))
        assert token.is_valid(NOW)

    def test_expiry_margin(self) -> None:
        token = OAuthToken(access_token="a", expiry=NOW + timedelta(seconds=5))
        assert not token.is_valid(NOW)

    def test_expired(self) -> None:
        token = OAuthToken(access_token="a", expiry=NOW - timedelta(seconds=1))
        assert not token.is_valid(NOW)

    def test_no_expiry_never_expires(self) -> None:
        assert OAuthToken(access_token="a").is_valid(NOW)

    def test_empty_access_token_is_invalid(self) -> None:
        assert not OAuthToken(access_token="").is_valid(NOW)

    def test_naive_expiry_treated_as_utc(self) -> None:
        token = OAuthToken(access_token="a", expiry=datetime(2026, 3, 1, 13, 0))
        assert token.is_valid(NOW)

    def test_from_token_response(self) -> None:
        token = OAuthToken.from_token_response(
            {"access_token": "a", "refresh_token": "r", "expires_in": 7200}, now=NOW
        )
        assert token.refresh_token == "r"
        assert token.token_type == "bearer"
        assert token.expiry == NOW + timedelta(hours=2)

    def test_missing_expires_in_defaults_to_one_hour(self) -> None:
        token = OAuthToken.from_token_response({"access_token": "a"}, now=NOW)
        assert token.expiry == NOW + timedelta(hours=1)

    def test_from_instance(self, oauth_instance: Instance) -> None:
        token = OAuthToken.from_instance(oauth_instance)
        assert token.access_token == "access-1"
        assert token.refresh_token == "refresh-1"
        assert token.expiry == oauth_instance.oauth_expiry


# ---------------------------------------------------------------------------
# Refresh
# ---------------------------------------------------------------------------


@pytest.fixture
def oauth_config() -> OAuthConfig:
    return OAuthConfig(subdomain="acme", client_id="zd_cli", client_secret="s3cret")


class TestRefreshToken:
    def test_valid_token_is_returned_unchanged(self, oauth_config: OAuthConfig) -> None:
        token = OAuthToken(
            access_token="a",
            refresh_token="r",
            expiry=datetime.now(timezone.utc) + timedelta(hours=1),
        )
        with patch("zdcli.auth.oauth.httpx.post") as mock_post:
            assert refresh_token(oauth_config, token) is token
        mock_post.assert_not_called()

    def test_expired_token_is_refreshed(self, oauth_config: OAuthConfig) -> None:
        token = OAuthToken(
            access_token="old",
            refresh_token="r-old",
            expiry=datetime.now(timezone.utc) - timedelta(minutes=1),
        )
        response = _token_response(access_token="new", refresh_token="r-new", expires_in=3600)
        with patch("zdcli.auth.oauth.httpx.post", return_value=response) as mock_post:
            refreshed = refresh_token(oauth_config, token)

        assert refreshed.access_token == "new"
        assert refreshed.refresh_token == "r-new"
        assert refreshed.is_valid()
        args, kwargs = mock_post.call_args
        assert args[0] == "https://acme.zendesk.com/oauth/tokens"
        assert kwargs["data"]["grant_type"] == "refresh_token"
        assert kwargs["data"]["refresh_token"] == "r-old"
        assert kwargs["data"]["client_secret"] == "s3cret"

    def test_refresh_token_carried_over(self, oauth_config: OAuthConfig) -> None:
        token = OAuthToken(access_token="old", refresh_token="keep", expiry=NOW)
        with patch(
            "zdcli.auth.oauth.httpx.post", return_value=_token_response(access_token="new")
        ):
            refreshed = refresh_token(oauth_config, token)
        assert refreshed.refresh_token == "keep"

    def test_missing_refresh_token(self, oauth_config: OAuthConfig) -> None:
        token = OAuthToken(access_token="old", expiry=NOW)
        with pytest.raises(AuthError, match="no refresh token"):
            refresh_token(oauth_config, token)

    def test_rejected_refresh(self, oauth_config: OAuthConfig) -> None:
        token = OAuthToken(access_token="old", refresh_token="r", expiry=NOW)
        response = _token_response(400, error="invalid_grant")
        with patch("zdcli.auth.oauth.httpx.post", return_value=response):
            with pytest.raises(AuthError, match="failed to refresh token.*400"):
                refresh_token(oauth_config, token)

    def test_response_without_access_token(self, oauth_config: OAuthConfig) -> None:
        token = OAuthToken(access_token="old", refresh_token="r", expiry=NOW)
        with patch(
            "zdcli.auth.oauth.httpx.post", return_value=_token_response(token_type="bearer")
        ):
            with pytest.raises(AuthError, match="access_token"):
                refresh_token(oauth_config, token)

    def test_malformed_response(self, oauth_config: OAuthConfig) -> None:
        token = OAuthToken(access_token="old", refresh_token="r", expiry=NOW)
        with patch(
            "zdcli.auth.oauth.httpx.post",
            return_value=_token_response(access_token="new", expires_in="never"),
        ):
            with pytest.raises(AuthError, match="failed to refresh token: malformed"):
                refresh_token(oauth_config, token)

    def test_transport_failure(self, oauth_config: OAuthConfig) -> None:
        token = OAuthToken(access_token="old", refresh_token="r", expiry=NOW)
        with patch(
            "zdcli.auth.oauth.httpx.post", side_effect=httpx.ConnectError("unreachable")
        ):
            with pytest.raises(AuthError, match="unreachable"):
                refresh_token(oauth_config, token)
