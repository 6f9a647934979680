"""
tests/test_oauth.py -- Tests for auth/oauth.py and the OAuth routes.

The authlib client is a MagicMock (see conftest.oauth_client), so no request
leaves the process. Redirect tests assert on Location headers; the api
fixture's TestClient does not follow redirects.

Covers:
  - Provider registry and GET /auth/providers reflect configured credentials
  - State carries the login/register intent
  - Google and GitHub profile normalization, unverified emails rejected
  - Callback: create, migrate, conflict and failure paths all redirect to the frontend
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock
from urllib.parse import parse_qs, urlparse

import pytest
from authlib.integrations.starlette_client import OAuthError

from auth.oauth import build_oauth, get_enabled_providers, get_oauth_profile, make_state, parse_intent
from core.config import Settings

FRONTEND = "http://frontend.test"


def _google_token(email: str = "new@example.com", verified: bool = True, sub: str = "g-1") -> dict:
    return {
        "access_token": "at",
        "userinfo": {"sub": sub, "email": email, "email_verified": verified, "name": "New Person"},
    }


def _json_response(payload) -> MagicMock:
    resp = MagicMock()
    resp.json.return_value = payload
    return resp


def _query(location: str) -> dict:
    return {k: v[0] for k, v in parse_qs(urlparse(location).query).items()}


class TestProviderRegistry:
    def test_no_credentials_no_providers(self) -> None:
        settings = Settings(_env_file=None, debug=True, google_client_id="", github_client_id="")
        assert get_enabled_providers(settings) == []
        assert build_oauth(settings).create_client("google") is None

    def test_configured_providers_are_registered(self) -> None:
        settings = Settings(
            _env_file=None,
            debug=True,
            google_client_id="id",
            google_client_secret="secret",
            github_client_id="",
            github_client_secret="",
        )
        assert [p["name"] for p in get_enabled_providers(settings)] == ["google"]
        oauth = build_oauth(settings)
        assert oauth.create_client("google") is not None
        assert oauth.create_client("github") is None

    def test_providers_endpoint(self, api) -> None:
        resp = api.client.get("/api/v1/auth/providers")
        assert resp.status_code == 200
        assert resp.json() == [{"name": "google", "label": "Google"}, {"name": "github", "label": "GitHub"}]


class TestState:
    def test_state_round_trips_intent(self) -> None:
        assert parse_intent(make_state("register")) == "register"
        assert parse_intent(make_state("login")) == "login"

    def test_state_nonce_is_random(self) -> None:
        assert make_state("login") != make_state("login")

    def test_unknown_or_missing_intent_defaults_to_login(self) -> None:
        assert parse_intent(None) == "login"
        assert parse_intent("bogus:abc") == "login"

    def test_make_state_rejects_unknown_intent(self) -> None:
        with pytest.raises(ValueError):
            make_state("link")


class TestProfileNormalization:
    @pytest.mark.asyncio
    async def test_google_profile(self) -> None:
        profile = await get_oauth_profile(MagicMock(), "google", _google_token())
        assert profile.provider == "google"
        assert profile.provider_id == "g-1"
        assert profile.email == "new@example.com"
        assert profile.name == "New Person"

    @pytest.mark.asyncio
    async def test_google_unverified_email_rejected(self) -> None:
        with pytest.raises(ValueError):
            await get_oauth_profile(MagicMock(), "google", _google_token(verified=False))

    @pytest.mark.asyncio
    async def test_github_uses_primary_verified_email(self) -> None:
        client = MagicMock()
        client.get = AsyncMock(
            side_effect=[
                _json_response({"id": 42, "login": "octocat", "name": None, "avatar_url": "https://gh.test/a.png"}),
                _json_response(
                    [
                        {"email": "old@example.com", "primary": False, "verified": True},
                        {"email": "octo@example.com", "primary": True, "verified": True},
                    ]
                ),
            ]
        )
        profile = await get_oauth_profile(client, "github", {"access_token": "at"})
        assert profile.provider_id == "42"
        assert profile.email == "octo@example.com"
        assert profile.name == "octocat"
        assert profile.picture == "https://gh.test/a.png"

    @pytest.mark.asyncio
    async def test_github_without_verified_primary_rejected(self) -> None:
        client = MagicMock()
        client.get = AsyncMock(
            side_effect=[
                _json_response({"id": 42, "login": "octocat"}),
                _json_response([{"email": "octo@example.com", "primary": True, "verified": False}]),
            ]
        )
        with pytest.raises(ValueError):
            await get_oauth_profile(client, "github", {"access_token": "at"})


class TestAuthorizeRedirect:
    def test_login_redirects_with_login_intent(self, api, oauth_client) -> None:
        resp = api.client.get("/api/v1/auth/login/google")
        assert resp.status_code == 302
        assert resp.headers["location"] == "https://provider.test/authorize"
        call = oauth_client.authorize_redirect.await_args
        assert call.args[1] == api.state.settings.google_redirect_uri
        assert call.kwargs["state"].startswith("login:")

    def test_register_redirects_with_register_intent(self, api, oauth_client) -> None:
        api.client.get("/api/v1/auth/register/github")
        assert oauth_client.authorize_redirect.await_args.kwargs["state"].startswith("register:")

    def test_unknown_provider_redirects_to_frontend_error(self, api, oauth_client) -> None:
        resp = api.client.get("/api/v1/auth/login/myspace")
        assert resp.status_code == 302
        assert resp.headers["location"].startswith(f"{FRONTEND}/auth/error?")
        oauth_client.authorize_redirect.assert_not_called()


class TestCallback:
    def test_new_user_is_created_and_token_returned(self, api, oauth_client) -> None:
        oauth_client.authorize_access_token.return_value = _google_token()
        resp = api.client.get("/api/v1/auth/google/callback", params={"state": "login:n", "code": "c"})
        assert resp.status_code == 302
        location = resp.headers["location"]
        assert location.startswith(f"{FRONTEND}/auth/success?")
        claims = api.state.token_service.verify(_query(location)["token"])
        user = api.run(api.state.user_store.get_by_id, claims.user_id)
        assert user.email == "new@example.com"
        assert user.provider == "google"
        assert user.is_verified is True

    def test_repeat_sign_in_reuses_account(self, api, oauth_client) -> None:
        oauth_client.authorize_access_token.return_value = _google_token()
        first = api.client.get("/api/v1/auth/google/callback", params={"state": "login:n"})
        second = api.client.get("/api/v1/auth/google/callback", params={"state": "register:n"})
        first_id = api.state.token_service.verify(_query(first.headers["location"])["token"]).user_id
        second_id = api.state.token_service.verify(_query(second.headers["location"])["token"]).user_id
        assert first_id == second_id

    def test_unverified_local_account_is_migrated(self, api, oauth_client) -> None:
        local = api.create_user("new@example.com", verified=False)
        oauth_client.authorize_access_token.return_value = _google_token()
        resp = api.client.get("/api/v1/auth/google/callback", params={"state": "login:n"})
        assert resp.headers["location"].startswith(f"{FRONTEND}/auth/success?")
        user = api.run(api.state.user_store.get_by_id, local.id)
        assert user.provider == "google"
        assert user.is_verified is True

    def test_verified_local_account_conflict_redirects_with_message(self, api, oauth_client) -> None:
        api.create_user("new@example.com")
        oauth_client.authorize_access_token.return_value = _google_token()
        resp = api.client.get("/api/v1/auth/google/callback", params={"state": "login:n"})
        location = resp.headers["location"]
        assert location.startswith(f"{FRONTEND}/auth/error?")
        assert "local" in _query(location)["message"]

    def test_unverified_provider_email_redirects_to_error(self, api, oauth_client) -> None:
        oauth_client.authorize_access_token.return_value = _google_token(verified=False)
        resp = api.client.get("/api/v1/auth/google/callback", params={"state": "login:n"})
        assert resp.headers["location"].startswith(f"{FRONTEND}/auth/error?")
        assert api.run(api.state.user_store.get_by_email, "new@example.com") is None

    def test_token_exchange_failure_redirects_to_error(self, api, oauth_client) -> None:
        oauth_client.authorize_access_token.side_effect = OAuthError(error="access_denied")
        resp = api.client.get("/api/v1/auth/google/callback", params={"state": "login:n"})
        assert resp.status_code == 302
        assert resp.headers["location"].startswith(f"{FRONTEND}/auth/error?")

    def test_github_callback(self, api, oauth_client) -> None:
        oauth_client.authorize_access_token.return_value = {"access_token": "at"}
        oauth_client.get.side_effect = [
            _json_response({"id": 7, "login": "octo", "name": "Octo Cat"}),
            _json_response([{"email": "octo@example.com", "primary": True, "verified": True}]),
        ]
        resp = api.client.get("/api/v1/auth/github/callback", params={"state": "register:n"})
        assert resp.headers["location"].startswith(f"{FRONTEND}/auth/success?")
        user = api.run(api.state.user_store.get_by_email, "octo@example.com")
        assert user.provider == "github"
        assert user.provider_id == "7"
        assert user.name == "Octo Cat"
