"""
auth/oauth.py -- Authlib OAuth provider configuration and profile normalization.

build_oauth() registers a provider only when both its client ID and secret are
configured. get_enabled_providers() reports the same set, so routes can refuse
a provider name that was never registered.

Security notes:
  Email verification is mandatory. get_oauth_profile() raises ValueError if
  the provider does not confirm the email is verified. An unverified email
  from GitHub could belong to an attacker who added a victim's address
  without confirming it, and resolve_oauth_identity() trusts the email.

  The OAuth state parameter (CSRF protection) is checked by authlib against
  the value it stored in the Starlette session. We prefix it with the
  sign-in intent ("login" or "register"); the intent is informational and
  never changes how the identity is resolved.

Supported providers:
  google -- Authorization code flow; OIDC discovery.
  github -- Authorization code flow; static endpoints.

Layer rule: no imports from api/, testimonials/ or projects/.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass

from authlib.integrations.starlette_client import OAuth

from core.config import Settings

logger = logging.getLogger("folio.auth.oauth")

INTENTS = ("login", "register")

_LABELS = {"google": "Google", "github": "GitHub"}


@dataclass(frozen=True)
class OAuthProfile:
    """The provider-verified facts handed to IdentityService.resolve_oauth_identity()."""

    provider: str
    provider_id: str
    email: str
    name: str
    picture: str | None = None


# ---------------------------------------------------------------------------
# Authlib OAuth registry
# ---------------------------------------------------------------------------


def build_oauth(settings: Settings) -> OAuth:
    """Return an OAuth registry with every configured provider registered."""
    oauth = OAuth()

    # Google -- OIDC discovery
    if settings.google_client_id and settings.google_client_secret:
        oauth.register(
            name="google",
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
            client_kwargs={"scope": "openid email profile"},
        )
        logger.info("Google OAuth provider registered")

    # GitHub -- static endpoints (no OIDC discovery document)
    if settings.github_client_id and settings.github_client_secret:
        oauth.register(
            name="github",
            client_id=settings.github_client_id,
            client_secret=settings.github_client_secret,
            access_token_url="https://github.com/login/oauth/access_token",  # noqa: S106 -- URL, not a password
            authorize_url="https://github.com/login/oauth/authorize",
            api_base_url="https://api.github.com/",
            client_kwargs={"scope": "read:user user:email"},
        )
        logger.info("GitHub OAuth provider registered")

    return oauth


# ---------------------------------------------------------------------------
# Provider metadata
# ---------------------------------------------------------------------------


def get_enabled_providers(settings: Settings) -> list[dict]:
    """Return [{"name", "label"}] for every provider with credentials configured.

    Used by GET /api/v1/auth/providers and to validate the {provider} path
    parameter on the redirect and callback routes.
    """
    providers: list[dict] = []
    if settings.google_client_id and settings.google_client_secret:
        providers.append({"name": "google", "label": _LABELS["google"]})
    if settings.github_client_id and settings.github_client_secret:
        providers.append({"name": "github", "label": _LABELS["github"]})
    return providers


def redirect_uri_for(settings: Settings, provider: str) -> str:
    """The callback URL registered with the provider's developer console."""
    if provider == "google":
        return settings.google_redirect_uri
    if provider == "github":
        return settings.github_redirect_uri
    raise ValueError(f"Unknown OAuth provider: {provider!r}")


# ---------------------------------------------------------------------------
# State parameter
# ---------------------------------------------------------------------------


def make_state(intent: str) -> str:
    """Return "<intent>:<nonce>" for the authorization redirect."""
    if intent not in INTENTS:
        raise ValueError(f"Unknown OAuth intent: {intent!r}")
    return f"{intent}:{secrets.token_urlsafe(16)}"


def parse_intent(state: str | None) -> str:
    """Recover the intent from a returned state value. Defaults to "login"."""
    if state:
        intent, _, _ = state.partition(":")
        if intent in INTENTS:
            return intent
    return "login"


# ---------------------------------------------------------------------------
# Profile extraction -- provider-specific normalization
# ---------------------------------------------------------------------------


async def get_oauth_profile(client, provider: str, token: dict) -> OAuthProfile:
    """Normalize a provider token response into an OAuthProfile.

    SECURITY: email verification is checked before returning. If the
    provider does not confirm verification, or returns no primary verified
    email, raises ValueError. The caller must treat this as an
    authentication failure.

    Args:
        client:   The authlib OAuth client for this provider.
        provider: "google" or "github".
        token:    The token dict returned by authlib after code exchange.

    Raises:
        ValueError: If a verified email cannot be confirmed.
    """
    if provider == "github":
        return await _get_github_profile(client, token)
    elif provider == "google":
        return _get_google_profile(token)
    else:
        raise ValueError(f"Unknown OAuth provider: {provider!r}")


async def _get_github_profile(client, token: dict) -> OAuthProfile:
    """Build a profile from the GitHub REST API.

    GitHub does not include the email in the access token. Two API calls are
    required:
      1. GET /user -- numeric user ID (stable subject), name and avatar.
      2. GET /user/emails -- to find the primary verified email.

    Only the email where both primary=true AND verified=true is accepted.
    """
    resp = await client.get("user", token=token)
    resp.raise_for_status()
    profile = resp.json()

    emails_resp = await client.get("user/emails", token=token)
    emails_resp.raise_for_status()

    email: str | None = None
    for entry in emails_resp.json():
        if entry.get("primary") and entry.get("verified"):
            email = entry["email"]
            break

    if not email:
        raise ValueError(
            "GitHub OAuth: no primary verified email found. "
            "The user must verify their email address on GitHub before logging in."
        )

    return OAuthProfile(
        provider="github",
        provider_id=str(profile["id"]),
        email=email,
        # GitHub's display name is optional; fall back to the login handle.
        name=profile.get("name") or profile.get("login") or email,
        picture=profile.get("avatar_url"),
    )


def _get_google_profile(token: dict) -> OAuthProfile:
    """Build a profile from the Google id_token claims (parsed by authlib into token["userinfo"]).

    Google omitting email_verified is treated as unverified.
    """
    userinfo = token.get("userinfo")
    if not userinfo:
        raise ValueError("google OAuth: no userinfo in token response")

    if not userinfo.get("email_verified", False):
        raise ValueError(
            "google OAuth: email is not verified. "
            "The provider must confirm email ownership before login is allowed."
        )

    email = userinfo.get("email")
    subject_id = userinfo.get("sub")
    if not email or not subject_id:
        raise ValueError("google OAuth: missing email or sub claim in userinfo")

    return OAuthProfile(
        provider="google",
        provider_id=str(subject_id),
        email=email,
        name=userinfo.get("name") or email,
        picture=userinfo.get("picture"),
    )
