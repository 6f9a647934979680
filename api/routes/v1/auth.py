"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/register                  -- local signup; 201, unverified
  POST /api/v1/auth/login                     -- password login; returns a bearer token
  GET  /api/v1/auth/verify/{token}            -- consume an email-verification token
  POST /api/v1/auth/password-reset            -- request a reset token (always 200)
  POST /api/v1/auth/password-reset/{token}    -- set a new password with a reset token
  POST /api/v1/auth/set-password              -- first password for an OAuth account (requires auth)
  GET  /api/v1/auth/me                        -- current user (requires auth)
  POST /api/v1/auth/logout                    -- stateless; tells the client to drop its token
  GET  /api/v1/auth/providers                 -- enabled OAuth providers (public)
  GET  /api/v1/auth/login/{provider}          -- OAuth redirect, intent "login"
  GET  /api/v1/auth/register/{provider}       -- OAuth redirect, intent "register"
  GET  /api/v1/auth/{provider}/callback       -- OAuth callback; redirects to the frontend

Security:
  Password-reset requests answer with the same body whether or not the
  email exists, and whatever fails internally, so the endpoint cannot be
  used to enumerate accounts.
  Cache-Control: no-store on responses that carry a session token.
  The OAuth callback never returns JSON: success and failure both redirect
  to the frontend, with the token or a user-facing message in the query.
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode

import httpx
from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import RedirectResponse

from api.models import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    OAuthProviderInfo,
    PasswordBody,
    PasswordResetRequest,
    RegisterRequest,
    RegisterResponse,
    UserResponse,
)
from auth.dependencies import get_current_user
from auth.identity import IdentityService
from auth.models import CurrentUser
from auth.oauth import get_enabled_providers, get_oauth_profile, make_state, parse_intent, redirect_uri_for
from core.errors import DomainError, UserNotFound

logger = logging.getLogger("folio.api.auth")

RESET_REQUESTED_MESSAGE = "If your email exists in our system, you will receive a password reset link"

# Auth policy:
# - register, login, verify, password-reset, providers, OAuth routes: public
# - set-password, me:                                                  requires auth (get_current_user)
router = APIRouter()


# ---------------------------------------------------------------------------
# Local accounts
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
async def register(request: Request, body: RegisterRequest) -> RegisterResponse:
    """Create an unverified local account and hand the verification token to the delivery hook."""
    identity: IdentityService = request.app.state.identity
    user = await identity.register(body.email, body.name, body.password, picture=body.picture)
    await request.app.state.token_delivery.send_verification(user, user.verification_token)
    return RegisterResponse(
        message="User registered successfully. Please check your email to verify your account.",
        user=UserResponse.from_user(user),
    )


@router.post("/auth/login", response_model=LoginResponse)
async def login(request: Request, response: Response, body: LoginRequest) -> LoginResponse:
    """Authenticate with email and password.

    Unknown email and wrong password produce the same bad_credentials error.
    An OAuth-backed account gets wrong_provider naming its provider; an
    unverified one gets not_verified.
    """
    identity: IdentityService = request.app.state.identity
    user, token = await identity.login(body.email, body.password)
    response.headers["Cache-Control"] = "no-store"
    return LoginResponse(
        message="Login successful",
        user=UserResponse.from_user(user),
        token=token,
        expires_in=identity.tokens.ttl_seconds,
    )


@router.get("/auth/verify/{token}", response_model=MessageResponse)
async def verify_email(request: Request, token: str) -> MessageResponse:
    identity: IdentityService = request.app.state.identity
    await identity.verify_email(token)
    return MessageResponse(message="Email verified successfully. You can now log in.")


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


@router.post("/auth/password-reset", response_model=MessageResponse)
async def request_password_reset(request: Request, body: PasswordResetRequest) -> MessageResponse:
    """Issue a reset token if the email is known. The response is identical either way."""
    identity: IdentityService = request.app.state.identity
    try:
        user, token = await identity.request_password_reset(body.email)
        await request.app.state.token_delivery.send_password_reset(user, token)
    except UserNotFound:
        pass
    except Exception:
        # Any internal failure still gets the uniform answer below.
        logger.exception("Password reset request failed")
    return MessageResponse(message=RESET_REQUESTED_MESSAGE)


@router.post("/auth/password-reset/{token}", response_model=MessageResponse)
async def reset_password(request: Request, token: str, body: PasswordBody) -> MessageResponse:
    identity: IdentityService = request.app.state.identity
    await identity.reset_password(token, body.password)
    return MessageResponse(message="Password reset successful. You can now log in with your new password.")


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/set-password", response_model=MessageResponse)
async def set_password(
    request: Request,
    body: PasswordBody,
    current_user: CurrentUser = Depends(get_current_user),
) -> MessageResponse:
    """Give an OAuth-created account a password. Refused once any password exists."""
    identity: IdentityService = request.app.state.identity
    await identity.set_password(current_user.id, body.password)
    return MessageResponse(message="Password set successfully.")


@router.get("/auth/me", response_model=UserResponse)
async def me(current_user: CurrentUser = Depends(get_current_user)) -> UserResponse:
    """Return the authenticated user as the gate resolved it."""
    return UserResponse.from_current(current_user)


@router.post("/auth/logout", response_model=MessageResponse)
async def logout() -> MessageResponse:
    """Tokens are stateless and stay valid until expiry; the client discards its copy."""
    return MessageResponse(message="Logged out.")


# ---------------------------------------------------------------------------
# OAuth
# ---------------------------------------------------------------------------


@router.get("/auth/providers", response_model=list[OAuthProviderInfo])
async def list_providers(request: Request) -> list[OAuthProviderInfo]:
    """Return the configured OAuth providers. Empty when no credentials are set."""
    return [OAuthProviderInfo(**p) for p in get_enabled_providers(request.app.state.settings)]


@router.get("/auth/login/{provider}")
async def oauth_login(request: Request, provider: str):
    return await _authorize_redirect(request, provider, intent="login")


@router.get("/auth/register/{provider}")
async def oauth_register(request: Request, provider: str):
    return await _authorize_redirect(request, provider, intent="register")


@router.get("/auth/{provider}/callback")
async def oauth_callback(request: Request, provider: str) -> RedirectResponse:
    """Finish the authorization code flow and redirect to the frontend.

    Flow:
      1. Exchange the code for a token (authlib checks state against the session).
      2. Fetch and normalize the profile -- rejects unverified emails.
      3. resolve_oauth_identity(): create, reuse, migrate, or ProviderConflict.
      4. Redirect to <frontend>/auth/success?token=... or /auth/error?message=...
    """
    settings = request.app.state.settings
    if provider not in {p["name"] for p in get_enabled_providers(settings)}:
        return _frontend_error(settings, "OAuth provider is not available.")

    client = request.app.state.oauth.create_client(provider)

    try:
        token = await client.authorize_access_token(request)
    except OAuthError:
        logger.exception("OAuth token exchange failed for provider %r", provider)
        return _frontend_error(settings, "OAuth authentication failed. Please try again.")

    try:
        profile = await get_oauth_profile(client, provider, token)
    except ValueError as exc:
        logger.warning("OAuth login rejected for provider %r: %s", provider, exc)
        return _frontend_error(settings, "Your email address could not be verified by the provider.")
    except httpx.HTTPError:
        logger.exception("OAuth profile fetch failed for provider %r", provider)
        return _frontend_error(settings, "OAuth authentication failed. Please try again.")

    intent = parse_intent(request.query_params.get("state"))
    identity: IdentityService = request.app.state.identity
    try:
        user, session_token = await identity.resolve_oauth_identity(
            email=profile.email,
            provider=profile.provider,
            provider_id=profile.provider_id,
            name=profile.name,
            picture=profile.picture,
        )
    except DomainError as exc:
        return _frontend_error(settings, exc.message)

    logger.info("OAuth %s completed provider=%s user_id=%s", intent, provider, user.id)
    resp = RedirectResponse(
        f"{settings.frontend_url.rstrip('/')}/auth/success?{urlencode({'token': session_token})}",
        status_code=302,
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


async def _authorize_redirect(request: Request, provider: str, intent: str):
    """Redirect the browser to the provider's authorization page.

    The provider name is checked against the enabled list first, so a
    spoofed name cannot reach create_client().
    """
    settings = request.app.state.settings
    if provider not in {p["name"] for p in get_enabled_providers(settings)}:
        return _frontend_error(settings, "OAuth provider is not available.")

    client = request.app.state.oauth.create_client(provider)
    return await client.authorize_redirect(
        request,
        redirect_uri_for(settings, provider),
        state=make_state(intent),
    )


def _frontend_error(settings, message: str) -> RedirectResponse:
    return RedirectResponse(
        f"{settings.frontend_url.rstrip('/')}/auth/error?{urlencode({'message': message})}",
        status_code=302,
    )
