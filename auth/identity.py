"""
auth/identity.py -- Identity Resolution: every flow that decides who a caller is.

IdentityService reconciles an inbound authentication attempt (password or
OAuth profile) against the UserStore and owns the one-time token lifecycles:

  register                -> local account, unverified, verification token issued
  verify_email            -> single-use: token cleared on success
  login                   -> provider, password, then verification checks; session token
  request_password_reset  -> 1-hour reset token
  reset_password          -> token + expiry checked, both cleared on success
  resolve_oauth_identity  -> create / pass through / migrate / conflict; session token
  migrate_local_to_oauth  -> the named transition behind the "migrate" branch
  set_password            -> first password for an OAuth-only account, never overwrites

Plus the profile operations a signed-in user runs on their own record
(change_password, update_profile, delete_account) and the admin edit.

Every failure is a typed DomainError from core/errors.py. The HTTP layer maps
them to status codes; this module never imports fastapi.

bcrypt calls run in a worker thread (asyncio.to_thread) so a hash does not
stall the event loop for other requests.

Layer rule: no imports from api/, testimonials/ or projects/.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from auth.models import DEFAULT_PICTURE, PROVIDERS, ROLES, User
from auth.store import UserStore
from auth.tokens import PasswordHasher, SessionClaims, TokenService, generate_opaque_token
from core.config import AuthConfig
from core.database import utcnow
from core.errors import (
    AccountTypeUnsupported,
    EmailInUse,
    IncorrectPassword,
    InvalidCredentials,
    InvalidOrExpiredToken,
    InvalidToken,
    NotVerified,
    PasswordAlreadySet,
    ProviderConflict,
    UserNotFound,
    ValidationError,
    WrongProvider,
)

logger = logging.getLogger("folio.auth")
audit_logger = logging.getLogger("folio.audit")


class IdentityService:
    """Registration, login, verification, password reset and OAuth account linking."""

    def __init__(
        self,
        store: UserStore,
        tokens: TokenService,
        hasher: PasswordHasher,
        reset_ttl_seconds: int = 3600,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.tokens = tokens
        self.hasher = hasher
        self.reset_ttl_seconds = reset_ttl_seconds
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        store: UserStore,
        config: AuthConfig,
        clock: Callable[[], datetime] = utcnow,
    ) -> "IdentityService":
        """Wire a service and its TokenService/PasswordHasher from one AuthConfig."""
        return cls(
            store=store,
            tokens=TokenService(config.secret_key, ttl_seconds=config.token_ttl_seconds),
            hasher=PasswordHasher(rounds=config.bcrypt_rounds),
            reset_ttl_seconds=config.reset_token_ttl_seconds,
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Local accounts
    # ------------------------------------------------------------------

    async def register(self, email: str, name: str, password: str, picture: str | None = None) -> User:
        """Create an unverified local account and return it.

        The get_by_email() pre-check only gives a friendly early answer. The
        UNIQUE constraint on users.email is what actually rejects a duplicate
        when two registrations race; the store raises EmailInUse either way.

        Delivering the verification token to the user is the caller's job.
        """
        logger.info("Registering new user email=%s", email)
        if await self.store.get_by_email(email) is not None:
            logger.warning("Registration rejected: email already in use email=%s", email)
            raise EmailInUse()

        hashed = await asyncio.to_thread(self.hasher.hash, password)
        user = User(
            email=email,
            name=name,
            picture=picture or DEFAULT_PICTURE,
            provider="local",
            hashed_password=hashed,
            is_verified=False,
            verification_token=generate_opaque_token(),
        )
        user.id = await self.store.create_user(user)
        logger.info("User registered user_id=%s", user.id)
        return await self._reload(user.id)

    async def login(self, email: str, password: str) -> tuple[User, str]:
        """Authenticate a local email/password login and issue a session token.

        Check order: unknown email, wrong provider, missing or mismatched
        password, unverified. WrongProvider names the account's provider so
        the user knows which button to press; every other credential failure
        is the same InvalidCredentials.
        """
        user = await self.store.get_by_email(email)
        if user is None:
            await asyncio.to_thread(self.hasher.burn, password)
            logger.warning("Login failed: unknown email email=%s", email)
            raise InvalidCredentials()

        if user.provider != "local":
            logger.warning("Login failed: account uses provider=%s user_id=%s", user.provider, user.id)
            raise WrongProvider(user.provider)

        if user.hashed_password is None:
            await asyncio.to_thread(self.hasher.burn, password)
            logger.error("Login failed: local account has no password user_id=%s", user.id)
            raise InvalidCredentials()

        if not await asyncio.to_thread(self.hasher.verify, password, user.hashed_password):
            logger.warning("Login failed: wrong password user_id=%s", user.id)
            raise InvalidCredentials()

        if not user.is_verified:
            logger.warning("Login failed: email not verified user_id=%s", user.id)
            raise NotVerified()

        logger.info("User logged in user_id=%s", user.id)
        return user, self.issue_token(user)

    async def verify_email(self, token: str) -> User:
        """Mark the account holding this verification token as verified and clear the token."""
        user = await self.store.get_by_verification_token(token)
        if user is None:
            logger.warning("Email verification failed: unknown token")
            raise InvalidToken()

        await self.store.update_user(user.id, is_verified=True, verification_token=None)
        logger.info("Email verified user_id=%s", user.id)
        return await self._reload(user.id)

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    async def request_password_reset(self, email: str) -> tuple[User, str]:
        """Issue a reset token valid for reset_ttl_seconds.

        Raises UserNotFound for an unknown email. Callers on the HTTP path
        must not let that difference reach the response.
        """
        user = await self.store.get_by_email(email)
        if user is None:
            logger.warning("Password reset requested for unknown email")
            raise UserNotFound()

        token = generate_opaque_token()
        expires = self._clock() + timedelta(seconds=self.reset_ttl_seconds)
        await self.store.update_user(user.id, reset_password_token=token, reset_password_expires=expires)
        logger.info("Password reset token generated user_id=%s", user.id)
        return await self._reload(user.id), token

    async def reset_password(self, token: str, new_password: str) -> User:
        """Replace the password of the account holding a live reset token.

        Both reset fields are cleared on success, so the token works once.
        """
        user = await self.store.get_by_reset_token(token, now=self._clock())
        if user is None:
            logger.warning("Password reset failed: invalid or expired token")
            raise InvalidOrExpiredToken()

        hashed = await asyncio.to_thread(self.hasher.hash, new_password)
        await self.store.update_user(
            user.id,
            hashed_password=hashed,
            reset_password_token=None,
            reset_password_expires=None,
        )
        logger.info("Password reset user_id=%s", user.id)
        return await self._reload(user.id)

    # ------------------------------------------------------------------
    # OAuth
    # ------------------------------------------------------------------

    async def resolve_oauth_identity(
        self,
        email: str,
        provider: str,
        provider_id: str,
        name: str,
        picture: str | None = None,
    ) -> tuple[User, str]:
        """Match a provider-verified identity to exactly one account and issue a token.

        No account for the email    -> create it (verified, provider linked).
        Same provider               -> use it unchanged.
        Local and still unverified  -> migrate_local_to_oauth().
        Anything else               -> ProviderConflict naming the existing provider.

        Calling this twice with the same identity returns the same user.
        """
        if provider not in PROVIDERS or provider == "local":
            raise ValidationError(f"Unsupported OAuth provider: {provider!r}")

        logger.info("OAuth sign-in provider=%s email=%s", provider, email)
        user = await self.store.get_by_email(email)

        if user is None:
            try:
                user_id = await self.store.create_user(
                    User(
                        email=email,
                        name=name,
                        picture=picture or DEFAULT_PICTURE,
                        provider=provider,
                        provider_id=provider_id,
                        is_verified=True,
                    )
                )
            except EmailInUse:
                # A concurrent request created the account first. Resolve once
                # against that row; if it is gone again, give up.
                user = await self.store.get_by_email(email)
                if user is None:
                    raise
                logger.info("OAuth account created concurrently, re-resolving email=%s", email)
            else:
                user = await self._reload(user_id)
                logger.info("New user created via OAuth user_id=%s provider=%s", user.id, provider)
                return user, self.issue_token(user)

        if user.provider == provider:
            pass
        elif user.provider == "local" and not user.is_verified:
            user = await self.migrate_local_to_oauth(user, provider, provider_id)
        else:
            logger.warning(
                "OAuth sign-in rejected: account exists with provider=%s user_id=%s",
                user.provider,
                user.id,
            )
            raise ProviderConflict(user.provider)

        return user, self.issue_token(user)

    async def migrate_local_to_oauth(self, user: User, provider: str, provider_id: str) -> User:
        """MigrateLocalToOAuth: hand an unverified local signup over to an OAuth identity.

        The provider has verified the email, which is the proof the local
        signup never produced. The unverified signup's password hash is
        dropped: whoever typed it never proved they own the address. The
        owner can give the account a password later with set_password().
        """
        if user.provider != "local" or user.is_verified:
            raise ProviderConflict(user.provider)

        await self.store.update_user(
            user.id,
            provider=provider,
            provider_id=provider_id,
            hashed_password=None,
            is_verified=True,
            verification_token=None,
        )
        audit_logger.info(
            "MigrateLocalToOAuth user_id=%s from_provider=local to_provider=%s",
            user.id,
            provider,
        )
        return await self._reload(user.id)

    # ------------------------------------------------------------------
    # Passwords on existing accounts
    # ------------------------------------------------------------------

    async def set_password(self, user_id: int, password: str) -> User:
        """Give an account its first password. Never overwrites an existing one."""
        user = await self.store.get_by_id(user_id)
        if user is None:
            raise UserNotFound()
        if user.hashed_password is not None:
            logger.warning("Set password rejected: password already set user_id=%s", user_id)
            raise PasswordAlreadySet()

        hashed = await asyncio.to_thread(self.hasher.hash, password)
        await self.store.update_user(user_id, hashed_password=hashed)
        logger.info("Password set for OAuth user user_id=%s", user_id)
        return await self._reload(user_id)

    async def change_password(self, user_id: int, current_password: str, new_password: str) -> User:
        user = await self.store.get_by_id(user_id)
        if user is None:
            raise UserNotFound()
        if user.hashed_password is None:
            raise AccountTypeUnsupported()
        if not await asyncio.to_thread(self.hasher.verify, current_password, user.hashed_password):
            logger.warning("Password change rejected: current password incorrect user_id=%s", user_id)
            raise IncorrectPassword()

        hashed = await asyncio.to_thread(self.hasher.hash, new_password)
        await self.store.update_user(user_id, hashed_password=hashed)
        logger.info("Password changed user_id=%s", user_id)
        return await self._reload(user_id)

    # ------------------------------------------------------------------
    # Profile and administration
    # ------------------------------------------------------------------

    async def get_user(self, user_id: int) -> User:
        return await self._reload(user_id)

    async def list_users(self) -> list[User]:
        return await self.store.list_users()

    async def update_profile(self, user_id: int, name: str | None = None, picture: str | None = None) -> User:
        """Update the caller's own display fields. Only name and picture are writable here."""
        updates: dict = {}
        if name is not None:
            updates["name"] = name
        if picture is not None:
            updates["picture"] = picture
        if not updates:
            return await self._reload(user_id)
        if not await self.store.update_user(user_id, **updates):
            raise UserNotFound()
        logger.info("Profile updated user_id=%s fields=%s", user_id, sorted(updates))
        return await self._reload(user_id)

    async def admin_update_user(
        self,
        user_id: int,
        name: str | None = None,
        picture: str | None = None,
        role: str | None = None,
        is_admin: bool | None = None,
        is_verified: bool | None = None,
    ) -> User:
        """Admin edit. role and is_admin are written independently; neither implies the other."""
        if role is not None and role not in ROLES:
            raise ValidationError(f"Unknown role: {role!r}")
        updates: dict = {}
        if name is not None:
            updates["name"] = name
        if picture is not None:
            updates["picture"] = picture
        if role is not None:
            updates["role"] = role
        if is_admin is not None:
            updates["is_admin"] = is_admin
        if is_verified is not None:
            updates["is_verified"] = is_verified
        if not updates:
            return await self._reload(user_id)
        if not await self.store.update_user(user_id, **updates):
            raise UserNotFound()
        audit_logger.info("AdminUpdateUser user_id=%s fields=%s", user_id, sorted(updates))
        return await self._reload(user_id)

    async def delete_account(self, user_id: int) -> None:
        """Hard delete. Tokens already issued for the account stop working at the gate's re-fetch."""
        if not await self.store.delete_user(user_id):
            raise UserNotFound()
        logger.info("User account deleted user_id=%s", user_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def issue_token(self, user: User) -> str:
        return self.tokens.issue(SessionClaims.for_user(user))

    async def _reload(self, user_id: int) -> User:
        user = await self.store.get_by_id(user_id)
        if user is None:
            raise UserNotFound()
        return user
