"""
core/errors.py -- Typed domain failures shared by every layer.

Pattern: exception hierarchy with a stable machine-readable code and an HTTP
status on each class. Services raise these; api/main.py registers a single
handler that renders them into the ErrorResponse envelope. Services never
import fastapi, and routes never translate error strings.

Families:
  ValidationError   -- malformed or missing input (400)
  NotFoundError     -- referenced entity absent (404)
  AuthError         -- Unauthenticated (401), Forbidden (403)
  ConflictError     -- duplicate email/slug, provider mismatch (409)
  AccountStateError -- unverified, password already set, wrong provider

Layer rule: core/ is the kernel. No imports from api/, auth/, testimonials/
or projects/.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for every expected failure.

    code and status_code are class attributes so subclasses only override
    what differs. message defaults to the class-level message.
    """

    code: str = "error"
    status_code: int = 400
    message: str = "Request failed."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidationError(DomainError):
    code = "validation_error"
    status_code = 400
    message = "Request validation failed."


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------


class NotFoundError(DomainError):
    code = "not_found"
    status_code = 404
    message = "Resource not found."


class UserNotFound(NotFoundError):
    message = "User not found."


class TestimonialNotFound(NotFoundError):
    message = "Testimonial not found."


class ProjectNotFound(NotFoundError):
    message = "Project not found."


class InvalidToken(NotFoundError):
    """No account holds this verification token (unknown or already used)."""

    code = "invalid_token"
    status_code = 400
    message = "Invalid verification token."


class InvalidOrExpiredToken(NotFoundError):
    code = "invalid_or_expired_token"
    status_code = 400
    message = "Invalid or expired reset token."


# ---------------------------------------------------------------------------
# Authentication / authorization
# ---------------------------------------------------------------------------


class AuthError(DomainError):
    code = "unauthorized"
    status_code = 401
    message = "Authentication required."


class Unauthenticated(AuthError):
    pass


class InvalidCredentials(AuthError):
    code = "bad_credentials"
    message = "Invalid credentials."


class Forbidden(AuthError):
    code = "forbidden"
    status_code = 403
    message = "Not authorized to perform this action."


class TokenError(AuthError):
    """Raised by TokenService.verify(). The gate collapses all of these to Unauthenticated."""

    code = "invalid_token"
    message = "Invalid token."


class ExpiredToken(TokenError):
    code = "token_expired"
    message = "Token has expired."


class InvalidSignature(TokenError):
    code = "invalid_signature"
    message = "Token signature verification failed."


class MalformedToken(TokenError):
    code = "malformed_token"
    message = "Token is malformed."


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------


class ConflictError(DomainError):
    code = "conflict"
    status_code = 409
    message = "Resource already exists."


class EmailInUse(ConflictError):
    code = "email_in_use"
    message = "Email already in use."


class SlugInUse(ConflictError):
    code = "slug_in_use"
    message = "A project with this slug already exists."


class ProviderConflict(ConflictError):
    """The email is owned by an account that cannot be reclaimed by this provider."""

    code = "provider_conflict"

    def __init__(self, existing_provider: str) -> None:
        self.existing_provider = existing_provider
        super().__init__(
            f"You already have an account with {existing_provider}. Please sign in with that provider."
        )


# ---------------------------------------------------------------------------
# Account state
# ---------------------------------------------------------------------------


class AccountStateError(DomainError):
    code = "account_state"
    status_code = 400
    message = "Operation not allowed for this account."


class NotVerified(AccountStateError):
    code = "not_verified"
    status_code = 403
    message = "Please verify your email before logging in."


class PasswordAlreadySet(AccountStateError):
    code = "password_already_set"
    message = "User already has a password."


class WrongProvider(AccountStateError):
    code = "wrong_provider"

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(f"Please login using your {provider} account.")


class AccountTypeUnsupported(AccountStateError):
    code = "account_type_unsupported"
    message = "Invalid operation for this account type."


class IncorrectPassword(AccountStateError):
    code = "incorrect_password"
    message = "Current password is incorrect."
