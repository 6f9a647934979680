"""
auth/tokens.py -- Session tokens, password hashing, and opaque one-time tokens.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry {userId, email, role, isAdmin,
       exp} and nothing is stored server-side, so a token stays valid until
       it expires. verify() raises a typed TokenError subclass; the
       Authorization Gate collapses all of them into one 401.

  Passwords: bcrypt directly (no passlib wrapper). The cost factor comes from
       AuthConfig (10 rounds by default). Inputs are truncated to bcrypt's
       72-byte limit before hashing, the same way on hash and verify. The
       dummy hash enables timing equalization when a login names an unknown
       email.

  Opaque tokens: secrets.token_hex(32) gives 256 bits of entropy for email
       verification and password-reset tokens.

Both services are constructed explicitly from AuthConfig at startup; nothing
in this module reads settings at import time.

Layer rule: no imports from api/, testimonials/ or projects/.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTError

from core.errors import ExpiredToken, InvalidSignature, MalformedToken

if TYPE_CHECKING:
    from auth.models import User

_ALGORITHM = "HS256"
_BCRYPT_MAX_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


class PasswordHasher:
    """bcrypt hashing with a configurable cost factor."""

    def __init__(self, rounds: int = 10) -> None:
        self.rounds = rounds
        # Computed once so the first unknown-email login is not measurably
        # slower than later ones.
        self._dummy_hash = self.hash("folio_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a salted bcrypt hash of the plaintext password."""
        return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext password matches the bcrypt hash."""
        try:
            return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
        except ValueError:
            # Stored value is not a bcrypt hash.
            return False

    def burn(self, plain: str) -> None:
        """Run one verification against the dummy hash and discard the result.

        Called when there is no real hash to check, so response time does not
        reveal whether the email exists.
        """
        self.verify(plain, self._dummy_hash)


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


# ---------------------------------------------------------------------------
# Session tokens
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SessionClaims:
    """The claim set embedded in a session token."""

    user_id: int
    email: str
    role: str
    is_admin: bool
    expires_at: datetime | None = None

    @classmethod
    def for_user(cls, user: User) -> "SessionClaims":
        return cls(user_id=user.id, email=user.email, role=user.role, is_admin=user.is_admin)


class TokenService:
    """Issues and verifies stateless HS256 session tokens.

    Usage:
        tokens = TokenService(secret_key, ttl_seconds=86400)
        token = tokens.issue(SessionClaims.for_user(user))
        claims = tokens.verify(token)  # raises ExpiredToken / InvalidSignature / MalformedToken
    """

    def __init__(self, secret_key: str, ttl_seconds: int = 24 * 3600) -> None:
        self._secret_key = secret_key
        self.ttl_seconds = ttl_seconds

    def issue(self, claims: SessionClaims, ttl_seconds: int | None = None) -> str:
        """Encode a signed JWT for claims, expiring ttl_seconds from now.

        ttl_seconds defaults to the service TTL. A negative value produces an
        already-expired token, which is how tests exercise expiry.
        """
        duration = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        expire = datetime.now(timezone.utc) + timedelta(seconds=duration)
        payload = {
            "sub": str(claims.user_id),
            "userId": claims.user_id,
            "email": claims.email,
            "role": claims.role,
            "isAdmin": claims.is_admin,
            "exp": expire,
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> SessionClaims:
        """Decode and verify a JWT, returning its claims.

        Raises:
            MalformedToken:   not a JWT, or a required claim is missing/mistyped.
            ExpiredToken:     signature valid but past expiry.
            InvalidSignature: signature does not match (tampered or foreign key).
        """
        try:
            jwt.get_unverified_header(token)
        except JWTError as exc:
            raise MalformedToken() from exc

        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except ExpiredSignatureError as exc:
            raise ExpiredToken() from exc
        except JWTError as exc:
            raise InvalidSignature() from exc

        user_id = payload.get("userId")
        if not isinstance(user_id, int) or isinstance(user_id, bool):
            raise MalformedToken()
        if not isinstance(payload.get("email"), str) or not isinstance(payload.get("role"), str):
            raise MalformedToken()
        if not isinstance(payload.get("isAdmin"), bool):
            raise MalformedToken()
        exp = payload.get("exp")
        if not isinstance(exp, (int, float)):
            raise MalformedToken()

        return SessionClaims(
            user_id=user_id,
            email=payload["email"],
            role=payload["role"],
            is_admin=payload["isAdmin"],
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
        )


# ---------------------------------------------------------------------------
# Opaque one-time tokens
# ---------------------------------------------------------------------------


def generate_opaque_token() -> str:
    """Return 32 random bytes as 64 hex characters (256 bits of entropy)."""
    return secrets.token_hex(32)
