"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; stores and services do the work.

Layer rule: no imports from api/, testimonials/ or projects/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

PROVIDERS = ("local", "google", "github")
ROLES = ("user", "admin")

DEFAULT_PICTURE = "https://cdn.pixabay.com/photo/2015/10/05/22/37/blank-profile-picture-973460_1280.png"


@dataclass
class User:
    """A single identity, whether it signs in with a password or an OAuth provider.

    hashed_password is None for OAuth-only users until set_password() gives
    them one. provider_id is None for local accounts.

    role and is_admin are independent flags. The admin gate grants access
    when either one says admin (see auth/dependencies.is_admin_user).

    verification_token is cleared once the email is verified.
    reset_password_token / reset_password_expires are set together by a
    reset request and cleared together by a successful reset.
    """

    email: str
    name: str
    provider: str = "local"  # "local", "google", "github"
    id: int | None = None
    picture: str = DEFAULT_PICTURE
    provider_id: str | None = None
    hashed_password: str | None = None
    role: str = "user"  # "user", "admin"
    is_admin: bool = False
    is_verified: bool = False
    verification_token: str | None = None
    reset_password_token: str | None = None
    reset_password_expires: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class CurrentUser:
    """The authenticated user as seen by route handlers.

    Built by the Authorization Gate from a freshly fetched User. Carries no
    secret material: no password hash, no verification or reset tokens.
    has_password tells the profile endpoint whether set-password applies.
    """

    id: int
    email: str
    name: str
    picture: str
    provider: str
    role: str
    is_admin: bool
    is_verified: bool
    has_password: bool

    @classmethod
    def from_user(cls, user: User) -> "CurrentUser":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            picture=user.picture,
            provider=user.provider,
            role=user.role,
            is_admin=user.is_admin,
            is_verified=user.is_verified,
            has_password=user.hashed_password is not None,
        )
