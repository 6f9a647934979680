"""
auth/store.py -- SQLAlchemy Core persistence layer for users (the Credential Store).

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Service and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(email) is a database constraint, not an application check. Two
  concurrent registrations for the same address both pass the service-level
  pre-check; the second INSERT then fails with IntegrityError, which
  create_user() and update_user() translate into EmailInUse. Other
  integrity failures (NOT NULL and the like) propagate as IntegrityError.

Reads return a User or None (the not-found signal). Writes return the new id
or a bool saying whether a row was touched.

Layer rule: no imports from api/, testimonials/ or projects/.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Table, Text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine

from auth.models import DEFAULT_PICTURE, User
from core.database import as_utc, metadata, utcnow
from core.errors import EmailInUse

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("name", String(255), nullable=False),
    Column("picture", Text, nullable=False, default=DEFAULT_PICTURE),
    Column("provider", String(20), nullable=False, server_default="local"),
    Column("provider_id", String(255)),  # NULL for local accounts
    Column("hashed_password", Text),  # NULL for OAuth-only accounts
    Column("role", String(20), nullable=False, server_default="user"),
    Column("is_admin", Boolean, nullable=False, server_default="0"),
    Column("is_verified", Boolean, nullable=False, server_default="0"),
    Column("verification_token", String(64), index=True),
    Column("reset_password_token", String(64), index=True),
    Column("reset_password_expires", DateTime(timezone=True)),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)


def _is_email_conflict(exc: IntegrityError) -> bool:
    """True when the violated constraint is the UNIQUE index on users.email.

    SQLite reports "UNIQUE constraint failed: users.email"; PostgreSQL names
    the users_email_key constraint. Any other integrity failure is a bug, not
    a conflict, and is re-raised unchanged.
    """
    message = str(exc.orig).lower()
    return "unique" in message and "email" in message


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore(engine)
        user_id = await store.create_user(User(email="a@x.com", name="A", hashed_password=...))
        user = await store.get_by_email("a@x.com")
    """

    # Columns update_user() may write. id and created_at are never
    # caller-writable; updated_at is stamped by the store itself.
    _UPDATABLE: frozenset[str] = frozenset(
        {
            "email",
            "name",
            "picture",
            "provider",
            "provider_id",
            "hashed_password",
            "role",
            "is_admin",
            "is_verified",
            "verification_token",
            "reset_password_token",
            "reset_password_expires",
        }
    )

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        async with self.engine.connect() as conn:
            row = (await conn.execute(_users.select().where(_users.c.email == email))).fetchone()
        return _row_to_user(row) if row is not None else None

    async def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        async with self.engine.connect() as conn:
            row = (await conn.execute(_users.select().where(_users.c.id == user_id))).fetchone()
        return _row_to_user(row) if row is not None else None

    async def get_by_verification_token(self, token: str) -> User | None:
        """Exact-match lookup on the pending email-verification token."""
        async with self.engine.connect() as conn:
            row = (await conn.execute(_users.select().where(_users.c.verification_token == token))).fetchone()
        return _row_to_user(row) if row is not None else None

    async def get_by_reset_token(self, token: str, now: datetime) -> User | None:
        """Return the user holding this reset token, only if it expires after `now`.

        The expiry comparison runs on aware UTC datetimes in Python rather than
        in SQL, because SQLite stores DateTime values without an offset.
        """
        async with self.engine.connect() as conn:
            row = (await conn.execute(_users.select().where(_users.c.reset_password_token == token))).fetchone()
        if row is None:
            return None
        user = _row_to_user(row)
        if user.reset_password_expires is None or user.reset_password_expires <= now:
            return None
        return user

    async def list_users(self) -> list[User]:
        """Return all users ordered by email. Admin-only operation."""
        async with self.engine.connect() as conn:
            rows = (await conn.execute(_users.select().order_by(_users.c.email))).fetchall()
        return [_row_to_user(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises EmailInUse if the email is already owned by another record,
        including when a concurrent request inserted it first.
        """
        now = utcnow()
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(
                    _users.insert().values(
                        email=user.email,
                        name=user.name,
                        picture=user.picture or DEFAULT_PICTURE,
                        provider=user.provider,
                        provider_id=user.provider_id,
                        hashed_password=user.hashed_password,
                        role=user.role,
                        is_admin=user.is_admin,
                        is_verified=user.is_verified,
                        verification_token=user.verification_token,
                        reset_password_token=user.reset_password_token,
                        reset_password_expires=user.reset_password_expires,
                        created_at=now,
                        updated_at=now,
                    )
                )
        except IntegrityError as exc:
            if not _is_email_conflict(exc):
                raise
            raise EmailInUse() from exc
        return result.inserted_primary_key[0]

    async def update_user(self, user_id: int, **fields) -> bool:
        """Update mutable fields on an existing user.

        Only keys in _UPDATABLE are accepted; unknown keys raise ValueError
        rather than being silently ignored. Raises EmailInUse when an email
        change collides with another record.

        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - self._UPDATABLE
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        fields["updated_at"] = utcnow()
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
        except IntegrityError as exc:
            if not _is_email_conflict(exc):
                raise
            raise EmailInUse() from exc
        return result.rowcount > 0

    async def delete_user(self, user_id: int) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found.

        Testimonials authored by the user are removed by the ON DELETE CASCADE
        foreign key on testimonials.user_id.
        """
        async with self.engine.begin() as conn:
            result = await conn.execute(_users.delete().where(_users.c.id == user_id))
        return result.rowcount > 0


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name,
        picture=row.picture,
        provider=row.provider,
        provider_id=row.provider_id,
        hashed_password=row.hashed_password,
        role=row.role,
        is_admin=bool(row.is_admin),
        is_verified=bool(row.is_verified),
        verification_token=row.verification_token,
        reset_password_token=row.reset_password_token,
        reset_password_expires=as_utc(row.reset_password_expires),
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )
