"""
testimonials/store.py -- SQLAlchemy Core persistence for testimonials.

testimonials.user_id references users.id with ON DELETE CASCADE, so deleting
an account removes its testimonials in the same statement. SQLite only
enforces this with PRAGMA foreign_keys=ON, which core/database.py sets on
every connection.

Every listing is ordered newest first.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Table, Text, func, select
from sqlalchemy.ext.asyncio import AsyncEngine

from core.database import as_utc, metadata, utcnow
from testimonials.models import CONTENT_FIELDS, Testimonial

_testimonials = Table(
    "testimonials",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("name", String(255), nullable=False),
    Column("avatar", Text),
    Column("content", Text, nullable=False),
    Column("rating", Integer, nullable=False),
    Column("position", String(255)),
    Column("company", String(255)),
    Column("platform", String(255)),
    Column("is_approved", Boolean, nullable=False, server_default="0"),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

_NEWEST_FIRST = (_testimonials.c.created_at.desc(), _testimonials.c.id.desc())


class TestimonialStore:
    """Repository for Testimonial entities."""

    __test__ = False  # not a pytest test class

    _UPDATABLE: frozenset[str] = frozenset(CONTENT_FIELDS) | {"is_approved"}

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine

    async def get_by_id(self, testimonial_id: int) -> Testimonial | None:
        async with self.engine.connect() as conn:
            row = (
                await conn.execute(_testimonials.select().where(_testimonials.c.id == testimonial_id))
            ).fetchone()
        return _row_to_testimonial(row) if row is not None else None

    async def list_all(self) -> list[Testimonial]:
        async with self.engine.connect() as conn:
            rows = (await conn.execute(_testimonials.select().order_by(*_NEWEST_FIRST))).fetchall()
        return [_row_to_testimonial(r) for r in rows]

    async def list_by_user(self, user_id: int) -> list[Testimonial]:
        async with self.engine.connect() as conn:
            rows = (
                await conn.execute(
                    _testimonials.select().where(_testimonials.c.user_id == user_id).order_by(*_NEWEST_FIRST)
                )
            ).fetchall()
        return [_row_to_testimonial(r) for r in rows]

    async def list_approved(self, limit: int | None = None, offset: int = 0) -> tuple[list[Testimonial], int]:
        """Return approved testimonials (one page when limit is given) and the total approved count."""
        approved = _testimonials.c.is_approved.is_(True)
        query = _testimonials.select().where(approved).order_by(*_NEWEST_FIRST)
        if limit is not None:
            query = query.limit(limit).offset(offset)
        async with self.engine.connect() as conn:
            total = (await conn.execute(select(func.count()).select_from(_testimonials).where(approved))).scalar_one()
            rows = (await conn.execute(query)).fetchall()
        return [_row_to_testimonial(r) for r in rows], total

    async def create(self, testimonial: Testimonial) -> int:
        now = utcnow()
        async with self.engine.begin() as conn:
            result = await conn.execute(
                _testimonials.insert().values(
                    user_id=testimonial.user_id,
                    name=testimonial.name,
                    avatar=testimonial.avatar,
                    content=testimonial.content,
                    rating=testimonial.rating,
                    position=testimonial.position,
                    company=testimonial.company,
                    platform=testimonial.platform,
                    is_approved=testimonial.is_approved,
                    created_at=now,
                    updated_at=now,
                )
            )
        return result.inserted_primary_key[0]

    async def update(self, testimonial_id: int, **fields) -> bool:
        """Write the given fields. Unknown keys raise ValueError. Returns False if the id is unknown."""
        unknown = set(fields) - self._UPDATABLE
        if unknown:
            raise ValueError(f"Unknown testimonial fields: {unknown!r}")
        fields["updated_at"] = utcnow()
        async with self.engine.begin() as conn:
            result = await conn.execute(
                _testimonials.update().where(_testimonials.c.id == testimonial_id).values(**fields)
            )
        return result.rowcount > 0

    async def delete(self, testimonial_id: int) -> bool:
        async with self.engine.begin() as conn:
            result = await conn.execute(_testimonials.delete().where(_testimonials.c.id == testimonial_id))
        return result.rowcount > 0


def _row_to_testimonial(row) -> Testimonial:
    return Testimonial(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        avatar=row.avatar,
        content=row.content,
        rating=row.rating,
        position=row.position,
        company=row.company,
        platform=row.platform,
        is_approved=bool(row.is_approved),
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )
