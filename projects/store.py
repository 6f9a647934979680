"""
projects/store.py -- SQLAlchemy Core persistence for portfolio projects.

Slug uniqueness is a UNIQUE constraint. create() and update() pre-check for a
friendlier log line, but the IntegrityError from the constraint is what
settles a race; both paths raise SlugInUse.

List-valued fields (technologies, features, related_projects) are stored as
JSON columns.

Reads return a Project or None. Toggles flip the flag in a single UPDATE
statement so two concurrent toggles cannot both read the same old value.
"""

from __future__ import annotations

import logging

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Table, Text, func, not_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine

from core.database import as_utc, metadata, utcnow
from core.errors import SlugInUse
from projects.models import DEFAULT_PLATFORM, Project

logger = logging.getLogger("folio.projects")

_projects = Table(
    "projects",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(255), nullable=False),
    Column("slug", String(255), nullable=False, unique=True),
    Column("description", Text, nullable=False),
    Column("full_description", Text, nullable=False),
    Column("image", Text, nullable=False),
    Column("technologies", JSON, nullable=False),
    Column("features", JSON, nullable=False),
    Column("live_url", Text),
    Column("github_url", Text),
    Column("category", String(20), nullable=False),
    Column("related_projects", JSON, nullable=False),
    Column("is_active", Boolean, nullable=False, server_default="1"),
    Column("is_featured", Boolean, nullable=False, server_default="0"),
    Column("platform", String(255), nullable=False, default=DEFAULT_PLATFORM),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

_NEWEST_FIRST = (_projects.c.created_at.desc(), _projects.c.id.desc())


class ProjectStore:
    """Repository for Project entities.

    Usage:
        store = ProjectStore(engine)
        project_id = await store.create(Project(title="Folio", slug="folio", ...))
        projects, total = await store.list_projects(is_featured=True, limit=10)
    """

    _UPDATABLE: frozenset[str] = frozenset(
        {
            "title",
            "slug",
            "description",
            "full_description",
            "image",
            "technologies",
            "features",
            "live_url",
            "github_url",
            "category",
            "related_projects",
            "is_active",
            "is_featured",
            "platform",
        }
    )

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_by_id(self, project_id: int) -> Project | None:
        async with self.engine.connect() as conn:
            row = (await conn.execute(_projects.select().where(_projects.c.id == project_id))).fetchone()
        return _row_to_project(row) if row is not None else None

    async def get_by_slug(self, slug: str) -> Project | None:
        async with self.engine.connect() as conn:
            row = (await conn.execute(_projects.select().where(_projects.c.slug == slug))).fetchone()
        return _row_to_project(row) if row is not None else None

    async def list_projects(
        self,
        category: str | None = None,
        is_active: bool | None = None,
        is_featured: bool | None = None,
        search: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[list[Project], int]:
        """Return matching projects, newest first, and the total match count.

        search is a case-insensitive substring match on title or description.
        LIKE wildcards in the search text are matched literally.
        """
        conditions = []
        if category is not None:
            conditions.append(_projects.c.category == category)
        if is_active is not None:
            conditions.append(_projects.c.is_active.is_(is_active))
        if is_featured is not None:
            conditions.append(_projects.c.is_featured.is_(is_featured))
        if search:
            pattern = f"%{_escape_like(search)}%"
            conditions.append(
                or_(
                    _projects.c.title.ilike(pattern, escape="\\"),
                    _projects.c.description.ilike(pattern, escape="\\"),
                )
            )

        query = _projects.select().where(*conditions).order_by(*_NEWEST_FIRST)
        if limit is not None:
            query = query.limit(limit).offset(offset)
        count_query = select(func.count()).select_from(_projects).where(*conditions)

        async with self.engine.connect() as conn:
            total = (await conn.execute(count_query)).scalar_one()
            rows = (await conn.execute(query)).fetchall()
        return [_row_to_project(r) for r in rows], total

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, project: Project) -> int:
        """Insert a project and return its id. Raises SlugInUse on a duplicate slug."""
        if await self.get_by_slug(project.slug) is not None:
            logger.warning("Project create rejected: slug in use slug=%s", project.slug)
            raise SlugInUse()
        now = utcnow()
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(
                    _projects.insert().values(
                        title=project.title,
                        slug=project.slug,
                        description=project.description,
                        full_description=project.full_description,
                        image=project.image,
                        technologies=list(project.technologies),
                        features=list(project.features),
                        live_url=project.live_url,
                        github_url=project.github_url,
                        category=project.category,
                        related_projects=list(project.related_projects),
                        is_active=project.is_active,
                        is_featured=project.is_featured,
                        platform=project.platform or DEFAULT_PLATFORM,
                        created_at=now,
                        updated_at=now,
                    )
                )
        except IntegrityError as exc:
            raise SlugInUse() from exc
        project_id = result.inserted_primary_key[0]
        logger.info("Project created project_id=%s slug=%s", project_id, project.slug)
        return project_id

    async def update(self, project_id: int, **fields) -> bool:
        """Update allow-listed fields. Returns False if project_id was not found.

        Raises SlugInUse if the new slug belongs to a different project.
        """
        unknown = set(fields) - self._UPDATABLE
        if unknown:
            raise ValueError(f"Unknown project fields: {unknown!r}")
        if "slug" in fields:
            other = await self.get_by_slug(fields["slug"])
            if other is not None and other.id != project_id:
                logger.warning("Project update rejected: slug in use slug=%s", fields["slug"])
                raise SlugInUse()
        fields["updated_at"] = utcnow()
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(_projects.update().where(_projects.c.id == project_id).values(**fields))
        except IntegrityError as exc:
            raise SlugInUse() from exc
        if result.rowcount > 0:
            logger.info("Project updated project_id=%s", project_id)
        return result.rowcount > 0

    async def delete(self, project_id: int) -> bool:
        async with self.engine.begin() as conn:
            result = await conn.execute(_projects.delete().where(_projects.c.id == project_id))
        if result.rowcount > 0:
            logger.info("Project deleted project_id=%s", project_id)
        return result.rowcount > 0

    async def toggle_featured(self, project_id: int) -> Project | None:
        return await self._toggle(project_id, "is_featured")

    async def toggle_active(self, project_id: int) -> Project | None:
        return await self._toggle(project_id, "is_active")

    async def _toggle(self, project_id: int, column: str) -> Project | None:
        col = _projects.c[column]
        async with self.engine.begin() as conn:
            result = await conn.execute(
                _projects.update().where(_projects.c.id == project_id).values({column: not_(col), "updated_at": utcnow()})
            )
        if result.rowcount == 0:
            return None
        project = await self.get_by_id(project_id)
        logger.info("Project %s toggled project_id=%s value=%s", column, project_id, getattr(project, column))
        return project


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _row_to_project(row) -> Project:
    return Project(
        id=row.id,
        title=row.title,
        slug=row.slug,
        description=row.description,
        full_description=row.full_description,
        image=row.image,
        technologies=list(row.technologies or []),
        features=list(row.features or []),
        live_url=row.live_url,
        github_url=row.github_url,
        category=row.category,
        related_projects=list(row.related_projects or []),
        is_active=bool(row.is_active),
        is_featured=bool(row.is_featured),
        platform=row.platform,
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )
