"""
api/routes/v1/projects.py -- Project catalogue REST endpoints.

Routes:
  GET    /api/v1/projects                          -- filtered, paginated list (public)
  GET    /api/v1/projects/active                   -- active projects, paginated (public)
  GET    /api/v1/projects/featured                 -- featured projects, paginated (public)
  GET    /api/v1/projects/id/{project_id}          -- by id (public)
  GET    /api/v1/projects/slug/{slug}              -- by slug (public)
  POST   /api/v1/projects                          -- create (admin only)
  PUT    /api/v1/projects/{project_id}             -- partial update (admin only)
  DELETE /api/v1/projects/{project_id}             -- delete (admin only)
  PATCH  /api/v1/projects/{project_id}/toggle-featured  (admin only)
  PATCH  /api/v1/projects/{project_id}/toggle-active    (admin only)

Query parameters use the same camelCase names as the JSON bodies
(isActive, isFeatured).
"""

from __future__ import annotations

import math
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.models import CategoryEnum, MessageResponse, ProjectCreate, ProjectPageResponse, ProjectResponse, ProjectUpdate
from auth.dependencies import require_admin
from auth.models import CurrentUser
from core.errors import ProjectNotFound
from projects.models import DEFAULT_PLATFORM, Project
from projects.store import ProjectStore

router = APIRouter()


def _page(projects: list[Project], total: int, page: int, limit: int) -> ProjectPageResponse:
    total_pages = math.ceil(total / limit) if limit else 0
    return ProjectPageResponse(
        current_page=page,
        total_pages=total_pages,
        total_count=total,
        has_next_page=page < total_pages,
        has_prev_page=page > 1,
        projects=[ProjectResponse.from_project(p) for p in projects],
    )


# ---------------------------------------------------------------------------
# Public reads
# ---------------------------------------------------------------------------


@router.get("/projects", response_model=ProjectPageResponse)
async def list_projects(
    request: Request,
    category: Optional[CategoryEnum] = None,
    is_active: Optional[bool] = Query(default=None, alias="isActive"),
    is_featured: Optional[bool] = Query(default=None, alias="isFeatured"),
    search: Optional[str] = Query(default=None, max_length=200),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> ProjectPageResponse:
    """List projects newest first. search matches title or description, case-insensitively."""
    store: ProjectStore = request.app.state.project_store
    projects, total = await store.list_projects(
        category=category.value if category is not None else None,
        is_active=is_active,
        is_featured=is_featured,
        search=search,
        limit=limit,
        offset=(page - 1) * limit,
    )
    return _page(projects, total, page, limit)


@router.get("/projects/active", response_model=ProjectPageResponse)
async def list_active(
    request: Request,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> ProjectPageResponse:
    store: ProjectStore = request.app.state.project_store
    projects, total = await store.list_projects(is_active=True, limit=limit, offset=(page - 1) * limit)
    return _page(projects, total, page, limit)


@router.get("/projects/featured", response_model=ProjectPageResponse)
async def list_featured(
    request: Request,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> ProjectPageResponse:
    store: ProjectStore = request.app.state.project_store
    projects, total = await store.list_projects(is_featured=True, limit=limit, offset=(page - 1) * limit)
    return _page(projects, total, page, limit)


@router.get("/projects/id/{project_id}", response_model=ProjectResponse)
async def get_project(request: Request, project_id: int) -> ProjectResponse:
    store: ProjectStore = request.app.state.project_store
    project = await store.get_by_id(project_id)
    if project is None:
        raise ProjectNotFound()
    return ProjectResponse.from_project(project)


@router.get("/projects/slug/{slug}", response_model=ProjectResponse)
async def get_project_by_slug(request: Request, slug: str) -> ProjectResponse:
    store: ProjectStore = request.app.state.project_store
    project = await store.get_by_slug(slug)
    if project is None:
        raise ProjectNotFound()
    return ProjectResponse.from_project(project)


# ---------------------------------------------------------------------------
# Admin writes
# ---------------------------------------------------------------------------


@router.post("/projects", response_model=ProjectResponse, status_code=201)
async def create_project(
    request: Request,
    body: ProjectCreate,
    current_user: CurrentUser = Depends(require_admin),
) -> ProjectResponse:
    store: ProjectStore = request.app.state.project_store
    project_id = await store.create(
        Project(
            title=body.title,
            slug=body.slug,
            description=body.description,
            full_description=body.full_description,
            image=body.image,
            category=body.category.value,
            technologies=body.technologies,
            features=body.features,
            live_url=body.live_url,
            github_url=body.github_url,
            related_projects=body.related_projects,
            is_active=body.is_active,
            is_featured=body.is_featured,
            platform=body.platform or DEFAULT_PLATFORM,
        )
    )
    return ProjectResponse.from_project(await store.get_by_id(project_id))


@router.put("/projects/{project_id}", response_model=ProjectResponse)
async def update_project(
    request: Request,
    project_id: int,
    body: ProjectUpdate,
    current_user: CurrentUser = Depends(require_admin),
) -> ProjectResponse:
    """Update only the fields present in the body."""
    store: ProjectStore = request.app.state.project_store
    updates = body.model_dump(exclude_unset=True, exclude_none=True)
    if "category" in updates:
        updates["category"] = body.category.value
    if not updates:
        project = await store.get_by_id(project_id)
    elif await store.update(project_id, **updates):
        project = await store.get_by_id(project_id)
    else:
        project = None
    if project is None:
        raise ProjectNotFound()
    return ProjectResponse.from_project(project)


@router.delete("/projects/{project_id}", response_model=MessageResponse)
async def delete_project(
    request: Request,
    project_id: int,
    current_user: CurrentUser = Depends(require_admin),
) -> MessageResponse:
    store: ProjectStore = request.app.state.project_store
    if not await store.delete(project_id):
        raise ProjectNotFound()
    return MessageResponse(message="Project deleted successfully")


@router.patch("/projects/{project_id}/toggle-featured", response_model=ProjectResponse)
async def toggle_featured(
    request: Request,
    project_id: int,
    current_user: CurrentUser = Depends(require_admin),
) -> ProjectResponse:
    store: ProjectStore = request.app.state.project_store
    project = await store.toggle_featured(project_id)
    if project is None:
        raise ProjectNotFound()
    return ProjectResponse.from_project(project)


@router.patch("/projects/{project_id}/toggle-active", response_model=ProjectResponse)
async def toggle_active(
    request: Request,
    project_id: int,
    current_user: CurrentUser = Depends(require_admin),
) -> ProjectResponse:
    store: ProjectStore = request.app.state.project_store
    project = await store.toggle_active(project_id)
    if project is None:
        raise ProjectNotFound()
    return ProjectResponse.from_project(project)
