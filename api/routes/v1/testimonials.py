"""
api/routes/v1/testimonials.py -- Testimonial REST endpoints.

Routes:
  GET    /api/v1/testimonials                          -- all approved (public)
  GET    /api/v1/testimonials/approved?page=&limit=    -- approved, paginated (public)
  GET    /api/v1/testimonials/user/me                  -- caller's own, any state (requires auth)
  GET    /api/v1/testimonials/admin/all                -- everything (admin only)
  PUT    /api/v1/testimonials/admin/{id}/moderate      -- set isApproved (admin only)
  GET    /api/v1/testimonials/{id}                     -- one testimonial (public)
  POST   /api/v1/testimonials                          -- create, always unapproved (requires auth)
  PUT    /api/v1/testimonials/{id}                     -- owner or admin
  DELETE /api/v1/testimonials/{id}                     -- owner or admin

Static paths are registered before /testimonials/{id} so "approved",
"user" and "admin" are never parsed as an id.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from api.models import (
    MessageResponse,
    ModerationRequest,
    TestimonialCreate,
    TestimonialListResponse,
    TestimonialPageResponse,
    TestimonialResponse,
    TestimonialUpdate,
)
from auth.dependencies import get_current_user, require_admin
from auth.models import CurrentUser
from testimonials.moderation import ModerationService

router = APIRouter()


def _listing(items) -> TestimonialListResponse:
    return TestimonialListResponse(testimonials=[TestimonialResponse.from_testimonial(t) for t in items])


# ---------------------------------------------------------------------------
# Public listings
# ---------------------------------------------------------------------------


@router.get("/testimonials", response_model=TestimonialListResponse)
async def list_public(request: Request) -> TestimonialListResponse:
    moderation: ModerationService = request.app.state.moderation
    return _listing(await moderation.list_public())


@router.get("/testimonials/approved", response_model=TestimonialPageResponse)
async def list_approved(
    request: Request,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> TestimonialPageResponse:
    moderation: ModerationService = request.app.state.moderation
    result = await moderation.list_approved(page=page, limit=limit)
    return TestimonialPageResponse(
        current_page=result.page,
        total_pages=result.total_pages,
        total_count=result.total_count,
        has_next_page=result.has_next_page,
        has_prev_page=result.has_prev_page,
        testimonials=[TestimonialResponse.from_testimonial(t) for t in result.items],
    )


# ---------------------------------------------------------------------------
# Authenticated / admin listings and moderation
# ---------------------------------------------------------------------------


@router.get("/testimonials/user/me", response_model=TestimonialListResponse)
async def list_mine(request: Request, current_user: CurrentUser = Depends(get_current_user)) -> TestimonialListResponse:
    moderation: ModerationService = request.app.state.moderation
    return _listing(await moderation.list_for_user(current_user.id))


@router.get("/testimonials/admin/all", response_model=TestimonialListResponse)
async def list_all(request: Request, current_user: CurrentUser = Depends(require_admin)) -> TestimonialListResponse:
    moderation: ModerationService = request.app.state.moderation
    return _listing(await moderation.list_all())


@router.put("/testimonials/admin/{testimonial_id}/moderate", response_model=TestimonialResponse)
async def moderate(
    request: Request,
    testimonial_id: int,
    body: ModerationRequest,
    current_user: CurrentUser = Depends(require_admin),
) -> TestimonialResponse:
    moderation: ModerationService = request.app.state.moderation
    testimonial = await moderation.moderate(testimonial_id, body.is_approved)
    return TestimonialResponse.from_testimonial(testimonial)


# ---------------------------------------------------------------------------
# Single testimonial
# ---------------------------------------------------------------------------


@router.get("/testimonials/{testimonial_id}", response_model=TestimonialResponse)
async def get_testimonial(request: Request, testimonial_id: int) -> TestimonialResponse:
    moderation: ModerationService = request.app.state.moderation
    return TestimonialResponse.from_testimonial(await moderation.get(testimonial_id))


@router.post("/testimonials", response_model=TestimonialResponse, status_code=201)
async def create_testimonial(
    request: Request,
    body: TestimonialCreate,
    current_user: CurrentUser = Depends(get_current_user),
) -> TestimonialResponse:
    """Create a testimonial for the caller. It stays hidden until an admin approves it."""
    moderation: ModerationService = request.app.state.moderation
    testimonial = await moderation.create(
        current_user,
        content=body.content,
        rating=body.rating,
        name=body.name,
        avatar=body.avatar,
        position=body.position,
        company=body.company,
        platform=body.platform,
    )
    return TestimonialResponse.from_testimonial(testimonial)


@router.put("/testimonials/{testimonial_id}", response_model=TestimonialResponse)
async def update_testimonial(
    request: Request,
    testimonial_id: int,
    body: TestimonialUpdate,
    current_user: CurrentUser = Depends(get_current_user),
) -> TestimonialResponse:
    """Owner edits content fields; an admin may also set isApproved."""
    moderation: ModerationService = request.app.state.moderation
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    testimonial = await moderation.update(testimonial_id, current_user, changes)
    return TestimonialResponse.from_testimonial(testimonial)


@router.delete("/testimonials/{testimonial_id}", response_model=MessageResponse)
async def delete_testimonial(
    request: Request,
    testimonial_id: int,
    current_user: CurrentUser = Depends(get_current_user),
) -> MessageResponse:
    moderation: ModerationService = request.app.state.moderation
    await moderation.delete(testimonial_id, current_user)
    return MessageResponse(message="Testimonial deleted successfully")
