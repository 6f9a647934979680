"""
testimonials/moderation.py -- Moderation Workflow: who may change a testimonial, and how.

States: unapproved (initial) <-> approved. Only an admin moves a testimonial
between them, in either direction, via moderate() or an admin update().

Ownership rule for update() and delete():
  author of the testimonial -> allowed
  admin (role or is_admin)  -> allowed regardless of ownership
  anyone else               -> Forbidden

update() is an explicit field-by-field merge over CONTENT_FIELDS. Keys the
caller sends that are not in that list are never written, and is_approved is
only read from the changes when the caller is an admin.

Rating bounds are enforced by the request models before a call reaches this
module; the check here is a second line for direct callers.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from auth.dependencies import is_admin_user
from auth.models import CurrentUser
from core.errors import Forbidden, TestimonialNotFound, ValidationError
from testimonials.models import CONTENT_FIELDS, MAX_CONTENT_LENGTH, MAX_RATING, MIN_RATING, Testimonial
from testimonials.store import TestimonialStore

logger = logging.getLogger("folio.testimonials")


@dataclass(frozen=True)
class TestimonialPage:
    """One page of approved testimonials plus the counters the listing endpoint returns."""

    items: list[Testimonial]
    page: int
    limit: int
    total_count: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.limit) if self.limit else 0

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.page > 1


class ModerationService:
    def __init__(self, store: TestimonialStore) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, testimonial_id: int) -> Testimonial:
        testimonial = await self.store.get_by_id(testimonial_id)
        if testimonial is None:
            logger.warning("Testimonial not found testimonial_id=%s", testimonial_id)
            raise TestimonialNotFound()
        return testimonial

    async def list_public(self) -> list[Testimonial]:
        """Every approved testimonial, newest first."""
        items, _ = await self.store.list_approved()
        return items

    async def list_approved(self, page: int = 1, limit: int = 10) -> TestimonialPage:
        items, total = await self.store.list_approved(limit=limit, offset=(page - 1) * limit)
        return TestimonialPage(items=items, page=page, limit=limit, total_count=total)

    async def list_all(self) -> list[Testimonial]:
        return await self.store.list_all()

    async def list_for_user(self, user_id: int) -> list[Testimonial]:
        return await self.store.list_by_user(user_id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(
        self,
        author: CurrentUser,
        content: str,
        rating: int,
        name: str | None = None,
        avatar: str | None = None,
        position: str | None = None,
        company: str | None = None,
        platform: str | None = None,
    ) -> Testimonial:
        """Create a testimonial for author. Always starts unapproved.

        name and avatar default to the author's current profile values.
        """
        _check_rating(rating)
        _check_content(content)
        testimonial = Testimonial(
            user_id=author.id,
            name=name or author.name,
            avatar=avatar or author.picture,
            content=content,
            rating=rating,
            position=position,
            company=company,
            platform=platform,
            is_approved=False,
        )
        testimonial_id = await self.store.create(testimonial)
        logger.info("Testimonial created testimonial_id=%s user_id=%s", testimonial_id, author.id)
        return await self.get(testimonial_id)

    async def update(self, testimonial_id: int, caller: CurrentUser, changes: dict) -> Testimonial:
        """Apply changes to a testimonial owned by caller, or any testimonial if caller is admin."""
        testimonial = await self.get(testimonial_id)
        admin = is_admin_user(caller)
        _check_owner_or_admin(testimonial, caller, admin, action="update")

        updates: dict = {}
        for field in CONTENT_FIELDS:
            if field in changes:
                updates[field] = changes[field]
        if "rating" in updates:
            _check_rating(updates["rating"])
        if "content" in updates:
            _check_content(updates["content"])

        if "is_approved" in changes:
            if admin:
                updates["is_approved"] = bool(changes["is_approved"])
            else:
                logger.warning(
                    "Ignoring is_approved from non-admin testimonial_id=%s user_id=%s",
                    testimonial_id,
                    caller.id,
                )

        if updates:
            await self.store.update(testimonial_id, **updates)
            logger.info("Testimonial updated testimonial_id=%s fields=%s", testimonial_id, sorted(updates))
        return await self.get(testimonial_id)

    async def delete(self, testimonial_id: int, caller: CurrentUser) -> None:
        testimonial = await self.get(testimonial_id)
        _check_owner_or_admin(testimonial, caller, is_admin_user(caller), action="delete")
        await self.store.delete(testimonial_id)
        logger.info("Testimonial deleted testimonial_id=%s by user_id=%s", testimonial_id, caller.id)

    async def moderate(self, testimonial_id: int, is_approved: bool) -> Testimonial:
        """Set the approval flag. Callers must already have passed the admin gate."""
        await self.get(testimonial_id)
        await self.store.update(testimonial_id, is_approved=is_approved)
        logger.info("Testimonial moderated testimonial_id=%s is_approved=%s", testimonial_id, is_approved)
        return await self.get(testimonial_id)


def _check_owner_or_admin(testimonial: Testimonial, caller: CurrentUser, admin: bool, action: str) -> None:
    if admin or testimonial.user_id == caller.id:
        return
    logger.warning(
        "Unauthorized testimonial %s attempt testimonial_id=%s user_id=%s",
        action,
        testimonial.id,
        caller.id,
    )
    raise Forbidden(f"Not authorized to {action} this testimonial.")


def _check_rating(rating) -> None:
    if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError(f"Rating must be between {MIN_RATING} and {MAX_RATING}.")


def _check_content(content) -> None:
    if not isinstance(content, str) or not content.strip():
        raise ValidationError("Content is required.")
    if len(content) > MAX_CONTENT_LENGTH:
        raise ValidationError(f"Content must be at most {MAX_CONTENT_LENGTH} characters.")
