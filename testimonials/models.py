"""
testimonials/models.py -- Domain dataclass for testimonials.

name and avatar are a display copy taken from the author at creation time.
They are not re-synced when the author later edits their profile.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

MIN_RATING = 1
MAX_RATING = 5
MAX_CONTENT_LENGTH = 500

# Fields an owner may change. Admins may change these plus is_approved.
CONTENT_FIELDS = ("name", "content", "rating", "avatar", "position", "company", "platform")


@dataclass
class Testimonial:
    user_id: int
    name: str
    content: str
    rating: int
    id: int | None = None
    avatar: str | None = None
    position: str | None = None
    company: str | None = None
    platform: str | None = None
    is_approved: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
