"""
projects/models.py -- Domain dataclass for portfolio projects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

CATEGORIES = ("web", "mobile", "design", "full-stack")
DEFAULT_PLATFORM = "Cvs Central Cluster"


@dataclass
class Project:
    """A portfolio entry, addressed publicly by its unique slug.

    related_projects holds slugs of other projects; duplicates are rejected
    at the request boundary.
    """

    title: str
    slug: str
    description: str
    full_description: str
    image: str
    category: str  # one of CATEGORIES
    id: int | None = None
    technologies: list[str] = field(default_factory=list)
    features: list[str] = field(default_factory=list)
    live_url: str | None = None
    github_url: str | None = None
    related_projects: list[str] = field(default_factory=list)
    is_active: bool = True
    is_featured: bool = False
    platform: str = DEFAULT_PLATFORM
    created_at: datetime | None = None
    updated_at: datetime | None = None
