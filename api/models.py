"""
API request and response models for the Folio REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py,
testimonials/models.py and projects/models.py, which own the internal domain
representation. Route handlers map between the two.

JSON keys are camelCase on the wire (isVerified, fullDescription, ...). Every
model derives from _ApiModel, whose alias generator produces the camelCase
names; populate_by_name lets Python code construct models with snake_case.

UserResponse has no field for the password hash or the verification/reset
tokens, so they cannot leak into a response even by accident.
"""

from enum import Enum
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from auth.models import CurrentUser, User
from projects.models import Project
from testimonials.models import MAX_CONTENT_LENGTH, MAX_RATING, MIN_RATING, Testimonial

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

_Email = Annotated[str, Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)]
_Password = Annotated[str, Field(min_length=1, max_length=256)]
_Rating = Annotated[int, Field(ge=MIN_RATING, le=MAX_RATING)]


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _ApiResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    user = "user"
    admin = "admin"


class CategoryEnum(str, Enum):
    web = "web"
    mobile = "mobile"
    design = "design"
    full_stack = "full-stack"


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str


class MessageResponse(_ApiResponse):
    message: str


# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


class RegisterRequest(_ApiModel):
    """Request body for POST /api/v1/auth/register."""

    email: _Email
    name: str = Field(min_length=1, max_length=255)
    password: _Password
    picture: Optional[str] = Field(default=None, max_length=2048)


class LoginRequest(_ApiModel):
    email: _Email
    password: _Password


class PasswordResetRequest(_ApiModel):
    """Request body for POST /api/v1/auth/password-reset.

    email is deliberately only length-checked: a pattern failure would be a
    distinguishable response on an endpoint that must answer uniformly.
    """

    email: str = Field(min_length=1, max_length=255)


class PasswordBody(_ApiModel):
    """Request body carrying a single new password (reset and set-password)."""

    password: _Password


class ChangePasswordRequest(_ApiModel):
    current_password: _Password
    new_password: _Password


class ProfileUpdate(_ApiModel):
    """Request body for PATCH /api/v1/users/me. Only name and picture are writable."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    picture: Optional[str] = Field(default=None, max_length=2048)


class UserAdminUpdate(_ApiModel):
    """Request body for PATCH /api/v1/users/{id} (admin only)."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    picture: Optional[str] = Field(default=None, max_length=2048)
    role: Optional[RoleEnum] = None
    is_admin: Optional[bool] = None
    is_verified: Optional[bool] = None


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class UserResponse(_ApiResponse):
    """Outward shape of a user. No secret material."""

    id: int
    email: str
    name: str
    picture: str
    provider: str
    role: str
    is_admin: bool
    is_verified: bool
    has_password: bool
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
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
            created_at=user.created_at.isoformat() if user.created_at else None,
            updated_at=user.updated_at.isoformat() if user.updated_at else None,
        )

    @classmethod
    def from_current(cls, user: CurrentUser) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            picture=user.picture,
            provider=user.provider,
            role=user.role,
            is_admin=user.is_admin,
            is_verified=user.is_verified,
            has_password=user.has_password,
        )


class RegisterResponse(_ApiResponse):
    message: str
    user: UserResponse


class LoginResponse(_ApiResponse):
    message: str
    user: UserResponse
    token: str
    token_type: str = "bearer"
    expires_in: int


class OAuthProviderInfo(_ApiResponse):
    name: str
    label: str


# ---------------------------------------------------------------------------
# Testimonials
# ---------------------------------------------------------------------------


class TestimonialCreate(_ApiModel):
    """Request body for POST /api/v1/testimonials.

    name and avatar default to the author's profile when omitted.
    """

    content: str = Field(min_length=1, max_length=MAX_CONTENT_LENGTH)
    rating: _Rating
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    avatar: Optional[str] = Field(default=None, max_length=2048)
    position: Optional[str] = Field(default=None, max_length=255)
    company: Optional[str] = Field(default=None, max_length=255)
    platform: Optional[str] = Field(default=None, max_length=255)


class TestimonialUpdate(_ApiModel):
    """Request body for PUT /api/v1/testimonials/{id}.

    is_approved is accepted from anyone but only applied for admins.
    """

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    content: Optional[str] = Field(default=None, min_length=1, max_length=MAX_CONTENT_LENGTH)
    rating: Optional[_Rating] = None
    avatar: Optional[str] = Field(default=None, max_length=2048)
    position: Optional[str] = Field(default=None, max_length=255)
    company: Optional[str] = Field(default=None, max_length=255)
    platform: Optional[str] = Field(default=None, max_length=255)
    is_approved: Optional[bool] = None


class ModerationRequest(_ApiModel):
    is_approved: bool


class TestimonialResponse(_ApiResponse):
    id: int
    user_id: int
    name: str
    avatar: Optional[str]
    content: str
    rating: int
    position: Optional[str]
    company: Optional[str]
    platform: Optional[str]
    is_approved: bool
    created_at: Optional[str]
    updated_at: Optional[str]

    @classmethod
    def from_testimonial(cls, t: Testimonial) -> "TestimonialResponse":
        return cls(
            id=t.id,
            user_id=t.user_id,
            name=t.name,
            avatar=t.avatar,
            content=t.content,
            rating=t.rating,
            position=t.position,
            company=t.company,
            platform=t.platform,
            is_approved=t.is_approved,
            created_at=t.created_at.isoformat() if t.created_at else None,
            updated_at=t.updated_at.isoformat() if t.updated_at else None,
        )


class TestimonialListResponse(_ApiResponse):
    testimonials: list[TestimonialResponse]


class TestimonialPageResponse(_ApiResponse):
    """Response for GET /api/v1/testimonials/approved."""

    current_page: int
    total_pages: int
    total_count: int
    has_next_page: bool
    has_prev_page: bool
    testimonials: list[TestimonialResponse]


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


def _unique_slugs(values: Optional[list[str]]) -> Optional[list[str]]:
    if values is not None and len(set(values)) != len(values):
        raise ValueError("Related projects must have unique slugs")
    return values


class ProjectCreate(_ApiModel):
    """Request body for POST /api/v1/projects."""

    title: str = Field(min_length=1, max_length=255)
    slug: str = Field(min_length=1, max_length=255, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    description: str = Field(min_length=1)
    full_description: str = Field(min_length=1)
    image: str = Field(min_length=1, max_length=2048)
    technologies: list[str]
    features: list[str]
    live_url: Optional[str] = Field(default=None, max_length=2048)
    github_url: Optional[str] = Field(default=None, max_length=2048)
    category: CategoryEnum
    related_projects: list[str] = Field(default_factory=list)
    is_active: bool = True
    is_featured: bool = False
    platform: Optional[str] = Field(default=None, max_length=255)

    @field_validator("related_projects")
    @classmethod
    def related_unique(cls, values: list[str]) -> list[str]:
        return _unique_slugs(values)


class ProjectUpdate(_ApiModel):
    """Request body for PUT /api/v1/projects/{id}. Omitted fields are left unchanged."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    slug: Optional[str] = Field(default=None, min_length=1, max_length=255, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    description: Optional[str] = Field(default=None, min_length=1)
    full_description: Optional[str] = Field(default=None, min_length=1)
    image: Optional[str] = Field(default=None, min_length=1, max_length=2048)
    technologies: Optional[list[str]] = None
    features: Optional[list[str]] = None
    live_url: Optional[str] = Field(default=None, max_length=2048)
    github_url: Optional[str] = Field(default=None, max_length=2048)
    category: Optional[CategoryEnum] = None
    related_projects: Optional[list[str]] = None
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None
    platform: Optional[str] = Field(default=None, max_length=255)

    @field_validator("related_projects")
    @classmethod
    def related_unique(cls, values: Optional[list[str]]) -> Optional[list[str]]:
        return _unique_slugs(values)


class ProjectResponse(_ApiResponse):
    id: int
    title: str
    slug: str
    description: str
    full_description: str
    image: str
    technologies: list[str]
    features: list[str]
    live_url: Optional[str]
    github_url: Optional[str]
    category: str
    related_projects: list[str]
    is_active: bool
    is_featured: bool
    platform: str
    created_at: Optional[str]
    updated_at: Optional[str]

    @classmethod
    def from_project(cls, p: Project) -> "ProjectResponse":
        return cls(
            id=p.id,
            title=p.title,
            slug=p.slug,
            description=p.description,
            full_description=p.full_description,
            image=p.image,
            technologies=p.technologies,
            features=p.features,
            live_url=p.live_url,
            github_url=p.github_url,
            category=p.category,
            related_projects=p.related_projects,
            is_active=p.is_active,
            is_featured=p.is_featured,
            platform=p.platform,
            created_at=p.created_at.isoformat() if p.created_at else None,
            updated_at=p.updated_at.isoformat() if p.updated_at else None,
        )


class ProjectPageResponse(_ApiResponse):
    """Paginated project listing."""

    current_page: int
    total_pages: int
    total_count: int
    has_next_page: bool
    has_prev_page: bool
    projects: list[ProjectResponse]
