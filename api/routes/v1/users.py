"""
api/routes/v1/users.py -- Profile and user-management REST endpoints.

Routes:
  GET    /api/v1/users/me            -- own profile (requires auth)
  PATCH  /api/v1/users/me            -- update own name/picture (requires auth)
  PUT    /api/v1/users/me/password   -- change own password (requires auth)
  DELETE /api/v1/users/me            -- delete own account (requires auth)
  GET    /api/v1/users               -- list all users (admin only)
  GET    /api/v1/users/{user_id}     -- one user (admin only)
  PATCH  /api/v1/users/{user_id}     -- edit name/picture/role/isAdmin/isVerified (admin only)
  DELETE /api/v1/users/{user_id}     -- delete a user (admin only)

Deleting an account also deletes that user's testimonials.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import ChangePasswordRequest, MessageResponse, ProfileUpdate, UserAdminUpdate, UserResponse
from auth.dependencies import get_current_user, require_admin
from auth.identity import IdentityService
from auth.models import CurrentUser

router = APIRouter()


# ---------------------------------------------------------------------------
# Own profile
# ---------------------------------------------------------------------------


@router.get("/users/me", response_model=UserResponse)
async def get_profile(request: Request, current_user: CurrentUser = Depends(get_current_user)) -> UserResponse:
    identity: IdentityService = request.app.state.identity
    return UserResponse.from_user(await identity.get_user(current_user.id))


@router.patch("/users/me", response_model=UserResponse)
async def update_profile(
    request: Request,
    body: ProfileUpdate,
    current_user: CurrentUser = Depends(get_current_user),
) -> UserResponse:
    identity: IdentityService = request.app.state.identity
    user = await identity.update_profile(current_user.id, name=body.name, picture=body.picture)
    return UserResponse.from_user(user)


@router.put("/users/me/password", response_model=MessageResponse)
async def change_password(
    request: Request,
    body: ChangePasswordRequest,
    current_user: CurrentUser = Depends(get_current_user),
) -> MessageResponse:
    identity: IdentityService = request.app.state.identity
    await identity.change_password(current_user.id, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully.")


@router.delete("/users/me", status_code=204)
async def delete_account(request: Request, current_user: CurrentUser = Depends(get_current_user)) -> Response:
    identity: IdentityService = request.app.state.identity
    await identity.delete_account(current_user.id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# User management (admin only)
# ---------------------------------------------------------------------------


@router.get("/users", response_model=list[UserResponse])
async def list_users(request: Request, current_user: CurrentUser = Depends(require_admin)) -> list[UserResponse]:
    identity: IdentityService = request.app.state.identity
    return [UserResponse.from_user(u) for u in await identity.list_users()]


@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(
    request: Request,
    user_id: int,
    current_user: CurrentUser = Depends(require_admin),
) -> UserResponse:
    identity: IdentityService = request.app.state.identity
    return UserResponse.from_user(await identity.get_user(user_id))


@router.patch("/users/{user_id}", response_model=UserResponse)
async def admin_update_user(
    request: Request,
    user_id: int,
    body: UserAdminUpdate,
    current_user: CurrentUser = Depends(require_admin),
) -> UserResponse:
    """Edit another user. role and isAdmin are written independently."""
    identity: IdentityService = request.app.state.identity
    user = await identity.admin_update_user(
        user_id,
        name=body.name,
        picture=body.picture,
        role=body.role.value if body.role is not None else None,
        is_admin=body.is_admin,
        is_verified=body.is_verified,
    )
    return UserResponse.from_user(user)


@router.delete("/users/{user_id}", status_code=204)
async def admin_delete_user(
    request: Request,
    user_id: int,
    current_user: CurrentUser = Depends(require_admin),
) -> Response:
    identity: IdentityService = request.app.state.identity
    await identity.delete_account(user_id)
    return Response(status_code=204)
