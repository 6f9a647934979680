"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication (the Authorization Gate).

One auth method: the "Authorization: Bearer <token>" header.

get_current_user() runs the gate:
  1. No Bearer header                     -> Unauthenticated
  2. Expired, tampered or malformed token -> Unauthenticated (one outcome, no detail)
  3. Token names a user that is gone      -> Unauthenticated
  4. Otherwise attach a CurrentUser to request.state.user and return it.

The user is re-fetched on every request, so a deleted account or a changed
role takes effect immediately even though tokens are stateless.

require_admin() wraps get_current_user() and raises Forbidden unless the
user is an admin by either flag.

Both raise DomainErrors; the handler in api/main.py renders them.

Layer rule: no imports from api/, testimonials/ or projects/.
  auth/dependencies.py may import from fastapi (for Depends/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging

from fastapi import Depends, Request

from auth.models import CurrentUser
from core.errors import Forbidden, TokenError, Unauthenticated

logger = logging.getLogger("folio.auth")


def is_admin_user(user) -> bool:
    """role and is_admin are independent; either one grants admin."""
    return bool(user.is_admin) or user.role == "admin"


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_user(request: Request) -> CurrentUser:
    """Require authentication. Raises Unauthenticated (401) if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: CurrentUser = Depends(get_current_user)): ...
    """
    token = _bearer_token(request)
    if token is None:
        raise Unauthenticated()

    try:
        claims = request.app.state.token_service.verify(token)
    except TokenError as exc:
        logger.info("Rejected session token: %s", exc.code)
        raise Unauthenticated() from exc

    user = await request.app.state.user_store.get_by_id(claims.user_id)
    if user is None:
        logger.info("Rejected session token: user_id=%s no longer exists", claims.user_id)
        raise Unauthenticated()

    current = CurrentUser.from_user(user)
    request.state.user = current
    return current


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Require admin. Raises Unauthenticated (401) if not signed in, Forbidden (403) if not admin.

    Use as a FastAPI dependency:
        @router.post("/admin-only")
        async def route(user: CurrentUser = Depends(require_admin)): ...
    """
    if not is_admin_user(user):
        raise Forbidden("Admin access required.")
    return user
