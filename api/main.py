"""
api/main.py -- FastAPI application entry point for Folio.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SessionMiddleware     -- OAuth state storage for authlib

Lifespan builds every service once and stores it on app.state; routes read
them from request.app.state. Nothing is constructed at import time except
the app itself, so tests can wire their own state with configure_state().
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.exceptions import HTTPException
from starlette.middleware.sessions import SessionMiddleware

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.projects import router as projects_router
from api.routes.v1.testimonials import router as testimonials_router
from api.routes.v1.users import router as users_router
from auth.delivery import LogTokenDelivery
from auth.identity import IdentityService
from auth.oauth import build_oauth
from auth.store import UserStore
from core.config import AuthConfig, Settings, get_settings
from core.database import create_engine, init_schema
from core.errors import DomainError, ValidationError
from projects.store import ProjectStore
from testimonials.moderation import ModerationService
from testimonials.store import TestimonialStore

API_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("folio.api")

# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------


def configure_state(app: FastAPI, engine: AsyncEngine, settings: Settings) -> None:
    """Construct every store and service for one engine and attach them to app.state.

    Called by lifespan at startup and by the test fixtures, so both run the
    application with the same wiring.
    """
    user_store = UserStore(engine)
    identity = IdentityService.from_config(user_store, AuthConfig.from_settings(settings))
    testimonial_store = TestimonialStore(engine)

    app.state.settings = settings
    app.state.engine = engine
    app.state.user_store = user_store
    app.state.identity = identity
    app.state.token_service = identity.tokens
    app.state.testimonial_store = testimonial_store
    app.state.moderation = ModerationService(testimonial_store)
    app.state.project_store = ProjectStore(engine)
    app.state.oauth = build_oauth(settings)
    app.state.token_delivery = LogTokenDelivery(settings.frontend_url, reveal_links=settings.debug)


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the database, create the schema, wire services; dispose the pool on shutdown."""
    settings = get_settings()
    logger.info("Folio API starting up")
    engine = create_engine(settings.database_url)
    await init_schema(engine)
    logger.info("Database schema ready")
    configure_state(app, engine, settings)
    logger.info("Services initialized (debug=%s)", settings.debug)

    yield

    await engine.dispose()
    logger.info("Folio API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Folio API",
    description="Portfolio backend: accounts (local and OAuth), projects and moderated testimonials.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Starlette wraps each add_middleware() call around the ones registered
# before it, so the LAST registration is the outermost layer. Registered
# here innermost-first: Session, then CORS, then TrustedHost.
# ---------------------------------------------------------------------------

_settings = get_settings()

# SessionMiddleware is required by authlib to store the OAuth state value
# between the authorization redirect and the callback. Session tokens
# themselves are stateless and never stored here.
app.add_middleware(SessionMiddleware, secret_key=_settings.secret_key, https_only=not _settings.debug)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])
app.include_router(testimonials_router, prefix="/api/v1", tags=["Testimonials"])
app.include_router(projects_router, prefix="/api/v1", tags=["Projects"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Render any typed domain failure with its own status and code."""
    return _error(exc.status_code, exc.code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with a structured error when the request body or query params fail validation."""
    return _error(
        ValidationError.status_code,
        ValidationError.code,
        ValidationError.message,
        detail=str(exc.errors()),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for FastAPI/Starlette HTTP exceptions (404 on unknown routes, 405, ...)."""
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    The client receives only a generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=API_VERSION)
