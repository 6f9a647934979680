"""
tests/conftest.py -- Shared test fixtures for Folio unit and integration tests.

This module provides:
  - make_settings(): Settings for one test, pointed at a file DB under tmp_path
  - engine / user_store / identity / moderation / project_store: async unit
    fixtures on a fresh SQLite file per test
  - RecordingDelivery: captures verification and reset tokens instead of logging them
  - api: an ApiHarness around a TestClient whose lifespan is patched to build
    the real services on a per-test database

Design: TestClient runs the app on its own event loop in a worker thread.
The engine is created inside the patched lifespan so aiosqlite connections
belong to that loop; seeding helpers go through client.portal for the same
reason. A file DB (not :memory:) is used because each pooled connection to
:memory: would see a blank schema.

The DEBUG env var must be set before api.main is imported: its middleware
reads get_settings() at import time, and only debug mode may auto-generate
SECRET_KEY.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from functools import partial
from unittest.mock import AsyncMock, MagicMock

# CRITICAL: Set DEBUG before any core/api import.
os.environ.setdefault("DEBUG", "true")

import pytest
import pytest_asyncio
from fastapi.responses import RedirectResponse
from fastapi.testclient import TestClient

from api.main import app, configure_state
from auth.delivery import TokenDelivery
from auth.identity import IdentityService
from auth.models import CurrentUser, User
from auth.store import UserStore
from core.config import AuthConfig, Settings
from core.database import create_engine, init_schema
from projects.store import ProjectStore
from testimonials.moderation import ModerationService
from testimonials.store import TestimonialStore

TEST_SECRET = "folio-test-secret-key-0123456789abcdef"
TEST_PASSWORD = "correct-horse-battery"
FRONTEND_URL = "http://frontend.test"


def make_settings(tmp_path, **overrides) -> Settings:
    """Settings for a single test. Both OAuth providers are enabled with fake credentials."""
    values = dict(
        debug=True,
        secret_key=TEST_SECRET,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'api.db'}",
        bcrypt_rounds=4,
        frontend_url=FRONTEND_URL,
        google_client_id="google-client-id",
        google_client_secret="google-client-secret",
        github_client_id="github-client-id",
        github_client_secret="github-client-secret",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FakeClock:
    """Callable clock for IdentityService; advance() moves time forward."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta) -> None:
        self.now = self.now + delta


class RecordingDelivery(TokenDelivery):
    """Keeps every delivered token, keyed by email, so tests can complete the flows."""

    def __init__(self) -> None:
        self.verifications: dict[str, str] = {}
        self.resets: dict[str, str] = {}

    async def send_verification(self, user: User, token: str) -> None:
        self.verifications[user.email] = token

    async def send_password_reset(self, user: User, token: str) -> None:
        self.resets[user.email] = token


# ---------------------------------------------------------------------------
# Async unit fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'unit.db'}")
    await init_schema(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def auth_config() -> AuthConfig:
    return AuthConfig(secret_key=TEST_SECRET, token_ttl_seconds=3600, bcrypt_rounds=4)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def user_store(engine) -> UserStore:
    return UserStore(engine)


@pytest.fixture
def identity(user_store, auth_config, clock) -> IdentityService:
    return IdentityService.from_config(user_store, auth_config, clock=clock)


@pytest.fixture
def testimonial_store(engine) -> TestimonialStore:
    return TestimonialStore(engine)


@pytest.fixture
def moderation(testimonial_store) -> ModerationService:
    return ModerationService(testimonial_store)


@pytest.fixture
def project_store(engine) -> ProjectStore:
    return ProjectStore(engine)


async def _insert_user(
    store: UserStore,
    email: str,
    name: str = "Test User",
    role: str = "user",
    is_admin: bool = False,
    provider: str = "local",
) -> CurrentUser:
    """Insert a verified user directly and return it as the gate would see it."""
    user_id = await store.create_user(
        User(
            email=email,
            name=name,
            provider=provider,
            provider_id=None if provider == "local" else f"{provider}-{email}",
            role=role,
            is_admin=is_admin,
            is_verified=True,
        )
    )
    return CurrentUser.from_user(await store.get_by_id(user_id))


@pytest.fixture
def create_user(user_store):
    """Async factory: await create_user(email, role=..., is_admin=...) returns a CurrentUser."""
    return partial(_insert_user, user_store)


# ---------------------------------------------------------------------------
# API harness
# ---------------------------------------------------------------------------


class ApiHarness:
    """A TestClient plus helpers that seed state on the app's own event loop."""

    password = TEST_PASSWORD

    def __init__(self, client: TestClient, delivery: RecordingDelivery) -> None:
        self.client = client
        self.delivery = delivery

    @property
    def state(self):
        return self.client.app.state

    def run(self, fn, *args, **kwargs):
        """Await fn(*args, **kwargs) on the app loop and return its result."""
        return self.client.portal.call(partial(fn, *args, **kwargs))

    def create_user(
        self,
        email: str,
        password: str = TEST_PASSWORD,
        name: str = "Test User",
        verified: bool = True,
        role: str = "user",
        is_admin: bool = False,
    ) -> User:
        """Register a local account through IdentityService and adjust its flags."""
        identity: IdentityService = self.state.identity
        user = self.run(identity.register, email, name, password)
        updates: dict = {}
        if verified:
            updates.update(is_verified=True, verification_token=None)
        if role != "user":
            updates["role"] = role
        if is_admin:
            updates["is_admin"] = True
        if updates:
            self.run(identity.store.update_user, user.id, **updates)
        return self.run(identity.get_user, user.id)

    def token_for(self, user: User) -> str:
        return self.state.identity.issue_token(user)

    def headers_for(self, user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token_for(user)}"}


def _patch_lifespan(settings: Settings, delivery: RecordingDelivery, oauth_client: MagicMock):
    """Return a lifespan that wires the real services to a per-test database.

    The OAuth registry is replaced with a mock so no request leaves the process.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        eng = create_engine(settings.database_url)
        await init_schema(eng)
        configure_state(app, eng, settings)
        app.state.token_delivery = delivery
        app.state.oauth = MagicMock()
        app.state.oauth.create_client.return_value = oauth_client
        yield
        await eng.dispose()

    return test_lifespan


@pytest.fixture
def oauth_client() -> MagicMock:
    """Stand-in for an authlib StarletteOAuth2App."""
    client = MagicMock()
    client.authorize_redirect = AsyncMock(
        return_value=RedirectResponse("https://provider.test/authorize", status_code=302)
    )
    client.authorize_access_token = AsyncMock()
    client.get = AsyncMock()
    return client


@pytest.fixture
def api(tmp_path, oauth_client) -> Generator[ApiHarness, None, None]:
    """Yield an ApiHarness over the real app with isolated state.

    follow_redirects=False so OAuth tests can assert on Location headers.
    """
    settings = make_settings(tmp_path)
    delivery = RecordingDelivery()
    original = app.router.lifespan_context
    app.router.lifespan_context = _patch_lifespan(settings, delivery, oauth_client)
    try:
        with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
            yield ApiHarness(client, delivery)
    finally:
        app.router.lifespan_context = original
