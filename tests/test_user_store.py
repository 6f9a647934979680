"""
tests/test_user_store.py -- Unit tests for auth/store.py (UserStore).

Covers:
  - create/get round trip, lookups by email, id, verification and reset token
  - Duplicate email raises EmailInUse (UNIQUE constraint, not just a pre-check)
  - Other integrity failures propagate as IntegrityError instead of EmailInUse
  - update_user() rejects unknown fields and reports missing ids
  - get_by_reset_token() ignores expired tokens
  - delete_user() cascades to the user's testimonials
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import DEFAULT_PICTURE, User
from core import errors
from core.database import utcnow
from testimonials.models import Testimonial


def _user(email: str = "grace@example.com", **overrides) -> User:
    values = dict(email=email, name="Grace", hashed_password="x", verification_token="verify-me")
    values.update(overrides)
    return User(**values)


class TestCreateAndRead:
    @pytest.mark.asyncio
    async def test_create_assigns_id_and_defaults(self, user_store) -> None:
        user_id = await user_store.create_user(_user())
        user = await user_store.get_by_id(user_id)
        assert user is not None
        assert user.id == user_id
        assert user.provider == "local"
        assert user.role == "user"
        assert user.is_admin is False
        assert user.is_verified is False
        assert user.picture == DEFAULT_PICTURE
        assert user.created_at is not None and user.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_lookup_by_email_and_verification_token(self, user_store) -> None:
        user_id = await user_store.create_user(_user())
        assert (await user_store.get_by_email("grace@example.com")).id == user_id
        assert (await user_store.get_by_verification_token("verify-me")).id == user_id
        assert await user_store.get_by_email("nobody@example.com") is None
        assert await user_store.get_by_verification_token("nope") is None

    @pytest.mark.asyncio
    async def test_duplicate_email_raises_email_in_use(self, user_store) -> None:
        await user_store.create_user(_user())
        with pytest.raises(errors.EmailInUse):
            await user_store.create_user(_user(name="Impostor"))

    @pytest.mark.asyncio
    async def test_other_integrity_errors_are_not_email_conflicts(self, user_store) -> None:
        with pytest.raises(IntegrityError):
            await user_store.create_user(_user(name=None))
        user_id = await user_store.create_user(_user())
        with pytest.raises(IntegrityError):
            await user_store.update_user(user_id, name=None)

    @pytest.mark.asyncio
    async def test_list_users_ordered_by_email(self, user_store) -> None:
        await user_store.create_user(_user("zed@example.com", verification_token=None))
        await user_store.create_user(_user("amy@example.com", verification_token=None))
        emails = [u.email for u in await user_store.list_users()]
        assert emails == ["amy@example.com", "zed@example.com"]


class TestUpdate:
    @pytest.mark.asyncio
    async def test_update_writes_allowed_fields(self, user_store) -> None:
        user_id = await user_store.create_user(_user())
        assert await user_store.update_user(user_id, name="Grace H.", is_verified=True, verification_token=None)
        user = await user_store.get_by_id(user_id)
        assert user.name == "Grace H."
        assert user.is_verified is True
        assert user.verification_token is None

    @pytest.mark.asyncio
    async def test_unknown_field_raises_value_error(self, user_store) -> None:
        user_id = await user_store.create_user(_user())
        with pytest.raises(ValueError):
            await user_store.update_user(user_id, favourite_colour="blue")

    @pytest.mark.asyncio
    async def test_update_missing_user_returns_false(self, user_store) -> None:
        assert await user_store.update_user(9999, name="Ghost") is False

    @pytest.mark.asyncio
    async def test_email_change_collision_raises_email_in_use(self, user_store) -> None:
        await user_store.create_user(_user("first@example.com", verification_token=None))
        second = await user_store.create_user(_user("second@example.com", verification_token=None))
        with pytest.raises(errors.EmailInUse):
            await user_store.update_user(second, email="first@example.com")


class TestResetTokenLookup:
    @pytest.mark.asyncio
    async def test_live_token_is_found(self, user_store) -> None:
        now = utcnow()
        user_id = await user_store.create_user(
            _user(reset_password_token="reset-1", reset_password_expires=now + timedelta(hours=1))
        )
        user = await user_store.get_by_reset_token("reset-1", now=now)
        assert user is not None and user.id == user_id

    @pytest.mark.asyncio
    async def test_expired_token_is_ignored(self, user_store) -> None:
        now = utcnow()
        await user_store.create_user(
            _user(reset_password_token="reset-1", reset_password_expires=now + timedelta(hours=1))
        )
        assert await user_store.get_by_reset_token("reset-1", now=now + timedelta(hours=2)) is None

    @pytest.mark.asyncio
    async def test_unknown_token_is_ignored(self, user_store) -> None:
        assert await user_store.get_by_reset_token("missing", now=utcnow()) is None


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_removes_user(self, user_store) -> None:
        user_id = await user_store.create_user(_user())
        assert await user_store.delete_user(user_id) is True
        assert await user_store.get_by_id(user_id) is None
        assert await user_store.delete_user(user_id) is False

    @pytest.mark.asyncio
    async def test_delete_cascades_to_testimonials(self, user_store, testimonial_store) -> None:
        user_id = await user_store.create_user(_user())
        await testimonial_store.create(Testimonial(user_id=user_id, name="Grace", content="Great work", rating=5))
        assert len(await testimonial_store.list_by_user(user_id)) == 1

        await user_store.delete_user(user_id)
        assert await testimonial_store.list_by_user(user_id) == []
