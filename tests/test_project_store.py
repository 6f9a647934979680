"""
tests/test_project_store.py -- Unit tests for projects/store.py (ProjectStore).

Covers:
  - create/get by id and slug; list fields survive the JSON round trip
  - Duplicate slug raises SlugInUse on create and on update
  - list_projects() filters (category, active, featured), search and paging
  - LIKE wildcards in search text are matched literally
  - toggle_featured / toggle_active flip the flag and report missing ids
"""

from __future__ import annotations

import pytest

from core import errors
from projects.models import DEFAULT_PLATFORM, Project


def _project(slug: str, **overrides) -> Project:
    values = dict(
        title=slug.replace("-", " ").title(),
        slug=slug,
        description=f"Short description of {slug}",
        full_description=f"Long description of {slug}",
        image=f"https://img.test/{slug}.png",
        category="web",
        technologies=["python", "fastapi"],
        features=["auth", "search"],
    )
    values.update(overrides)
    return Project(**values)


class TestCreateAndRead:
    @pytest.mark.asyncio
    async def test_round_trip(self, project_store) -> None:
        project_id = await project_store.create(_project("folio", related_projects=["other"]))
        project = await project_store.get_by_id(project_id)
        assert project.slug == "folio"
        assert project.technologies == ["python", "fastapi"]
        assert project.features == ["auth", "search"]
        assert project.related_projects == ["other"]
        assert project.platform == DEFAULT_PLATFORM
        assert project.is_active is True
        assert project.is_featured is False
        assert (await project_store.get_by_slug("folio")).id == project_id

    @pytest.mark.asyncio
    async def test_missing_lookups_return_none(self, project_store) -> None:
        assert await project_store.get_by_id(404) is None
        assert await project_store.get_by_slug("nope") is None

    @pytest.mark.asyncio
    async def test_duplicate_slug_rejected(self, project_store) -> None:
        await project_store.create(_project("folio"))
        with pytest.raises(errors.SlugInUse):
            await project_store.create(_project("folio", title="Another"))


class TestUpdate:
    @pytest.mark.asyncio
    async def test_update_fields(self, project_store) -> None:
        project_id = await project_store.create(_project("folio"))
        assert await project_store.update(project_id, title="Folio v2", technologies=["go"])
        project = await project_store.get_by_id(project_id)
        assert project.title == "Folio v2"
        assert project.technologies == ["go"]

    @pytest.mark.asyncio
    async def test_slug_taken_by_other_project_rejected(self, project_store) -> None:
        await project_store.create(_project("first"))
        second = await project_store.create(_project("second"))
        with pytest.raises(errors.SlugInUse):
            await project_store.update(second, slug="first")

    @pytest.mark.asyncio
    async def test_keeping_own_slug_is_allowed(self, project_store) -> None:
        project_id = await project_store.create(_project("folio"))
        assert await project_store.update(project_id, slug="folio", title="Same slug")

    @pytest.mark.asyncio
    async def test_unknown_field_raises_value_error(self, project_store) -> None:
        project_id = await project_store.create(_project("folio"))
        with pytest.raises(ValueError):
            await project_store.update(project_id, created_at=None)

    @pytest.mark.asyncio
    async def test_missing_id_returns_false(self, project_store) -> None:
        assert await project_store.update(404, title="Ghost") is False
        assert await project_store.delete(404) is False


class TestListing:
    @pytest.mark.asyncio
    async def test_filters(self, project_store) -> None:
        await project_store.create(_project("site", category="web", is_featured=True))
        await project_store.create(_project("app", category="mobile"))
        await project_store.create(_project("old-site", category="web", is_active=False))

        web, total = await project_store.list_projects(category="web")
        assert total == 2
        assert {p.slug for p in web} == {"site", "old-site"}

        active, _ = await project_store.list_projects(is_active=True)
        assert {p.slug for p in active} == {"site", "app"}

        featured, _ = await project_store.list_projects(is_featured=True)
        assert [p.slug for p in featured] == ["site"]

    @pytest.mark.asyncio
    async def test_search_is_case_insensitive_on_title_and_description(self, project_store) -> None:
        await project_store.create(_project("alpha", title="Weather Dashboard"))
        await project_store.create(_project("beta", description="A dashboard for cats"))
        await project_store.create(_project("gamma", title="Chess engine"))

        found, total = await project_store.list_projects(search="DASHBOARD")
        assert total == 2
        assert {p.slug for p in found} == {"alpha", "beta"}

    @pytest.mark.asyncio
    async def test_search_wildcards_are_literal(self, project_store) -> None:
        await project_store.create(_project("alpha", title="100% uptime"))
        await project_store.create(_project("beta", title="Plain title"))
        found, _ = await project_store.list_projects(search="%")
        assert [p.slug for p in found] == ["alpha"]

    @pytest.mark.asyncio
    async def test_paging_newest_first_with_total(self, project_store) -> None:
        for i in range(5):
            await project_store.create(_project(f"p-{i}"))
        page, total = await project_store.list_projects(limit=2, offset=2)
        assert total == 5
        assert [p.slug for p in page] == ["p-2", "p-1"]


class TestToggles:
    @pytest.mark.asyncio
    async def test_toggle_featured_flips(self, project_store) -> None:
        project_id = await project_store.create(_project("folio"))
        assert (await project_store.toggle_featured(project_id)).is_featured is True
        assert (await project_store.toggle_featured(project_id)).is_featured is False

    @pytest.mark.asyncio
    async def test_toggle_active_flips(self, project_store) -> None:
        project_id = await project_store.create(_project("folio"))
        assert (await project_store.toggle_active(project_id)).is_active is False
        assert (await project_store.toggle_active(project_id)).is_active is True

    @pytest.mark.asyncio
    async def test_toggle_missing_returns_none(self, project_store) -> None:
        assert await project_store.toggle_featured(404) is None
        assert await project_store.toggle_active(404) is None
