"""
Integration tests for theme and theme asset data.

Tests cover:
- Theme listings without the admin theme or template text
- Theme deletes taking their assets along
- Asset lookups with and without data
"""

from datetime import datetime, timezone

import pytest

from blogdb.weblog_data.model import Theme, ThemeAsset, ThemeTemplate


def _theme(theme_id: str, name: str) -> Theme:
    return Theme(
        id=theme_id,
        name=name,
        version="2.1.0",
        templates=[
            ThemeTemplate(name="index", text=f"<h1>{name}</h1>"),
            ThemeTemplate(name="layout", text="<html>{{ content }}</html>"),
        ],
    )


def _asset(theme_id: str, path: str, data: bytes) -> ThemeAsset:
    return ThemeAsset(
        theme_id=theme_id,
        path=path,
        updated_on=datetime(2024, 1, 20, 22, 0, 0, 1, tzinfo=timezone.utc),
        data=data,
    )


@pytest.fixture
async def themed(empty_data):
    """A store holding three themes, two of them with assets."""
    for theme in (_theme("default", "Default"), _theme("admin", "Admin"), _theme("tech-blog", "Tech Blog")):
        await empty_data.theme.save(theme)
    for asset in (
        _asset("default", "style.css", b"body { }"),
        _asset("default", "img/logo.png", b"\x89PNG\r\n"),
        _asset("tech-blog", "style.css", b"pre { }"),
    ):
        await empty_data.theme_asset.save(asset)
    return empty_data


class TestThemes:
    """Tests for theme data."""

    @pytest.mark.asyncio
    async def test_all(self, themed):
        """The admin theme is hidden and template text is left out."""
        themes = await themed.theme.all()

        assert [t.id for t in themes] == ["default", "tech-blog"]
        assert [t.name for t in themes[0].templates] == ["index", "layout"]
        assert all(t.text == "" for theme in themes for t in theme.templates)

    @pytest.mark.asyncio
    async def test_find_by_id(self, themed):
        """The full lookup keeps template text; the other drops it."""
        full = await themed.theme.find_by_id("default")
        bare = await themed.theme.find_by_id_without_text("default")

        assert full == _theme("default", "Default")
        assert [t.text for t in bare.templates] == ["", ""]
        assert await themed.theme.find_by_id("missing") is None
        assert await themed.theme.find_by_id_without_text("missing") is None

    @pytest.mark.asyncio
    async def test_exists(self, themed):
        """Existence checks by id."""
        assert await themed.theme.exists("admin") is True
        assert await themed.theme.exists("missing") is False

    @pytest.mark.asyncio
    async def test_save_replaces(self, themed):
        """Saving an existing theme replaces it."""
        await themed.theme.save(_theme("default", "Default").model_copy(update={"version": "2.2.0"}))

        assert (await themed.theme.find_by_id("default")).version == "2.2.0"

    @pytest.mark.asyncio
    async def test_delete_removes_assets(self, themed):
        """Deleting a theme deletes its assets only."""
        assert await themed.theme.delete("default") is True

        assert await themed.theme.exists("default") is False
        assert await themed.theme_asset.find_by_theme("default") == []
        assert len(await themed.theme_asset.find_by_theme("tech-blog")) == 1

    @pytest.mark.asyncio
    async def test_delete_missing(self, themed):
        """Deleting an unknown theme reports False."""
        assert await themed.theme.delete("missing") is False


class TestThemeAssets:
    """Tests for theme asset data."""

    @pytest.mark.asyncio
    async def test_find_by_theme(self, themed):
        """A theme's assets by path, without data."""
        assets = await themed.theme_asset.find_by_theme("default")

        assert [a.path for a in assets] == ["img/logo.png", "style.css"]
        assert all(a.data == b"" for a in assets)

    @pytest.mark.asyncio
    async def test_find_by_theme_with_data(self, themed):
        """Data is included when asked for."""
        assets = await themed.theme_asset.find_by_theme_with_data("default")

        assert [a.data for a in assets] == [b"\x89PNG\r\n", b"body { }"]

    @pytest.mark.asyncio
    async def test_find_by_id(self, themed):
        """An asset is found by theme and path, with its data."""
        asset = await themed.theme_asset.find_by_id("default", "img/logo.png")

        assert asset == _asset("default", "img/logo.png", b"\x89PNG\r\n")
        assert asset.id == "default/img/logo.png"
        assert await themed.theme_asset.find_by_id("tech-blog", "img/logo.png") is None

    @pytest.mark.asyncio
    async def test_all(self, themed):
        """Every asset, without data."""
        assets = await themed.theme_asset.all()

        assert [a.id for a in assets] == ["default/img/logo.png", "default/style.css", "tech-blog/style.css"]
        assert all(a.data == b"" for a in assets)

    @pytest.mark.asyncio
    async def test_save_replaces(self, themed):
        """Saving an asset at an existing path replaces it."""
        await themed.theme_asset.save(_asset("tech-blog", "style.css", b"code { }"))

        asset = await themed.theme_asset.find_by_id("tech-blog", "style.css")
        assert asset.data == b"code { }"
        assert len(await themed.theme_asset.all()) == 3

    @pytest.mark.asyncio
    async def test_delete_by_theme(self, themed):
        """Deleting a theme's assets leaves the theme."""
        await themed.theme_asset.delete_by_theme("default")

        assert await themed.theme_asset.find_by_theme("default") == []
        assert await themed.theme.exists("default") is True
