"""
Unit tests for backup archives.

Tests cover:
- Re-keying an archive under a new URL base
- Reading archives: missing files, bad JSON, versions, stray entities
- Archive file layout
"""

import json
import os
import tempfile
from datetime import datetime, timezone

import pytest

from blogdb.weblog_data.errors import ArchiveError
from blogdb.weblog_data.model import (
    Category,
    CustomFeed,
    MarkupText,
    Page,
    Post,
    PostStatus,
    Revision,
    RssOptions,
    TagMap,
    Upload,
    WebLog,
    WebLogUser,
)
from blogdb.weblog_data.tools import read_archive, rekey_archive, write_archive
from blogdb.weblog_data.tools.backup import Archive

AS_OF = datetime(2024, 1, 20, 22, 24, 1, 100, tzinfo=timezone.utc)


@pytest.fixture
def archive():
    """A small archive with every kind of cross reference."""
    web_log = WebLog(
        id="wl",
        name="Blog",
        slug="blog",
        url_base="http://localhost:8081",
        default_page="home",
        rss=RssOptions(
            custom_feeds=[
                CustomFeed(id="feed1", source="category:parent", path="podcast.xml"),
                CustomFeed(id="feed2", source="tag:podcast", path="tagged.xml"),
            ]
        ),
    )
    return Archive(
        web_log=web_log,
        users=[WebLogUser(id="user", web_log_id="wl", email="a@example.com", first_name="A", last_name="B")],
        categories=[
            Category(id="parent", web_log_id="wl", name="Parent", slug="parent"),
            Category(id="child", web_log_id="wl", name="Child", slug="child", parent_id="parent"),
        ],
        tag_mappings=[TagMap(id="tm", web_log_id="wl", tag="f#", url_value="f-sharp")],
        pages=[
            Page(
                id="home",
                web_log_id="wl",
                author_id="user",
                title="Home",
                permalink="home.html",
                revisions=[Revision(as_of=AS_OF, text=MarkupText.html("<p>home</p>"))],
            )
        ],
        posts=[
            Post(
                id="post",
                web_log_id="wl",
                author_id="user",
                status=PostStatus.PUBLISHED,
                title="Post",
                permalink="post.html",
                published_on=AS_OF,
                category_ids=["child", "not-archived"],
            )
        ],
        uploads=[Upload(id="up", web_log_id="wl", path="a.txt", data=b"abc")],
    )


@pytest.fixture
def archive_dir():
    """Create temporary directory for archive files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


class TestRekeyArchive:
    """Tests for rekey_archive."""

    def test_every_id_is_new(self, archive):
        """No entity keeps its id."""
        rekeyed = rekey_archive(archive, "https://copy.example.com")

        old_ids = {"wl", "user", "parent", "child", "tm", "home", "post", "up"}
        new_ids = {
            rekeyed.web_log.id,
            rekeyed.users[0].id,
            *(c.id for c in rekeyed.categories),
            rekeyed.tag_mappings[0].id,
            rekeyed.pages[0].id,
            rekeyed.posts[0].id,
            rekeyed.uploads[0].id,
        }
        assert len(new_ids) == 8
        assert not new_ids & old_ids
        assert rekeyed.web_log.url_base == "https://copy.example.com"

    def test_references_follow_new_ids(self, archive):
        """Parents, authors, categories and the default page are rewritten."""
        rekeyed = rekey_archive(archive, "https://copy.example.com")
        parent, child = rekeyed.categories
        user = rekeyed.users[0]
        page = rekeyed.pages[0]
        post = rekeyed.posts[0]

        assert child.parent_id == parent.id
        assert parent.parent_id is None
        assert page.author_id == user.id
        assert post.author_id == user.id
        assert post.category_ids == [child.id, "not-archived"]
        assert rekeyed.web_log.default_page == page.id

    def test_feeds(self, archive):
        """Category feeds follow the category; tag feeds keep their source."""
        rekeyed = rekey_archive(archive, "https://copy.example.com")
        category_feed, tag_feed = rekeyed.web_log.rss.custom_feeds

        assert category_feed.source == f"category:{rekeyed.categories[0].id}"
        assert tag_feed.source == "tag:podcast"
        assert category_feed.id != "feed1"

    def test_result_is_consistent(self, archive):
        """Everything belongs to the new web log; content is untouched."""
        rekeyed = rekey_archive(archive, "https://copy.example.com")

        rekeyed.check_consistency()
        assert rekeyed.pages[0].revisions == archive.pages[0].revisions
        assert rekeyed.uploads[0].data == b"abc"
        assert archive.web_log.id == "wl"

    def test_default_page_posts_is_kept(self, archive):
        """A default page that is not a page id stays as it is."""
        archive = archive.model_copy(update={"web_log": archive.web_log.model_copy(update={"default_page": "posts"})})

        assert rekey_archive(archive, "https://copy.example.com").web_log.default_page == "posts"


class TestArchiveFiles:
    """Tests for write_archive and read_archive."""

    def test_layout(self, archive, archive_dir):
        """Archives are PascalCase JSON with base64 upload data."""
        path = write_archive(archive, os.path.join(archive_dir, "deep", "blog.json"))

        raw = json.loads(path.read_text(encoding="utf-8"))

        assert raw["Version"] == 1
        assert raw["WebLog"]["UrlBase"] == "http://localhost:8081"
        assert raw["Pages"][0]["Revisions"][0]["AsOf"] == "2024-01-20T22:24:01.000100Z"
        assert raw["Uploads"][0]["Data"] == "YWJj"

    def test_read_back(self, archive, archive_dir):
        """A written archive reads back equal."""
        path = write_archive(archive, os.path.join(archive_dir, "blog.json"))

        assert read_archive(path) == archive

    def test_missing_file(self, archive_dir):
        """A missing file is an archive error."""
        with pytest.raises(ArchiveError, match="Cannot read archive"):
            read_archive(os.path.join(archive_dir, "missing.json"))

    def test_invalid_content(self, archive_dir):
        """Content that is not an archive is an archive error."""
        path = os.path.join(archive_dir, "bad.json")
        with open(path, "w") as f:
            f.write('{"Version": 1, "Users": []}')

        with pytest.raises(ArchiveError, match="Invalid archive"):
            read_archive(path)

    def test_unsupported_version(self, archive, archive_dir):
        """Unknown layout versions are refused."""
        path = write_archive(archive.model_copy(update={"version": 99}), os.path.join(archive_dir, "v99.json"))

        with pytest.raises(ArchiveError, match="Unsupported archive version 99"):
            read_archive(path)

    def test_stray_entities(self, archive, archive_dir):
        """Entities of another web log make the archive inconsistent."""
        stray = Category(id="stray", web_log_id="elsewhere", name="Stray", slug="stray")
        archive = archive.model_copy(update={"categories": [*archive.categories, stray]})
        path = write_archive(archive, os.path.join(archive_dir, "stray.json"))

        with pytest.raises(ArchiveError, match="categories.*stray"):
            read_archive(path)
