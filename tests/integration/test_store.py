"""
Integration tests for the document stores.

Tests cover:
- Idempotent start-up
- Batch atomicity
- Query semantics every backend must share (containment, membership,
  ordering, comparisons, paging, projection)
"""

import pytest

from blogdb.weblog_data.model import Category, PostStatus
from blogdb.weblog_data.store import (
    ArrayOverlap,
    CompareOp,
    Comparison,
    DocumentQuery,
    FieldIn,
    InsertDocuments,
    PatchDocuments,
    Sort,
    Table,
    by_web_log,
)
from blogdb.weblog_data.store.mongo import MongoDocumentStore


class TestStartUp:
    """Tests for start_up."""

    @pytest.mark.asyncio
    async def test_start_up_is_idempotent(self, data, ids):
        """Running start-up again changes nothing."""
        await data.start_up()
        await data.start_up()

        assert await data.post.count_by_status(PostStatus.PUBLISHED, ids.web_log) == 3
        assert await data.category.count_all(ids.web_log) == 3
        assert await data.web_log.find_by_id(ids.web_log) is not None


class TestBatches:
    """Tests for execute_batch."""

    @pytest.mark.asyncio
    async def test_failed_batch_writes_nothing(self, data, ids):
        """A batch that fails part way leaves no trace."""
        store = data.store
        if isinstance(store, MongoDocumentStore) and not await store._use_transactions():
            pytest.skip("MongoDB server cannot run transactions")

        fresh = Category(web_log_id=ids.web_log, name="Fresh", slug="fresh")
        existing = await store.find_by_id(Table.CATEGORY, ids.favorites)

        with pytest.raises(Exception):
            await store.execute_batch(
                [
                    InsertDocuments(Table.CATEGORY, [fresh.to_document()]),
                    PatchDocuments(Table.CATEGORY, [(ids.spitball, {"Name": "Renamed"})]),
                    InsertDocuments(Table.CATEGORY, [existing]),
                ]
            )

        assert await store.find_by_id(Table.CATEGORY, fresh.id) is None
        spitball = await store.find_by_id(Table.CATEGORY, ids.spitball)
        assert spitball["Name"] == "Spitball"

    @pytest.mark.asyncio
    async def test_empty_batch(self, data):
        """An empty batch is a no-op."""
        await data.store.execute_batch([])


class TestQuerySemantics:
    """Query behavior shared by every backend."""

    @pytest.mark.asyncio
    async def test_list_criteria_need_every_element(self, data, ids):
        """A listed criterion matches documents holding all of the elements."""
        found = await data.store.find(
            Table.POST, DocumentQuery(criteria=by_web_log(ids.web_log, Tags=["f#", "podcast"]))
        )

        assert [d["Id"] for d in found] == [ids.episode_one]

    @pytest.mark.asyncio
    async def test_null_criteria(self, data, ids):
        """None matches documents whose field is null."""
        found = await data.store.find(
            Table.CATEGORY,
            DocumentQuery(criteria=by_web_log(ids.web_log, ParentId=None), order_by=(Sort("Name"),)),
        )

        assert [d["Id"] for d in found] == [ids.favorites, ids.spitball]

    @pytest.mark.asyncio
    async def test_nested_criteria(self, data, ids):
        """Nested criteria match by path."""
        found = await data.store.find(
            Table.WEB_LOG, DocumentQuery(criteria={"Rss": {"FeedName": "default-feed.xml"}})
        )

        assert [d["Id"] for d in found] == [ids.web_log]

    @pytest.mark.asyncio
    async def test_empty_membership_matches_nothing(self, data, ids):
        """Empty FieldIn and ArrayOverlap lists match no document."""
        store = data.store

        assert await store.find(Table.POST, DocumentQuery(where=(FieldIn("Id", []),))) == []
        assert await store.count(Table.POST, DocumentQuery(where=(ArrayOverlap("Tags", []),))) == 0

    @pytest.mark.asyncio
    async def test_membership(self, data, ids):
        """FieldIn matches scalars; ArrayOverlap matches any element."""
        store = data.store

        by_id = await store.count(Table.POST, DocumentQuery(where=(FieldIn("Id", [ids.draft, ids.post_one, "x"]),)))
        by_tag = await store.count(
            Table.POST, DocumentQuery(where=(ArrayOverlap("Tags", ["ghoti", "podcast"]),))
        )

        assert by_id == 2
        assert by_tag == 3

    @pytest.mark.asyncio
    async def test_case_insensitive_ordering(self, data, ids):
        """Case-insensitive sorts ignore case; plain sorts compare byte-wise."""
        store = data.store
        criteria = by_web_log(ids.web_log)

        folded = await store.find(
            Table.PAGE, DocumentQuery(criteria=criteria, order_by=(Sort("Title", case_insensitive=True),))
        )
        binary = await store.find(Table.PAGE, DocumentQuery(criteria=criteria, order_by=(Sort("Title"),)))

        assert [d["Title"] for d in folded] == ["a cool page", "Page Title"]
        assert [d["Title"] for d in binary] == ["Page Title", "a cool page"]

    @pytest.mark.asyncio
    async def test_instant_comparisons_keep_microseconds(self, data, ids):
        """Instant strings compare chronologically to the microsecond."""
        found = await data.store.find(
            Table.POST,
            DocumentQuery(
                criteria=by_web_log(ids.web_log),
                where=(Comparison("PublishedOn", CompareOp.GT, "2024-01-20T22:31:32.999998Z"),),
                order_by=(Sort("PublishedOn"),),
            ),
        )

        assert [d["Id"] for d in found] == [ids.episode_two, ids.post_one]

    @pytest.mark.asyncio
    async def test_comparisons_skip_nulls(self, data, ids):
        """A null field never satisfies a comparison."""
        count = await data.store.count(
            Table.POST,
            DocumentQuery(where=(Comparison("PublishedOn", CompareOp.LT, "9999-12-31T00:00:00.000000Z"),)),
        )

        assert count == 3

    @pytest.mark.asyncio
    async def test_paging_and_projection(self, data, ids):
        """Paging skips and limits; excluded fields are absent."""
        query = DocumentQuery(
            criteria=by_web_log(ids.web_log), order_by=(Sort("Path"),), exclude=("Data",)
        ).page(2, 3)

        found = await data.store.find(Table.UPLOAD, query)

        assert [d["Path"] for d in found] == [f"2024/01/upload-{n}.txt" for n in (4, 5, 6, 7)]
        assert all("Data" not in d for d in found)
        assert all("_id" not in d and "Revisions" not in d for d in found)

    @pytest.mark.asyncio
    async def test_revisions_never_in_documents(self, data, ids):
        """Revisions are only reachable through the revision queries."""
        document = await data.store.find_by_id(Table.PAGE, ids.page_unlisted)
        revisions = await data.store.find_revisions(Table.PAGE, ids.page_unlisted)

        assert "Revisions" not in document
        assert [r["AsOf"] for r in revisions] == [
            "2024-01-20T22:16:02.750001Z",
            "2024-01-20T22:15:01.500000Z",
        ]
