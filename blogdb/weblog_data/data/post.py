"""
Post data operations.

Invariants:
    - Every query carries the web log id in its predicate
    - Published-post listings filter on Status and order by PublishedOn, newest
      first; the admin listing puts drafts (no PublishedOn) ahead of the rest
    - Deleting a post deletes its comments and revisions in the same batch
    - Paged queries return one extra post to signal that a next page exists
"""

from __future__ import annotations

import logging
from datetime import datetime

from ..logic import diff_permalinks
from ..model import Post, PostStatus, format_instant
from ..store import (
    ArrayOverlap,
    CompareOp,
    Comparison,
    DeleteByQuery,
    DeleteDocuments,
    DeleteRevisionsByQuery,
    DocumentQuery,
    DocumentStore,
    InsertDocuments,
    InsertRevisions,
    Operation,
    ReplaceDocuments,
    Sort,
    Table,
    by_web_log,
)
from .common import STORED_EXCLUDE, is_owned, revision_operations, revisions_from

logger = logging.getLogger(__name__)

_NEWEST_FIRST = (Sort("PublishedOn", descending=True),)


def _published(web_log_id: str, **criteria) -> dict:
    return by_web_log(web_log_id, Status=PostStatus.PUBLISHED.value, **criteria)


class PostData:
    """Post operations for one document store."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def _insert_operations(self, posts: list[Post]) -> list[Operation]:
        return [
            InsertDocuments(Table.POST, [p.to_document(exclude=STORED_EXCLUDE) for p in posts]),
            InsertRevisions(
                Table.POST, [(p.id, r.to_document()) for p in posts for r in p.revisions]
            ),
        ]

    async def _find_posts(self, query: DocumentQuery) -> list[Post]:
        return [Post.from_document(d) for d in await self._store.find(Table.POST, query)]

    async def add(self, post: Post) -> None:
        """Add a post along with its revisions."""
        await self._store.execute_batch(self._insert_operations([post]))

    async def count_by_status(self, status: PostStatus, web_log_id: str) -> int:
        return await self._store.count(
            Table.POST, DocumentQuery(criteria=by_web_log(web_log_id, Status=status.value))
        )

    async def delete(self, post_id: str, web_log_id: str) -> bool:
        """Delete a post with its comments and revisions.

        Returns:
            False if the post does not exist in this web log.
        """
        if not await is_owned(self._store, Table.POST, post_id, web_log_id):
            return False
        await self._store.execute_batch(
            [
                DeleteByQuery(Table.COMMENT, DocumentQuery(criteria={"PostId": post_id})),
                DeleteRevisionsByQuery(Table.POST, DocumentQuery(criteria={"Id": post_id})),
                DeleteDocuments(Table.POST, [post_id]),
            ]
        )
        logger.info(f"Deleted post {post_id}", extra={"web_log_id": web_log_id})
        return True

    async def find_by_id(self, post_id: str, web_log_id: str) -> Post | None:
        """Find a post (without revisions)."""
        document = await self._store.find_by_id(Table.POST, post_id, web_log_id)
        return Post.from_document(document) if document else None

    async def find_by_permalink(self, permalink: str, web_log_id: str) -> Post | None:
        """Find a post by permalink (without revisions or prior permalinks)."""
        document = await self._store.find_one(
            Table.POST,
            DocumentQuery(
                criteria=by_web_log(web_log_id, Permalink=permalink),
                exclude=("PriorPermalinks",),
            ),
        )
        return Post.from_document(document) if document else None

    async def find_current_permalink(self, permalinks: list[str], web_log_id: str) -> str | None:
        if not permalinks:
            return None
        document = await self._store.find_one(
            Table.POST,
            DocumentQuery(
                criteria=by_web_log(web_log_id),
                where=(ArrayOverlap("PriorPermalinks", permalinks),),
            ),
        )
        return document["Permalink"] if document else None

    async def find_full_by_id(self, post_id: str, web_log_id: str) -> Post | None:
        """Find a post with its revisions."""
        post = await self.find_by_id(post_id, web_log_id)
        if post is None:
            return None
        revisions = await self._store.find_revisions(Table.POST, post_id)
        return post.model_copy(update={"revisions": revisions_from(revisions)})

    async def find_full_by_web_log(self, web_log_id: str) -> list[Post]:
        query = DocumentQuery(criteria=by_web_log(web_log_id))
        documents = await self._store.find(Table.POST, query)
        revisions = await self._store.find_revisions_for(Table.POST, query)
        return [
            Post.from_document(d).model_copy(
                update={"revisions": revisions_from(revisions.get(d["Id"], []))}
            )
            for d in documents
        ]

    async def find_page_of_categorized_posts(
        self, web_log_id: str, category_ids: list[str], page_nbr: int, posts_per_page: int
    ) -> list[Post]:
        """Published posts filed under any of the categories, newest first."""
        return await self._find_posts(
            DocumentQuery(
                criteria=_published(web_log_id),
                where=(ArrayOverlap("CategoryIds", category_ids),),
                order_by=_NEWEST_FIRST,
            ).page(page_nbr, posts_per_page)
        )

    async def find_page_of_posts(self, web_log_id: str, page_nbr: int, posts_per_page: int) -> list[Post]:
        """Every post for the admin list, drafts first, without text."""
        return await self._find_posts(
            DocumentQuery(
                criteria=by_web_log(web_log_id),
                order_by=(
                    Sort("PublishedOn", descending=True, nulls_first=True),
                    Sort("UpdatedOn"),
                ),
                exclude=("Text",),
            ).page(page_nbr, posts_per_page)
        )

    async def find_page_of_published_posts(
        self, web_log_id: str, page_nbr: int, posts_per_page: int
    ) -> list[Post]:
        return await self._find_posts(
            DocumentQuery(criteria=_published(web_log_id), order_by=_NEWEST_FIRST).page(
                page_nbr, posts_per_page
            )
        )

    async def find_page_of_tagged_posts(
        self, web_log_id: str, tag: str, page_nbr: int, posts_per_page: int
    ) -> list[Post]:
        return await self._find_posts(
            DocumentQuery(
                criteria=_published(web_log_id, Tags=[tag]),
                order_by=_NEWEST_FIRST,
                exclude=("PriorPermalinks",),
            ).page(page_nbr, posts_per_page)
        )

    async def find_surrounding_posts(
        self, web_log_id: str, published_on: datetime
    ) -> tuple[Post | None, Post | None]:
        """The published posts just before and just after an instant.

        Returns:
            (older, newer); either may be None.
        """
        instant = format_instant(published_on)
        older = await self._store.find_one(
            Table.POST,
            DocumentQuery(
                criteria=_published(web_log_id),
                where=(Comparison("PublishedOn", CompareOp.LT, instant),),
                order_by=_NEWEST_FIRST,
            ),
        )
        newer = await self._store.find_one(
            Table.POST,
            DocumentQuery(
                criteria=_published(web_log_id),
                where=(Comparison("PublishedOn", CompareOp.GT, instant),),
                order_by=(Sort("PublishedOn"),),
            ),
        )
        return (
            Post.from_document(older) if older else None,
            Post.from_document(newer) if newer else None,
        )

    async def restore(self, posts: list[Post]) -> None:
        """Insert posts and all of their revisions in one batch."""
        await self._store.execute_batch(self._insert_operations(posts))

    async def update(self, post: Post) -> bool:
        """Replace a post, writing only the revisions that changed.

        Returns:
            False if the post does not exist in its web log.
        """
        old = await self.find_full_by_id(post.id, post.web_log_id)
        if old is None:
            logger.warning(f"Post {post.id} not found for update", extra={"web_log_id": post.web_log_id})
            return False
        await self._store.execute_batch(
            [
                ReplaceDocuments(Table.POST, [post.to_document(exclude=STORED_EXCLUDE)]),
                *revision_operations(Table.POST, post.id, old.revisions, post.revisions),
            ]
        )
        return True

    async def update_prior_permalinks(self, post_id: str, web_log_id: str, permalinks: list[str]) -> bool:
        """Set a post's prior permalinks, leaving the rest of the post as is.

        Returns:
            False if the post does not exist in this web log.
        """
        document = await self._store.find_by_id(Table.POST, post_id, web_log_id, exclude=("Text",))
        if document is None:
            return False
        if diff_permalinks(document.get("PriorPermalinks", []), permalinks).is_empty:
            return True
        await self._store.patch(Table.POST, post_id, {"PriorPermalinks": list(permalinks)})
        return True
