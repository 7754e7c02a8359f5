"""
Page data operations.

Pages are stored without their revisions; the revision history lives wherever
the store keeps it and is merged back in by the find_full_* operations.

Invariants:
    - Every query carries the web log id in its predicate
    - Adding or updating a page writes the document and its revision changes
      in one batch
    - List views never load revisions, and leave out the text where the view
      has no use for it
"""

from __future__ import annotations

import logging

from ..logic import diff_permalinks
from ..model import Page
from ..store import (
    ArrayOverlap,
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

PAGES_PER_ADMIN_PAGE = 25

_BY_TITLE = (Sort("Title", case_insensitive=True),)


class PageData:
    """Page operations for one document store."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def _insert_operations(self, pages: list[Page]) -> list[Operation]:
        return [
            InsertDocuments(Table.PAGE, [p.to_document(exclude=STORED_EXCLUDE) for p in pages]),
            InsertRevisions(
                Table.PAGE, [(p.id, r.to_document()) for p in pages for r in p.revisions]
            ),
        ]

    async def add(self, page: Page) -> None:
        """Add a page along with its revisions."""
        await self._store.execute_batch(self._insert_operations([page]))

    async def all(self, web_log_id: str) -> list[Page]:
        """All pages of a web log by title, without text, metadata or prior permalinks."""
        documents = await self._store.find(
            Table.PAGE,
            DocumentQuery(
                criteria=by_web_log(web_log_id),
                order_by=_BY_TITLE,
                exclude=("Text", "Metadata", "PriorPermalinks"),
            ),
        )
        return [Page.from_document(d) for d in documents]

    async def count_all(self, web_log_id: str) -> int:
        return await self._store.count(Table.PAGE, DocumentQuery(criteria=by_web_log(web_log_id)))

    async def count_listed(self, web_log_id: str) -> int:
        return await self._store.count(
            Table.PAGE, DocumentQuery(criteria=by_web_log(web_log_id, IsInPageList=True))
        )

    async def delete(self, page_id: str, web_log_id: str) -> bool:
        """Delete a page and its revisions.

        Returns:
            False if the page does not exist in this web log.
        """
        if not await is_owned(self._store, Table.PAGE, page_id, web_log_id):
            return False
        await self._store.execute_batch(
            [
                DeleteRevisionsByQuery(Table.PAGE, DocumentQuery(criteria={"Id": page_id})),
                DeleteDocuments(Table.PAGE, [page_id]),
            ]
        )
        logger.info(f"Deleted page {page_id}", extra={"web_log_id": web_log_id})
        return True

    async def find_by_id(self, page_id: str, web_log_id: str) -> Page | None:
        """Find a page (without revisions or prior permalinks)."""
        document = await self._store.find_by_id(
            Table.PAGE, page_id, web_log_id, exclude=("PriorPermalinks",)
        )
        return Page.from_document(document) if document else None

    async def find_by_permalink(self, permalink: str, web_log_id: str) -> Page | None:
        document = await self._store.find_one(
            Table.PAGE,
            DocumentQuery(
                criteria=by_web_log(web_log_id, Permalink=permalink),
                exclude=("PriorPermalinks",),
            ),
        )
        return Page.from_document(document) if document else None

    async def find_current_permalink(self, permalinks: list[str], web_log_id: str) -> str | None:
        """Find the current permalink of the page that used to live at any of these."""
        if not permalinks:
            return None
        document = await self._store.find_one(
            Table.PAGE,
            DocumentQuery(
                criteria=by_web_log(web_log_id),
                where=(ArrayOverlap("PriorPermalinks", permalinks),),
            ),
        )
        return document["Permalink"] if document else None

    async def find_full_by_id(self, page_id: str, web_log_id: str) -> Page | None:
        """Find a page with its revisions and prior permalinks."""
        document = await self._store.find_by_id(Table.PAGE, page_id, web_log_id)
        if document is None:
            return None
        revisions = await self._store.find_revisions(Table.PAGE, page_id)
        return Page.from_document(document).model_copy(update={"revisions": revisions_from(revisions)})

    async def find_full_by_web_log(self, web_log_id: str) -> list[Page]:
        query = DocumentQuery(criteria=by_web_log(web_log_id))
        documents = await self._store.find(Table.PAGE, query)
        revisions = await self._store.find_revisions_for(Table.PAGE, query)
        return [
            Page.from_document(d).model_copy(
                update={"revisions": revisions_from(revisions.get(d["Id"], []))}
            )
            for d in documents
        ]

    async def find_listed(self, web_log_id: str) -> list[Page]:
        """Pages shown in the page list, by title, without text."""
        documents = await self._store.find(
            Table.PAGE,
            DocumentQuery(
                criteria=by_web_log(web_log_id, IsInPageList=True),
                order_by=_BY_TITLE,
                exclude=("Text", "PriorPermalinks"),
            ),
        )
        return [Page.from_document(d) for d in documents]

    async def find_page_of_pages(self, web_log_id: str, page_nbr: int) -> list[Page]:
        """One page of the admin page list.

        Returns up to 26 pages; a 26th means there is a next page.
        """
        documents = await self._store.find(
            Table.PAGE,
            DocumentQuery(
                criteria=by_web_log(web_log_id),
                order_by=_BY_TITLE,
                exclude=("Metadata", "PriorPermalinks"),
            ).page(page_nbr, PAGES_PER_ADMIN_PAGE),
        )
        return [Page.from_document(d) for d in documents]

    async def restore(self, pages: list[Page]) -> None:
        """Insert pages and all of their revisions in one batch."""
        await self._store.execute_batch(self._insert_operations(pages))

    async def update(self, page: Page) -> bool:
        """Replace a page, writing only the revisions that changed.

        Returns:
            False if the page does not exist in its web log.
        """
        old = await self.find_full_by_id(page.id, page.web_log_id)
        if old is None:
            logger.warning(f"Page {page.id} not found for update", extra={"web_log_id": page.web_log_id})
            return False
        await self._store.execute_batch(
            [
                ReplaceDocuments(Table.PAGE, [page.to_document(exclude=STORED_EXCLUDE)]),
                *revision_operations(Table.PAGE, page.id, old.revisions, page.revisions),
            ]
        )
        return True

    async def update_prior_permalinks(self, page_id: str, web_log_id: str, permalinks: list[str]) -> bool:
        """Set a page's prior permalinks, leaving the rest of the page as is.

        Returns:
            False if the page does not exist in this web log.
        """
        document = await self._store.find_by_id(Table.PAGE, page_id, web_log_id, exclude=("Text",))
        if document is None:
            return False
        if diff_permalinks(document.get("PriorPermalinks", []), permalinks).is_empty:
            return True
        await self._store.patch(Table.PAGE, page_id, {"PriorPermalinks": list(permalinks)})
        return True
