"""
Web log (tenant) data operations.

Invariants:
    - Deleting a web log removes everything scoped to it in one batch:
      comments on its posts, page and post revisions, posts, pages,
      categories, tag mappings, uploads, users and finally the web log
    - Deleting from an already empty child table is not an error
"""

from __future__ import annotations

import logging

from ..model import WebLog
from ..store import (
    DeleteByQuery,
    DeleteDocuments,
    DeleteRevisionsByQuery,
    DocumentQuery,
    DocumentStore,
    FieldIn,
    Operation,
    ReplaceDocuments,
    Sort,
    Table,
    by_web_log,
)

logger = logging.getLogger(__name__)


class TenantData:
    """Web log (tenant) operations for one document store."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def _exists(self, web_log_id: str) -> bool:
        return await self._store.exists(Table.WEB_LOG, DocumentQuery(criteria={"Id": web_log_id}))

    async def add(self, web_log: WebLog) -> None:
        await self._store.insert(Table.WEB_LOG, web_log.to_document())
        logger.info(f"Added web log {web_log.id}", extra={"url_base": web_log.url_base})

    async def all(self) -> list[WebLog]:
        documents = await self._store.find(
            Table.WEB_LOG, DocumentQuery(order_by=(Sort("Name", case_insensitive=True),))
        )
        return [WebLog.from_document(d) for d in documents]

    async def delete(self, web_log_id: str) -> None:
        """Delete a web log and everything that belongs to it."""
        scoped = DocumentQuery(criteria=by_web_log(web_log_id))
        posts = await self._store.find(
            Table.POST, DocumentQuery(criteria=by_web_log(web_log_id), exclude=("Text",))
        )
        post_ids = [p["Id"] for p in posts]

        operations: list[Operation] = []
        if post_ids:
            operations.append(
                DeleteByQuery(Table.COMMENT, DocumentQuery(where=(FieldIn("PostId", post_ids),)))
            )
        operations.extend(
            [
                DeleteRevisionsByQuery(Table.POST, scoped),
                DeleteByQuery(Table.POST, scoped),
                DeleteRevisionsByQuery(Table.PAGE, scoped),
                DeleteByQuery(Table.PAGE, scoped),
                DeleteByQuery(Table.CATEGORY, scoped),
                DeleteByQuery(Table.TAG_MAP, scoped),
                DeleteByQuery(Table.UPLOAD, scoped),
                DeleteByQuery(Table.WEB_LOG_USER, scoped),
                DeleteDocuments(Table.WEB_LOG, [web_log_id]),
            ]
        )
        await self._store.execute_batch(operations)
        logger.info(f"Deleted web log {web_log_id}", extra={"posts": len(post_ids)})

    async def find_by_host(self, url_base: str) -> WebLog | None:
        document = await self._store.find_one(
            Table.WEB_LOG, DocumentQuery(criteria={"UrlBase": url_base})
        )
        return WebLog.from_document(document) if document else None

    async def find_by_id(self, web_log_id: str) -> WebLog | None:
        document = await self._store.find_by_id(Table.WEB_LOG, web_log_id)
        return WebLog.from_document(document) if document else None

    async def update_rss_options(self, web_log: WebLog) -> bool:
        """Store only the RSS options of the given web log.

        Returns:
            False if the web log does not exist.
        """
        if not await self._exists(web_log.id):
            return False
        await self._store.patch(Table.WEB_LOG, web_log.id, {"Rss": web_log.rss.to_document()})
        return True

    async def update_settings(self, web_log: WebLog) -> bool:
        """Replace a web log's settings.

        Returns:
            False if the web log does not exist.
        """
        if not await self._exists(web_log.id):
            return False
        await self._store.execute_batch([ReplaceDocuments(Table.WEB_LOG, [web_log.to_document()])])
        return True

