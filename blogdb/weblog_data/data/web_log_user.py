"""
Web log user data operations.

Invariants:
    - A user who authored any page or post of the web log is never deleted
    - find_names only returns users of the given web log
"""

from __future__ import annotations

import logging

from ..model import MetaItem, Result, WebLogUser, format_instant, utc_now
from ..store import (
    DocumentQuery,
    DocumentStore,
    FieldIn,
    InsertDocuments,
    ReplaceDocuments,
    Sort,
    Table,
    by_web_log,
)
from .common import is_owned

logger = logging.getLogger(__name__)


class WebLogUserData:
    """User operations for one document store."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def add(self, user: WebLogUser) -> None:
        await self._store.insert(Table.WEB_LOG_USER, user.to_document())

    async def delete(self, user_id: str, web_log_id: str) -> Result[bool]:
        """Delete a user who has not written anything.

        Returns:
            Failure if the user does not exist or authored pages or posts.
        """
        if not await is_owned(self._store, Table.WEB_LOG_USER, user_id, web_log_id):
            return Result.failure("User does not exist")

        authored = DocumentQuery(criteria=by_web_log(web_log_id, AuthorId=user_id))
        if await self._store.exists(Table.PAGE, authored) or await self._store.exists(Table.POST, authored):
            logger.info(
                f"Refusing to delete user {user_id}; they have pages or posts",
                extra={"web_log_id": web_log_id},
            )
            return Result.failure("User has pages or posts; cannot delete")

        await self._store.delete(Table.WEB_LOG_USER, user_id)
        return Result.success(True)

    async def find_by_email(self, email: str, web_log_id: str) -> WebLogUser | None:
        document = await self._store.find_one(
            Table.WEB_LOG_USER, DocumentQuery(criteria=by_web_log(web_log_id, Email=email))
        )
        return WebLogUser.from_document(document) if document else None

    async def find_by_id(self, user_id: str, web_log_id: str) -> WebLogUser | None:
        document = await self._store.find_by_id(Table.WEB_LOG_USER, user_id, web_log_id)
        return WebLogUser.from_document(document) if document else None

    async def find_by_web_log(self, web_log_id: str) -> list[WebLogUser]:
        documents = await self._store.find(
            Table.WEB_LOG_USER,
            DocumentQuery(
                criteria=by_web_log(web_log_id),
                order_by=(Sort("PreferredName", case_insensitive=True),),
            ),
        )
        return [WebLogUser.from_document(d) for d in documents]

    async def find_names(self, web_log_id: str, user_ids: list[str]) -> list[MetaItem]:
        """Display names for the given users, as (id, name) pairs."""
        documents = await self._store.find(
            Table.WEB_LOG_USER,
            DocumentQuery(criteria=by_web_log(web_log_id), where=(FieldIn("Id", user_ids),)),
        )
        users = [WebLogUser.from_document(d) for d in documents]
        return [MetaItem(name=u.id, value=u.display_name) for u in users]

    async def restore(self, users: list[WebLogUser]) -> None:
        await self._store.execute_batch(
            [InsertDocuments(Table.WEB_LOG_USER, [u.to_document() for u in users])]
        )

    async def set_last_seen(self, user_id: str, web_log_id: str) -> bool:
        """Record that the user was just seen.

        Returns:
            False if the user does not exist in this web log.
        """
        if not await is_owned(self._store, Table.WEB_LOG_USER, user_id, web_log_id):
            return False
        await self._store.patch(Table.WEB_LOG_USER, user_id, {"LastSeenOn": format_instant(utc_now())})
        return True

    async def update(self, user: WebLogUser) -> bool:
        """Replace a user.

        Returns:
            False if the user does not exist in their web log.
        """
        if not await is_owned(self._store, Table.WEB_LOG_USER, user.id, user.web_log_id):
            return False
        await self._store.execute_batch([ReplaceDocuments(Table.WEB_LOG_USER, [user.to_document()])])
        return True
