"""
Helpers shared by the per-entity data classes.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from ..logic import diff_revisions
from ..model import Revision, format_instant
from ..store import DeleteRevisions, DocumentQuery, DocumentStore, InsertRevisions, Operation

logger = logging.getLogger(__name__)

# Revisions never travel inside stored documents
STORED_EXCLUDE = {"revisions"}


def revisions_from(documents: Sequence[dict[str, Any]]) -> list[Revision]:
    return [Revision.from_document(d) for d in documents]


def revision_operations(
    table: str, owner_id: str, old: Sequence[Revision], new: Sequence[Revision]
) -> list[Operation]:
    """Batch operations that turn the stored revisions old into new.

    Returns an empty list when nothing changed.
    """
    diff = diff_revisions(old, new)
    operations: list[Operation] = []
    if diff.to_delete:
        operations.append(
            DeleteRevisions(table, [(owner_id, format_instant(r.as_of)) for r in diff.to_delete])
        )
    if diff.to_add:
        operations.append(InsertRevisions(table, [(owner_id, r.to_document()) for r in diff.to_add]))
    return operations


async def is_owned(store: DocumentStore, table: str, document_id: str, web_log_id: str) -> bool:
    """Whether the document exists and belongs to the web log."""
    return await store.exists(
        table, DocumentQuery(criteria={"Id": document_id, "WebLogId": web_log_id})
    )


async def foreign_owner(store: DocumentStore, table: str, document_id: str, web_log_id: str) -> bool:
    """Whether a document with this id exists under a different web log."""
    document = await store.find_by_id(table, document_id)
    if document is not None and document.get("WebLogId") != web_log_id:
        logger.warning(
            f"Refusing to overwrite {table} {document_id} owned by another web log",
            extra={"table": table, "id": document_id, "web_log_id": web_log_id},
        )
        return True
    return False
