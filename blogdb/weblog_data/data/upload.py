"""
Uploaded file data operations.

Invariants:
    - Listing a web log's uploads leaves out the file data unless asked for
    - Restoring uploads writes them in fixed-size chunks, one batch per chunk,
      so a large restore never holds every file in one transaction
"""

from __future__ import annotations

import logging

from ..model import Result, Upload
from ..store import DocumentQuery, DocumentStore, InsertDocuments, Sort, Table, by_web_log

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 5


class UploadData:
    """Upload operations for one document store.

    Attributes:
        chunk_size: Uploads written per restore batch
    """

    def __init__(self, store: DocumentStore, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self._store = store
        self.chunk_size = chunk_size

    async def add(self, upload: Upload) -> None:
        await self._store.insert(Table.UPLOAD, upload.to_document())

    async def delete(self, upload_id: str, web_log_id: str) -> Result[str]:
        """Delete an upload.

        Returns:
            The deleted upload's path, or a failure if the id is not an upload
            of this web log.
        """
        document = await self._store.find_by_id(Table.UPLOAD, upload_id, web_log_id, exclude=("Data",))
        if document is None:
            return Result.failure(f"Upload ID {upload_id} not found")
        await self._store.delete(Table.UPLOAD, upload_id)
        return Result.success(document["Path"])

    async def find_by_path(self, path: str, web_log_id: str) -> Upload | None:
        document = await self._store.find_one(
            Table.UPLOAD, DocumentQuery(criteria=by_web_log(web_log_id, Path=path))
        )
        return Upload.from_document(document) if document else None

    async def find_by_web_log(self, web_log_id: str) -> list[Upload]:
        """A web log's uploads by path, without data."""
        documents = await self._store.find(
            Table.UPLOAD,
            DocumentQuery(criteria=by_web_log(web_log_id), order_by=(Sort("Path"),), exclude=("Data",)),
        )
        return [Upload.from_document(d) for d in documents]

    async def find_by_web_log_with_data(self, web_log_id: str) -> list[Upload]:
        documents = await self._store.find(
            Table.UPLOAD, DocumentQuery(criteria=by_web_log(web_log_id), order_by=(Sort("Path"),))
        )
        return [Upload.from_document(d) for d in documents]

    async def restore(self, uploads: list[Upload]) -> None:
        """Insert uploads, one batch per chunk."""
        for start in range(0, len(uploads), self.chunk_size):
            chunk = uploads[start:start + self.chunk_size]
            await self._store.execute_batch(
                [InsertDocuments(Table.UPLOAD, [u.to_document() for u in chunk])]
            )
            logger.debug(
                "Restored upload chunk",
                extra={"first": start, "count": len(chunk), "total": len(uploads)},
            )
