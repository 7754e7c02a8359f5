"""
Tag mapping data operations.
"""

from __future__ import annotations

from ..model import TagMap
from ..store import DocumentQuery, DocumentStore, FieldIn, InsertDocuments, Sort, Table, by_web_log
from .common import foreign_owner, is_owned


class TagMapData:
    """Tag mapping operations for one document store."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def delete(self, tag_map_id: str, web_log_id: str) -> bool:
        if not await is_owned(self._store, Table.TAG_MAP, tag_map_id, web_log_id):
            return False
        await self._store.delete(Table.TAG_MAP, tag_map_id)
        return True

    async def find_by_id(self, tag_map_id: str, web_log_id: str) -> TagMap | None:
        document = await self._store.find_by_id(Table.TAG_MAP, tag_map_id, web_log_id)
        return TagMap.from_document(document) if document else None

    async def find_by_url_value(self, url_value: str, web_log_id: str) -> TagMap | None:
        document = await self._store.find_one(
            Table.TAG_MAP, DocumentQuery(criteria=by_web_log(web_log_id, UrlValue=url_value))
        )
        return TagMap.from_document(document) if document else None

    async def find_by_web_log(self, web_log_id: str) -> list[TagMap]:
        documents = await self._store.find(
            Table.TAG_MAP,
            DocumentQuery(criteria=by_web_log(web_log_id), order_by=(Sort("Tag"),)),
        )
        return [TagMap.from_document(d) for d in documents]

    async def find_mapping_for_tags(self, tags: list[str], web_log_id: str) -> list[TagMap]:
        """Mappings for any of the given tags; tags without one are simply absent."""
        documents = await self._store.find(
            Table.TAG_MAP,
            DocumentQuery(criteria=by_web_log(web_log_id), where=(FieldIn("Tag", tags),)),
        )
        return [TagMap.from_document(d) for d in documents]

    async def restore(self, tag_maps: list[TagMap]) -> None:
        await self._store.execute_batch(
            [InsertDocuments(Table.TAG_MAP, [t.to_document() for t in tag_maps])]
        )

    async def save(self, tag_map: TagMap) -> bool:
        """Add or replace a tag mapping.

        Returns:
            False if the id belongs to a mapping of another web log.
        """
        if await foreign_owner(self._store, Table.TAG_MAP, tag_map.id, tag_map.web_log_id):
            return False
        await self._store.save(Table.TAG_MAP, tag_map.to_document())
        return True
