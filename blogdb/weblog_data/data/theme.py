"""
Theme and theme asset data operations.

Themes are shared by every web log, so nothing here is tenant scoped. An
asset's document id is "<ThemeId>/<Path>".

Invariants:
    - The "admin" theme is never listed by ThemeData.all
    - Deleting a theme deletes its assets in the same batch
"""

from __future__ import annotations

import logging

from ..model import Theme, ThemeAsset, asset_id
from ..store import DeleteByQuery, DeleteDocuments, DocumentQuery, DocumentStore, Sort, Table

logger = logging.getLogger(__name__)

ADMIN_THEME_ID = "admin"


def _without_template_text(document: dict) -> Theme:
    theme = Theme.from_document(document)
    return theme.model_copy(
        update={"templates": [t.model_copy(update={"text": ""}) for t in theme.templates]}
    )


def _assets_of(theme_id: str) -> DocumentQuery:
    return DocumentQuery(criteria={"ThemeId": theme_id})


class ThemeData:
    """Theme operations for one document store."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def all(self) -> list[Theme]:
        """Every theme except the admin theme, with empty template text."""
        documents = await self._store.find(Table.THEME, DocumentQuery(order_by=(Sort("Id"),)))
        return [_without_template_text(d) for d in documents if d["Id"] != ADMIN_THEME_ID]

    async def delete(self, theme_id: str) -> bool:
        """Delete a theme and its assets.

        Returns:
            False if there is no such theme.
        """
        if not await self.exists(theme_id):
            return False
        await self._store.execute_batch(
            [
                DeleteByQuery(Table.THEME_ASSET, _assets_of(theme_id)),
                DeleteDocuments(Table.THEME, [theme_id]),
            ]
        )
        logger.info(f"Deleted theme {theme_id}")
        return True

    async def exists(self, theme_id: str) -> bool:
        return await self._store.exists(Table.THEME, DocumentQuery(criteria={"Id": theme_id}))

    async def find_by_id(self, theme_id: str) -> Theme | None:
        document = await self._store.find_by_id(Table.THEME, theme_id)
        return Theme.from_document(document) if document else None

    async def find_by_id_without_text(self, theme_id: str) -> Theme | None:
        document = await self._store.find_by_id(Table.THEME, theme_id)
        return _without_template_text(document) if document else None

    async def save(self, theme: Theme) -> None:
        await self._store.save(Table.THEME, theme.to_document())


class ThemeAssetData:
    """Theme asset operations for one document store."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def _find(self, query: DocumentQuery) -> list[ThemeAsset]:
        documents = await self._store.find(Table.THEME_ASSET, query)
        return [ThemeAsset.from_document(d) for d in documents]

    async def all(self) -> list[ThemeAsset]:
        """Every asset of every theme, without data."""
        return await self._find(DocumentQuery(order_by=(Sort("Id"),), exclude=("Data",)))

    async def delete_by_theme(self, theme_id: str) -> None:
        await self._store.execute_batch([DeleteByQuery(Table.THEME_ASSET, _assets_of(theme_id))])

    async def find_by_id(self, theme_id: str, path: str) -> ThemeAsset | None:
        document = await self._store.find_by_id(Table.THEME_ASSET, asset_id(theme_id, path))
        return ThemeAsset.from_document(document) if document else None

    async def find_by_theme(self, theme_id: str) -> list[ThemeAsset]:
        """A theme's assets, without data."""
        return await self._find(
            DocumentQuery(criteria={"ThemeId": theme_id}, order_by=(Sort("Path"),), exclude=("Data",))
        )

    async def find_by_theme_with_data(self, theme_id: str) -> list[ThemeAsset]:
        return await self._find(DocumentQuery(criteria={"ThemeId": theme_id}, order_by=(Sort("Path"),)))

    async def save(self, asset: ThemeAsset) -> None:
        """Add or replace an asset."""
        await self._store.save(Table.THEME_ASSET, asset.to_document())
