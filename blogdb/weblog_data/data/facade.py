"""
The data contract: one object per configured store, grouping the per-entity
operations.

Callers pick the backend once, by connection URI, and never see which store
they are talking to.

Example:
    >>> async with create_data("sqlite:///./data/myweblog.db") as data:
    ...     await data.start_up()
    ...     web_log = await data.web_log.find_by_host("https://example.com")
"""

from __future__ import annotations

import logging
from typing import Any

from ..config import DataConfig, DatabaseConfig
from ..store import DocumentStore, create_document_store
from .category import CategoryData
from .page import PageData
from .post import PostData
from .tag_map import TagMapData
from .theme import ThemeAssetData, ThemeData
from .upload import DEFAULT_CHUNK_SIZE, UploadData
from .web_log import TenantData
from .web_log_user import WebLogUserData

logger = logging.getLogger(__name__)


class WebLogData:
    """Every data operation over one document store.

    Attributes:
        store: The underlying document store
        category: Category operations
        page: Page operations
        post: Post operations
        tag_map: Tag mapping operations
        theme: Theme operations
        theme_asset: Theme asset operations
        upload: Uploaded file operations
        web_log: Web log operations
        web_log_user: User operations
    """

    def __init__(self, store: DocumentStore, upload_chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self.store = store
        self.category = CategoryData(store)
        self.page = PageData(store)
        self.post = PostData(store)
        self.tag_map = TagMapData(store)
        self.theme = ThemeData(store)
        self.theme_asset = ThemeAssetData(store)
        self.upload = UploadData(store, chunk_size=upload_chunk_size)
        self.web_log = TenantData(store)
        self.web_log_user = WebLogUserData(store)

    async def start_up(self) -> None:
        """Create whatever tables, collections and indexes are missing.

        Safe to call on every process start.
        """
        await self.store.start_up()
        logger.info("Data store ready", extra={"store": type(self.store).__name__})

    async def close(self) -> None:
        await self.store.close()

    async def __aenter__(self) -> WebLogData:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


def create_data(config: DataConfig | DatabaseConfig | str) -> WebLogData:
    """Build the data contract for a configured store.

    Args:
        config: Full configuration, database configuration, or a connection URI

    Raises:
        UnsupportedBackendError: If the URI scheme has no backend
    """
    chunk_size = DEFAULT_CHUNK_SIZE
    if isinstance(config, DataConfig):
        chunk_size = config.backup.upload_chunk_size
        config = config.database
    return WebLogData(create_document_store(config), upload_chunk_size=chunk_size)
