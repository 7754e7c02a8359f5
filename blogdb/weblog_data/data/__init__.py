"""
Per-entity data operations over a document store.

Each class takes a DocumentStore and expresses its entity's operations in
terms of the store's queries and batches; none of them know which backend is
underneath. WebLogData groups them into the single data contract.

Invariants:
    - Tenant-scoped lookups put the web log id in the query predicate
    - Missing entities come back as None; domain conflicts as Result values
"""

from .category import CategoryData
from .facade import WebLogData, create_data
from .page import PageData
from .post import PostData
from .tag_map import TagMapData
from .theme import ThemeAssetData, ThemeData
from .upload import UploadData
from .web_log import TenantData
from .web_log_user import WebLogUserData

__all__ = [
    "CategoryData",
    "PageData",
    "PostData",
    "TagMapData",
    "TenantData",
    "ThemeAssetData",
    "ThemeData",
    "UploadData",
    "WebLogData",
    "WebLogUserData",
    "create_data",
]
