"""
Table (collection) names and the indexes each backend creates.

Invariants:
    - Only pages and posts have revision tables
    - Index definitions list document field paths; each backend turns them
      into its own index expressions
"""

from __future__ import annotations

DB_VERSION = "v2.1"


class Table:
    """Names of the stored tables / collections."""

    CATEGORY = "category"
    COMMENT = "post_comment"
    DB_VERSION = "db_version"
    PAGE = "page"
    POST = "post"
    TAG_MAP = "tag_map"
    THEME = "theme"
    THEME_ASSET = "theme_asset"
    UPLOAD = "upload"
    WEB_LOG = "web_log"
    WEB_LOG_USER = "web_log_user"


DOCUMENT_TABLES: tuple[str, ...] = (
    Table.THEME,
    Table.THEME_ASSET,
    Table.WEB_LOG,
    Table.CATEGORY,
    Table.WEB_LOG_USER,
    Table.PAGE,
    Table.POST,
    Table.COMMENT,
    Table.TAG_MAP,
    Table.UPLOAD,
)

REVISION_TABLES: dict[str, str] = {
    Table.PAGE: "page_revision",
    Table.POST: "post_revision",
}

INDEXES: dict[str, list[tuple[str, ...]]] = {
    Table.THEME_ASSET: [("ThemeId",)],
    Table.WEB_LOG: [("UrlBase",)],
    Table.CATEGORY: [("WebLogId",)],
    Table.WEB_LOG_USER: [("WebLogId", "Email")],
    Table.PAGE: [("WebLogId",), ("WebLogId", "Permalink")],
    Table.POST: [("WebLogId",), ("WebLogId", "Permalink"), ("WebLogId", "Status", "PublishedOn")],
    Table.COMMENT: [("PostId",)],
    Table.TAG_MAP: [("WebLogId", "UrlValue")],
    Table.UPLOAD: [("WebLogId", "Path")],
}


def revision_table(table: str) -> str:
    """Name of the revision table for a document table.

    Raises:
        ValueError: If the table does not keep revisions.
    """
    try:
        return REVISION_TABLES[table]
    except KeyError:
        raise ValueError(f"Table '{table}' has no revisions") from None


def index_name(table: str, fields: tuple[str, ...]) -> str:
    return f"idx_{table}_{'_'.join(f.lower().replace('.', '_') for f in fields)}"
