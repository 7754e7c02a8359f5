"""
Entity model for the web log data layer.

Invariants:
    - Records serialize with PascalCase field names; that shape is shared by
      every document store and by the backup archive
"""

from .entities import (
    Category,
    Comment,
    DisplayCategory,
    Page,
    Post,
    TagMap,
    Theme,
    ThemeAsset,
    Upload,
    WebLog,
    WebLogUser,
    asset_id,
)
from .support import (
    AccessLevel,
    CategoryDeleteResult,
    CommentStatus,
    CustomFeed,
    Episode,
    ExplicitRating,
    MarkupKind,
    MarkupText,
    MetaItem,
    PodcastOptions,
    PostStatus,
    Record,
    Result,
    Revision,
    RssOptions,
    ThemeTemplate,
    UploadDestination,
    format_instant,
    new_id,
    utc_now,
)

__all__ = [
    "AccessLevel",
    "Category",
    "CategoryDeleteResult",
    "Comment",
    "CommentStatus",
    "CustomFeed",
    "DisplayCategory",
    "Episode",
    "ExplicitRating",
    "MarkupKind",
    "MarkupText",
    "MetaItem",
    "Page",
    "PodcastOptions",
    "Post",
    "PostStatus",
    "Record",
    "Result",
    "Revision",
    "RssOptions",
    "TagMap",
    "Theme",
    "ThemeAsset",
    "ThemeTemplate",
    "Upload",
    "UploadDestination",
    "WebLog",
    "WebLogUser",
    "asset_id",
    "format_instant",
    "new_id",
    "utc_now",
]
