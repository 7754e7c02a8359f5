"""
Stored entities of a web log.

Every entity except Theme and ThemeAsset is scoped by WebLogId; the data
classes always put that tenant key into the query predicate.

Invariants:
    - A post's PublishedOn is present if and only if its status is Published
    - No two revisions of one page or post share an AsOf instant
    - Revisions are kept newest-first
"""

from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator, model_validator

from .support import (
    AccessLevel,
    Binary,
    CommentStatus,
    CustomFeed,
    Episode,
    Instant,
    MetaItem,
    PostStatus,
    Record,
    Revision,
    RssOptions,
    ThemeTemplate,
    UploadDestination,
    new_id,
    utc_now,
)


def _newest_first(revisions: list[Revision]) -> list[Revision]:
    seen: set[datetime] = set()
    for revision in revisions:
        if revision.as_of in seen:
            raise ValueError(f"Duplicate revision as of {revision.as_of.isoformat()}")
        seen.add(revision.as_of)
    return sorted(revisions, key=lambda r: r.as_of, reverse=True)


class WebLog(Record):
    """A web log; the tenant root for every other entity.

    Attributes:
        id: Web log identifier (the tenant key)
        name: Display name
        slug: URL-safe name
        subtitle: Optional tag line
        default_page: "posts" or the id of the page shown at the root
        posts_per_page: Posts shown on each list page
        theme_id: Theme used to render the web log
        url_base: Scheme, host and path the web log is served from
        time_zone: IANA time zone name
        rss: RSS feed options
        auto_htmx: Whether links are enhanced with htmx automatically
        uploads: Where new uploads are stored
    """

    id: str = Field(default_factory=new_id)
    name: str
    slug: str
    subtitle: str | None = None
    default_page: str = "posts"
    posts_per_page: int = 10
    theme_id: str = "default"
    url_base: str
    time_zone: str = ""
    rss: RssOptions = Field(default_factory=RssOptions)
    auto_htmx: bool = False
    uploads: UploadDestination = UploadDestination.DATABASE

    def custom_feeds_for_category(self, category_id: str) -> list[CustomFeed]:
        return [f for f in self.rss.custom_feeds if f.source_category_id == category_id]


class Category(Record):
    id: str = Field(default_factory=new_id)
    web_log_id: str
    name: str
    slug: str
    description: str | None = None
    parent_id: str | None = None


class DisplayCategory(Record):
    """A category arranged for display.

    Attributes:
        slug: Full slug path, parents first ("parent/child")
        parent_names: Names of the ancestors, root first
        post_count: Published posts in this category or any descendant
    """

    id: str
    slug: str
    name: str
    description: str | None = None
    parent_names: list[str] = []
    post_count: int = 0


class Page(Record):
    """A page; static content outside the post stream."""

    id: str = Field(default_factory=new_id)
    web_log_id: str
    author_id: str
    title: str
    permalink: str
    published_on: Instant = Field(default_factory=utc_now)
    updated_on: Instant = Field(default_factory=utc_now)
    is_in_page_list: bool = False
    template: str | None = None
    text: str = ""
    metadata: list[MetaItem] = []
    prior_permalinks: list[str] = []
    revisions: list[Revision] = []

    @field_validator("revisions")
    @classmethod
    def order_revisions(cls, value: list[Revision]) -> list[Revision]:
        return _newest_first(value)


class Post(Record):
    """A post in the web log's chronological stream.

    Attributes:
        status: Draft or Published
        published_on: When the post went live; None while a draft
        category_ids: Categories this post is filed under
        tags: Free-text tags
        episode: Podcast episode details, if any
        revisions: Source text history, newest first
    """

    id: str = Field(default_factory=new_id)
    web_log_id: str
    author_id: str
    status: PostStatus = PostStatus.DRAFT
    title: str
    permalink: str
    published_on: Instant | None = None
    updated_on: Instant = Field(default_factory=utc_now)
    template: str | None = None
    text: str = ""
    category_ids: list[str] = []
    tags: list[str] = []
    episode: Episode | None = None
    metadata: list[MetaItem] = []
    prior_permalinks: list[str] = []
    revisions: list[Revision] = []

    @field_validator("revisions")
    @classmethod
    def order_revisions(cls, value: list[Revision]) -> list[Revision]:
        return _newest_first(value)

    @model_validator(mode="after")
    def check_published_on(self) -> Post:
        if (self.status == PostStatus.PUBLISHED) != (self.published_on is not None):
            raise ValueError("PublishedOn must be set exactly when Status is Published")
        return self


class Comment(Record):
    id: str = Field(default_factory=new_id)
    post_id: str
    in_reply_to_id: str | None = None
    name: str
    email: str
    url: str | None = None
    status: CommentStatus = CommentStatus.PENDING
    posted_on: Instant = Field(default_factory=utc_now)
    text: str = ""


class TagMap(Record):
    """Maps a tag to the value used for it in URLs."""

    id: str = Field(default_factory=new_id)
    web_log_id: str
    tag: str
    url_value: str


class Theme(Record):
    """A bundle of templates; shared by every web log."""

    id: str
    name: str
    version: str
    templates: list[ThemeTemplate] = []


class ThemeAsset(Record):
    """A static file belonging to a theme; stored under "<ThemeId>/<Path>"."""

    theme_id: str
    path: str
    updated_on: Instant = Field(default_factory=utc_now)
    data: Binary = b""

    @property
    def id(self) -> str:
        return asset_id(self.theme_id, self.path)

    def to_document(self, exclude: set[str] | None = None) -> dict:
        return {"Id": self.id, **super().to_document(exclude=exclude)}

    @classmethod
    def from_document(cls, document: dict) -> ThemeAsset:
        return cls.model_validate({k: v for k, v in document.items() if k != "Id"})


def asset_id(theme_id: str, path: str) -> str:
    return f"{theme_id}/{path}"


class Upload(Record):
    id: str = Field(default_factory=new_id)
    web_log_id: str
    path: str
    updated_on: Instant = Field(default_factory=utc_now)
    data: Binary = b""


class WebLogUser(Record):
    """A user who can log on to a web log.

    Attributes:
        email: Log on address; unique within a web log
        password_hash: Hashed credential (hashing is the caller's concern)
        access_level: What the user may do
        last_seen_on: Most recent log on, if any
    """

    id: str = Field(default_factory=new_id)
    web_log_id: str
    email: str
    first_name: str
    last_name: str
    preferred_name: str = ""
    password_hash: str = ""
    url: str | None = None
    access_level: AccessLevel = AccessLevel.AUTHOR
    created_on: Instant = Field(default_factory=utc_now)
    last_seen_on: Instant | None = None

    @property
    def display_name(self) -> str:
        first = self.preferred_name or self.first_name
        return f"{first} {self.last_name}".strip()
