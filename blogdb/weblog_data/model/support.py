"""
Value types shared by the web log entities.

Every record serializes with PascalCase field names (WebLogId, PriorPermalinks,
...). That document shape is the single storage contract: the relational
adapters keep it in a JSON column, the document adapter stores it natively and
the backup archive writes it verbatim.

Invariants:
    - Instants are UTC and serialize as fixed-width ISO-8601 strings with
      microseconds, so lexical order equals chronological order
    - Binary payloads serialize as standard base64
    - MarkupText serializes as "Markdown: <text>" or "HTML: <text>"

How to change safely:
    - Never rename a serialized field; stored documents and archives use them
    - New optional fields must have defaults so old documents still validate
"""

from __future__ import annotations

import base64
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Generic, TypeVar

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    PlainSerializer,
    model_serializer,
    model_validator,
)
from pydantic.alias_generators import to_pascal

T = TypeVar("T")

INSTANT_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def new_id() -> str:
    """Create a 22-character URL-safe identifier from a random UUID."""
    return base64.urlsafe_b64encode(uuid.uuid4().bytes).decode("ascii").rstrip("=")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_instant(value: datetime) -> str:
    """Render an instant in the stored string form."""
    return _ensure_utc(value).strftime(INSTANT_FORMAT)


def _decode_binary(value: Any) -> Any:
    if isinstance(value, str):
        return base64.b64decode(value)
    return value


def _encode_binary(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


Instant = Annotated[
    datetime,
    AfterValidator(_ensure_utc),
    PlainSerializer(format_instant, return_type=str, when_used="json"),
]

Binary = Annotated[
    bytes,
    BeforeValidator(_decode_binary),
    PlainSerializer(_encode_binary, return_type=str, when_used="json"),
]


class Record(BaseModel):
    """Base for every stored record: PascalCase document names, snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True)

    def to_document(self, exclude: set[str] | None = None) -> dict[str, Any]:
        """Serialize to the stored document shape."""
        return self.model_dump(mode="json", by_alias=True, exclude=exclude)

    @classmethod
    def from_document(cls, document: dict[str, Any]):
        """Build the record from a stored document."""
        return cls.model_validate(document)


class MarkupKind(str, Enum):
    """Source format of a piece of text."""

    MARKDOWN = "Markdown"
    HTML = "HTML"


class MarkupText(BaseModel):
    """Text tagged with its source format."""

    model_config = ConfigDict(frozen=True)

    kind: MarkupKind
    text: str

    @classmethod
    def markdown(cls, text: str) -> MarkupText:
        return cls(kind=MarkupKind.MARKDOWN, text=text)

    @classmethod
    def html(cls, text: str) -> MarkupText:
        return cls(kind=MarkupKind.HTML, text=text)

    @model_validator(mode="before")
    @classmethod
    def parse_tagged(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        for kind in MarkupKind:
            prefix = f"{kind.value}: "
            if value.startswith(prefix):
                return {"kind": kind, "text": value[len(prefix):]}
        return {"kind": MarkupKind.HTML, "text": value}

    @model_serializer
    def serialize_tagged(self) -> str:
        return f"{self.kind.value}: {self.text}"


class Revision(Record):
    """A timestamped snapshot of a page or post's source text.

    Attributes:
        as_of: When this revision was saved
        text: The source text as of that instant
    """

    model_config = ConfigDict(frozen=True)

    as_of: Instant
    text: MarkupText


class MetaItem(Record):
    """A name/value pair attached to a page or post."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: str


class PostStatus(str, Enum):
    DRAFT = "Draft"
    PUBLISHED = "Published"


class AccessLevel(str, Enum):
    """Authorization level of a web log user."""

    AUTHOR = "Author"
    EDITOR = "Editor"
    WEB_LOG_ADMIN = "WebLogAdmin"
    ADMINISTRATOR = "Administrator"

    @property
    def weight(self) -> int:
        return _ACCESS_WEIGHTS[self]

    def has_access(self, needed: AccessLevel) -> bool:
        """Whether this level is at least as privileged as needed."""
        return self.weight >= needed.weight


_ACCESS_WEIGHTS = {
    AccessLevel.AUTHOR: 10,
    AccessLevel.EDITOR: 20,
    AccessLevel.WEB_LOG_ADMIN: 30,
    AccessLevel.ADMINISTRATOR: 40,
}


class UploadDestination(str, Enum):
    """Where a web log keeps uploaded files."""

    DATABASE = "Database"
    DISK = "Disk"


class ExplicitRating(str, Enum):
    YES = "yes"
    NO = "no"
    CLEAN = "clean"


class CommentStatus(str, Enum):
    APPROVED = "Approved"
    PENDING = "Pending"
    SPAM = "Spam"


class Episode(Record):
    """Podcast episode details attached to a post.

    Attributes:
        media: Path or URL to the media file
        length: Media file size in bytes
        duration: Running time, e.g. "00:42:17"
        media_type: MIME type when it differs from the feed default
        explicit: Rating override for this episode
    """

    media: str
    length: int
    duration: str | None = None
    media_type: str | None = None
    image_url: str | None = None
    subtitle: str | None = None
    explicit: ExplicitRating | None = None
    chapter_file: str | None = None
    chapter_type: str | None = None
    transcript_url: str | None = None
    transcript_type: str | None = None
    transcript_lang: str | None = None
    transcript_captions: bool | None = None
    season_number: int | None = None
    season_description: str | None = None
    episode_number: float | None = None
    episode_description: str | None = None


class PodcastOptions(Record):
    """Settings that turn a custom feed into a podcast."""

    title: str
    subtitle: str | None = None
    items_in_feed: int
    summary: str
    displayed_author: str
    email: str
    image_url: str
    apple_category: str
    apple_subcategory: str | None = None
    explicit: ExplicitRating = ExplicitRating.NO
    default_media_type: str | None = None
    media_base_url: str | None = None
    podcast_guid: str | None = None
    funding_url: str | None = None
    funding_text: str | None = None
    medium: str | None = None


class CustomFeed(Record):
    """An extra RSS feed for a category or tag.

    Attributes:
        id: Feed identifier
        source: "category:<category id>" or "tag:<tag>"
        path: Relative URL of the feed
        podcast: Podcast settings, if this feed is a podcast
    """

    id: str
    source: str
    path: str
    podcast: PodcastOptions | None = None

    @property
    def source_category_id(self) -> str | None:
        kind, _, value = self.source.partition(":")
        return value if kind == "category" else None


class RssOptions(Record):
    is_feed_enabled: bool = True
    feed_name: str = "feed.xml"
    items_in_feed: int | None = None
    is_category_enabled: bool = True
    is_tag_enabled: bool = True
    copyright: str | None = None
    custom_feeds: list[CustomFeed] = []


class ThemeTemplate(Record):
    """A named template within a theme."""

    name: str
    text: str


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of an operation that can be refused for a domain reason.

    Attributes:
        ok: Whether the operation was carried out
        value: Success payload
        error: Why the operation was refused
    """

    ok: bool
    value: T | None = None
    error: str | None = None

    @classmethod
    def success(cls, value: T | None = None) -> Result[T]:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> Result[T]:
        return cls(ok=False, error=error)


class CategoryDeleteResult(Enum):
    """Which branch a category delete took."""

    CATEGORY_DELETED = "CategoryDeleted"
    REASSIGNED_CHILD_CATEGORIES = "ReassignedChildCategories"
    CATEGORY_NOT_FOUND = "CategoryNotFound"
