"""
Pydantic schemas for everything the pipeline hands back to callers.

Section / Page / Post are the stable, typed output; the *Payload models at the
bottom are the declarative mapping from upstream JSON field names onto them.

Data flow through the pipeline:
  index HTML  → SectionResolver → list[Section]
  section URL → PageAssembler → ItemClassifier per <article> → Page[Post]
  post URL    → detail enrichers → Post.details
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Sections ---

class SectionKind(str, Enum):
    """Well-known sections; everything else is UNKNOWN."""
    UNKNOWN = "unknown"
    HOT = "hot"
    TRENDING = "trending"
    FRESH = "fresh"
    FUNNY = "funny"
    NSFW = "nsfw"
    WTF = "wtf"
    GIF = "gif"
    GEEKY = "geeky"
    MEME = "meme"
    CUTE_ANIMALS = "cuteanimals"
    COMIC = "comic"
    COSPLAY = "cosplay"
    FOOD = "food"
    GIRL = "girl"
    TIMELY = "timely"
    DESIGN = "design"


class Section(BaseModel):
    """
    A content category. Identity is the absolute URL: two resolutions of the
    same upstream category compare equal even if the label changed.
    """
    model_config = ConfigDict(frozen=True)

    url: str
    name: str
    description: str = ""
    kind: SectionKind = SectionKind.UNKNOWN
    icon_url: Optional[str] = None
    locale: str = ""                 # Empty unless the section is region specific
    upload_allowed: bool = False
    is_sensitive: bool = False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Section):
            return NotImplemented
        return self.url == other.url

    def __hash__(self) -> int:
        return hash(self.url)

    def __str__(self) -> str:
        return f"{self.name} - {self.description}"


class SectionResult(BaseModel):
    """Sections as published in the index page's embedded configuration."""
    sections: list[Section] = Field(default_factory=list)
    featured_sections: list[Section] = Field(default_factory=list)
    local_sections: list[Section] = Field(default_factory=list)
    current_local_section: Optional[Section] = None


# --- Media ---

class ContentKind(str, Enum):
    UNKNOWN = "unknown"
    JPEG = "jpeg"
    MP4 = "mp4"
    WEBM = "webm"


class ContentItem(BaseModel):
    """A single media reference: absolute URI plus its kind."""
    model_config = ConfigDict(frozen=True)

    uri: str
    kind: ContentKind = ContentKind.UNKNOWN


# --- Content variants (tagged union on "variant") ---

class PhotoContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    variant: Literal["photo"] = "photo"
    uri: str
    # Long posts only carry a cover image; the full image lives on the detail page
    is_long_post: bool = False


class AnimatedContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    variant: Literal["animated"] = "animated"
    items: list[ContentItem] = Field(default_factory=list)
    thumbnail_uri: Optional[str] = None


class RestrictedContent(BaseModel):
    """Upstream withholds the media from anonymous viewers."""
    model_config = ConfigDict(frozen=True)

    variant: Literal["restricted"] = "restricted"


class UnknownContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    variant: Literal["unknown"] = "unknown"


ContentVariant = Annotated[
    Union[PhotoContent, AnimatedContent, RestrictedContent, UnknownContent],
    Field(discriminator="variant")
]


# --- Posts and pages ---

class PostDetails(BaseModel):
    """Data that only exists on a post's own page."""
    content: list[ContentItem] = Field(default_factory=list)
    description: Optional[str] = None


class Post(BaseModel):
    """
    One item of a feed.

    `content` is set once by the classifier and is frozen; `details` stays None
    until the detail enrichment step fills it in.
    """
    id: Optional[str] = None
    url: Optional[str] = None
    title: str = ""
    description: Optional[str] = None
    up_votes: int = 0
    comments: int = 0
    is_nsfw: bool = False            # Flag, independent of the content variant
    created_at: Optional[datetime] = None
    content: ContentVariant = Field(default_factory=UnknownContent, frozen=True)
    details: Optional[PostDetails] = None

    @property
    def variant(self) -> str:
        return self.content.variant


class Cursor(BaseModel):
    """
    Opaque continuation token.

    `section_url` binds the token to the feed that issued it; the format of
    `cursor` itself is whatever upstream currently uses.
    """
    model_config = ConfigDict(frozen=True)

    cursor: str
    count: int
    section_url: str


class ItemFailure(BaseModel):
    """One item that failed inside an otherwise successful batch."""
    post_id: Optional[str] = None
    stage: str
    message: str
    error_type: str = ""


class Page(BaseModel):
    """
    One fetched batch of posts. Never mutated by the pipeline after return.

    `feed_url` identifies the feed (section URL or API endpoint) and is the
    same for every page of it; `source_url` is the exact URL fetched for this
    page, cursor parameters included.
    """
    section: Optional[Section] = None
    feed_url: str
    source_url: Optional[str] = None
    current: Optional[Cursor] = None   # None for the first page
    next: Optional[Cursor] = None      # None at the end of the feed
    posts: list[Post] = Field(default_factory=list)
    failures: list[ItemFailure] = Field(default_factory=list)

    @property
    def has_next(self) -> bool:
        return self.next is not None

    @property
    def partial_failure(self):
        """The batch failures as a PartialFailure, or None when everything succeeded."""
        from .exceptions import PartialFailure
        return PartialFailure(self.failures, stage="page") if self.failures else None

    def raise_for_failures(self) -> None:
        """Raise PartialFailure if any item of this page failed."""
        failure = self.partial_failure
        if failure is not None:
            raise failure


# --- Upstream payload mappings (JSON API / embedded config) ---

def _empty_to_none(value: Any) -> Any:
    # The API sends "" where null is meant
    if isinstance(value, str) and not value.strip():
        return None
    return value


class SectionPayload(BaseModel):
    """Section object from `window._config.page.*`."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = ""
    url: Optional[str] = None
    description: Optional[str] = None
    icon_url: Optional[str] = Field(default=None, alias="ogImageUrl")
    locale: Optional[str] = Field(default=None, alias="location")
    upload_allowed: bool = Field(default=False, alias="userUploadEnabled")
    is_sensitive: bool = Field(default=False, alias="isSensitive")

    @field_validator("url", "description", "icon_url", "locale", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        return _empty_to_none(value)


class ImagePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    url: Optional[str] = None
    webm_url: Optional[str] = Field(default=None, alias="vp9Url")
    width: int = 0
    height: int = 0

    @field_validator("url", "webm_url", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        return _empty_to_none(value)


class PostPayload(BaseModel):
    """Post object from `/v1/group-posts/...` → data.posts[]."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    url: Optional[str] = None
    title: str = ""
    description: Optional[str] = None
    type: Optional[str] = None
    nsfw: bool = False
    up_votes: int = Field(default=0, alias="upVoteCount")
    comments: int = Field(default=0, alias="commentsCount")
    created_at: Optional[datetime] = Field(default=None, alias="creationTs")
    images: dict[str, ImagePayload] = Field(default_factory=dict)

    @field_validator("id", "url", "description", "type", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        return _empty_to_none(value)

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, value: Any) -> str:
        return (value or "").strip() if isinstance(value, str) or value is None else str(value)

    @field_validator("up_votes", "comments", mode="before")
    @classmethod
    def coerce_count(cls, value: Any) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return 0

    @field_validator("created_at", mode="before")
    @classmethod
    def parse_timestamp(cls, value: Any) -> Optional[datetime]:
        # Unix seconds; null/"" means unknown
        if value in (None, ""):
            return None
        if isinstance(value, datetime):
            return value
        try:
            return datetime.fromtimestamp(int(value), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError):
            return None
