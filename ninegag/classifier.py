"""
ItemClassifier: one listing item → Post.

Decision order for the content variant (first match wins, evaluated once):
  1. video element      → AnimatedContent (one ContentItem per <source>)
  2. image element      → PhotoContent (long-post cover detected from the URI)
  3. NSFW marker        → RestrictedContent (media withheld from anonymous views)
  4. otherwise          → UnknownContent

The NSFW *flag* is read independently of step 3: a signed-in view shows the
media of an NSFW post, so such a post is Photo/Animated with is_nsfw=True.

Cosmetic problems (missing counts, missing title) never raise. Only a fragment
that cannot be queried at all is StructureDriftError.
"""

import re
from typing import Any, Optional

from pydantic import ValidationError

from .config import ClientConfig
from .document import HtmlNode
from .exceptions import StructureDriftError
from .logger import get_module_logger
from .schemas import (
    AnimatedContent, ContentItem, ContentKind, ContentVariant, PhotoContent,
    Post, PostPayload, RestrictedContent, UnknownContent
)

logger = get_module_logger("classifier")

STAGE = "classify"

NON_DIGITS = re.compile(r"[^0-9]")

# API "type" values that carry a video rendition
ANIMATED_TYPES = {"animated", "video"}


def parse_count(text: Optional[str]) -> int:
    """Digits of `text` as an int ("1,024 points" → 1024); 0 when there are none."""
    digits = NON_DIGITS.sub("", text or "")
    return int(digits) if digits else 0


def video_kind(mime: Optional[str]) -> ContentKind:
    """video/mp4 is MP4; every other source of a video element is WebM."""
    return ContentKind.MP4 if (mime or "").strip().lower() == "video/mp4" else ContentKind.WEBM


class ItemClassifier:
    """Turns listing fragments (HTML or API JSON) into typed posts."""

    def __init__(self, config: Optional[ClientConfig] = None):
        self.config = config or ClientConfig()

    # --- HTML listing ---

    def classify(self, fragment: HtmlNode) -> Post:
        """
        Classify one <article> fragment.

        Raises:
            StructureDriftError: the fragment is not a queryable element
        """
        if not isinstance(fragment, HtmlNode) or fragment.tag is None:
            raise StructureDriftError("Item fragment cannot be queried", STAGE, selector=self.config.selectors.item)

        selectors = self.config.selectors
        post_id = fragment.attr("data-entry-id") or None

        header = fragment.select_one(selectors.item_title)
        title = header.text() if header is not None else ""

        is_nsfw = fragment.select_one(selectors.nsfw_marker) is not None
        content = self._classify_content(fragment, is_nsfw)

        url = fragment.attr("data-entry-url")
        if url:
            url = self.config.absolute(url)
        elif post_id:
            url = self.config.post_url(post_id)

        post = Post(
            id=post_id,
            url=url,
            title=title,
            up_votes=self._count(fragment, "data-entry-votes", selectors.vote_count),
            comments=self._count(fragment, "data-entry-comments", selectors.comment_count),
            is_nsfw=is_nsfw,
            content=content
        )
        logger.debug(f"Classified post {post_id or '?'} as {content.variant}")
        return post

    def _classify_content(self, fragment: HtmlNode, is_nsfw: bool) -> ContentVariant:
        selectors = self.config.selectors

        video = fragment.select_one(selectors.video)
        if video is not None:
            items = []
            for source in video.select_all(selectors.video_source):
                src = source.attr("src")
                if src:
                    items.append(ContentItem(uri=self.config.absolute(src), kind=video_kind(source.attr("type"))))
            # Some layouts put a single src on the <video> itself
            if not items and video.attr("src"):
                items.append(ContentItem(uri=self.config.absolute(video.attr("src")), kind=video_kind(video.attr("type"))))
            poster = video.attr("poster")
            return AnimatedContent(items=items, thumbnail_uri=self.config.absolute(poster) if poster else None)

        image = fragment.select_one(selectors.image)
        if image is not None:
            src = image.attr("src") or image.attr("data-src")
            if src:
                return PhotoContent(uri=self.config.absolute(src), is_long_post=self.is_long_post(src))
            logger.warning("Image element without src, classifying further")

        if is_nsfw:
            return RestrictedContent()
        return UnknownContent()

    def _count(self, fragment: HtmlNode, attribute: str, css: str) -> int:
        raw = fragment.attr(attribute)
        if raw is None:
            node = fragment.select_one(css)
            raw = node.text() if node is not None else None
        return parse_count(raw)

    def is_long_post(self, uri: str) -> bool:
        return self.config.long_post_marker.lower() in uri.lower()

    # --- JSON API listing ---

    def classify_api_item(self, item: Any) -> Post:
        """
        Classify one entry of the API's `data.posts` list.

        Raises:
            StructureDriftError: the entry is not an object or does not map
        """
        if not isinstance(item, dict):
            raise StructureDriftError(f"Post entry is {type(item).__name__}, expected object", STAGE)
        try:
            payload = PostPayload.model_validate(item)
        except ValidationError as e:
            raise StructureDriftError("Post entry does not match the expected shape", STAGE, cause=e) from e

        post = Post(
            id=payload.id,
            url=payload.url or (self.config.post_url(payload.id) if payload.id else None),
            title=payload.title,
            description=payload.description,
            up_votes=payload.up_votes,
            comments=payload.comments,
            is_nsfw=payload.nsfw,
            created_at=payload.created_at,
            content=self._classify_api_content(payload)
        )
        logger.debug(f"Classified API post {post.id or '?'} as {post.variant}")
        return post

    def _classify_api_content(self, payload: PostPayload) -> ContentVariant:
        post_type = (payload.type or "").lower()
        still = payload.images.get("image700") or payload.images.get("image460")
        video = payload.images.get("image460sv")

        if post_type in ANIMATED_TYPES and video is not None and (video.url or video.webm_url):
            items = []
            if video.url:
                items.append(ContentItem(uri=video.url, kind=ContentKind.MP4))
            if video.webm_url:
                items.append(ContentItem(uri=video.webm_url, kind=ContentKind.WEBM))
            return AnimatedContent(items=items, thumbnail_uri=still.url if still else None)

        if still is not None and still.url:
            return PhotoContent(uri=still.url, is_long_post=self.is_long_post(still.url))

        if payload.nsfw:
            return RestrictedContent()
        return UnknownContent()
