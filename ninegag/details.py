"""
Detail enrichment: data that only a post's own page carries.

DETAIL_ENRICHERS maps a content variant to the function that reads its detail
page. Variants without an entry (restricted, unknown) have nothing to gain
from a detail fetch, so the assembler never requests their page.
"""

from typing import Callable, Optional

from .config import ClientConfig
from .document import HtmlDocument
from .exceptions import StructureDriftError
from .schemas import ContentItem, ContentKind, Post, PostDetails

STAGE = "detail"

Enricher = Callable[[Post, HtmlDocument, ClientConfig], PostDetails]


def _description(document: HtmlDocument, config: ClientConfig) -> Optional[str]:
    meta = document.select_one(config.selectors.detail_description)
    if meta is None:
        return None
    return meta.attr("content") or None


def enrich_photo(post: Post, document: HtmlDocument, config: ClientConfig) -> PostDetails:
    """Full-size image (the listing may only show a long-post cover)."""
    image = document.select_one(config.selectors.detail_image)
    src = image.attr("src") if image is not None else None
    if not src:
        raise StructureDriftError(
            f"Full-size image not found for post {post.id}",
            STAGE,
            selector=config.selectors.detail_image
        )
    return PostDetails(
        content=[ContentItem(uri=config.absolute(src), kind=ContentKind.JPEG)],
        description=_description(document, config)
    )


def enrich_animated(post: Post, document: HtmlDocument, config: ClientConfig) -> PostDetails:
    # The listing already carries every rendition
    return PostDetails(description=_description(document, config))


DETAIL_ENRICHERS: dict[str, Enricher] = {
    "photo": enrich_photo,
    "animated": enrich_animated,
}


def needs_details(post: Post) -> bool:
    return post.id is not None and post.variant in DETAIL_ENRICHERS
