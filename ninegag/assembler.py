"""
PageAssembler: drives one listing fetch end to end.

Pipeline per call:
  resolve target → RawFetcher → DocumentParser → ItemClassifier per item
  → continuation cursor → (optional) concurrent detail enrichment → Page

Per-item failures (classification or enrichment) are collected on the Page;
only transport, parse and required-anchor failures abort the call.
"""

import asyncio
from typing import Optional, Union
from urllib.parse import parse_qs, urlsplit

import httpx

from .classifier import ItemClassifier
from .config import ClientConfig
from .details import DETAIL_ENRICHERS, needs_details
from .document import HtmlDocument, parse_html, parse_json
from .exceptions import NineGagError, PaginationError, PartialFailure, StructureDriftError
from .fetcher import RawFetcher, run_cancellable
from .logger import get_module_logger
from .schemas import Cursor, ItemFailure, Page, Post, Section, SectionResult
from .sections import SectionResolver

logger = get_module_logger("assembler")

Continuation = Union[Page, Cursor, None]


def _failure(error: Exception, post_id: Optional[str], default_stage: str) -> ItemFailure:
    return ItemFailure(
        post_id=post_id,
        stage=getattr(error, "stage", "") or default_stage,
        message=str(error),
        error_type=type(error).__name__
    )


def _with_params(url: str, params: dict) -> str:
    # Merges into any query the URL already has
    return str(httpx.URL(url).copy_merge_params({key: str(value) for key, value in params.items()}))


class PageAssembler:
    """Builds typed pages from section listings and the JSON API."""

    def __init__(
        self,
        fetcher: RawFetcher,
        config: Optional[ClientConfig] = None,
        classifier: Optional[ItemClassifier] = None,
        resolver: Optional[SectionResolver] = None
    ):
        self.fetcher = fetcher
        self.config = config or fetcher.config
        self.classifier = classifier or ItemClassifier(self.config)
        self.resolver = resolver or SectionResolver(self.config)

    # --- Sections ---

    async def list_sections(self, cancel: Optional[asyncio.Event] = None) -> list[Section]:
        text = await self.fetcher.fetch("/", cancel=cancel, stage="sections")
        return self.resolver.resolve_sections(self._parse_html(text))

    async def get_config_sections(self, cancel: Optional[asyncio.Event] = None) -> SectionResult:
        text = await self.fetcher.fetch("/", cancel=cancel, stage="sections")
        return self.resolver.resolve_config_sections(text)

    # --- Continuations ---

    @staticmethod
    def continuation(feed_url: str, after: Continuation) -> Optional[Cursor]:
        """
        Validate `after` against the feed and return the cursor to request.

        Raises:
            PaginationError: `after` is the last page, or belongs to another feed
        """
        if after is None:
            return None
        if isinstance(after, Page):
            if after.next is None:
                raise PaginationError("The given page is the last page of its feed", stage="page")
            cursor = after.next
        else:
            cursor = after
        if cursor.section_url != feed_url:
            raise PaginationError(
                f"Cursor belongs to {cursor.section_url}, not {feed_url}",
                stage="page",
                details={"cursor": cursor.cursor}
            )
        return cursor

    def resolve_target(self, section: Section, after: Continuation = None) -> str:
        """First page: the section URL. Later pages: section URL + cursor and page size."""
        cursor = self.continuation(section.url, after)
        if cursor is None:
            return section.url
        return _with_params(section.url, {"id": cursor.cursor, "c": cursor.count})

    def parse_load_more(self, document: HtmlDocument, section_url: str) -> Optional[Cursor]:
        """
        Read the next cursor from the "load more" anchor.

        No anchor means end of feed. An anchor whose link carries no cursor
        means the pagination scheme changed, which is structure drift.
        """
        selector = self.config.selectors.load_more
        anchor = document.select_one(selector)
        if anchor is None:
            return None

        href = anchor.attr("href") or ""
        query = parse_qs(urlsplit(href).query)
        cursor = (query.get("id") or [""])[0].strip()
        if not cursor:
            raise StructureDriftError(f"Load-more link has no cursor: {href!r}", "page", selector=selector)

        try:
            count = int((query.get("c") or [""])[0])
        except ValueError:
            count = self.config.default_page_size
        return Cursor(cursor=cursor, count=count, section_url=section_url)

    # --- Listing pages ---

    async def get_page(
        self,
        section: Section,
        after: Continuation = None,
        with_details: bool = False,
        cancel: Optional[asyncio.Event] = None
    ) -> Page:
        """
        Fetch one page of `section`.

        Args:
            section: Section to read
            after: Previous Page (or its next Cursor); None for the first page
            with_details: Also fetch each post's detail page concurrently
            cancel: Event that abandons all in-flight requests when set

        Returns:
            Page with every post that classified, plus per-item failures
        """
        current = self.continuation(section.url, after)
        target = self.resolve_target(section, current)
        logger.info(f"Fetching page of '{section.name}': {target}")

        text = await self.fetcher.fetch(target, cancel=cancel, stage="page")
        document = self._parse_html(text)

        fragments = document.select_all(self.config.selectors.item)
        if not fragments:
            logger.warning(f"No '{self.config.selectors.item}' elements on {target}")

        posts: list[Post] = []
        failures: list[ItemFailure] = []
        for fragment in fragments:
            try:
                posts.append(self.classifier.classify(fragment))
            except NineGagError as e:
                logger.warning(f"Item skipped: {e}")
                failures.append(_failure(e, fragment.attr("data-entry-id"), "classify"))

        next_cursor = self.parse_load_more(document, section.url)

        if with_details:
            partial = await self.enrich_details(posts, cancel=cancel)
            if partial is not None:
                failures.extend(partial.failures)

        logger.info(
            f"Page complete: {len(posts)} posts, {len(failures)} failures, "
            f"{'more' if next_cursor else 'end of feed'}"
        )
        return Page(
            section=section,
            feed_url=section.url,
            source_url=target,
            current=current,
            next=next_cursor,
            posts=posts,
            failures=failures
        )

    async def get_api_page(
        self,
        group: str = "default",
        kind: str = "hot",
        count: Optional[int] = None,
        after: Continuation = None,
        cancel: Optional[asyncio.Event] = None
    ) -> Page:
        """
        Fetch one page from the JSON posts API.

        `kind` is "hot", "trending" or "fresh"; trending only exists for the
        "default" group.
        """
        feed_url = self.config.absolute(self.config.api_posts_path.format(group=group, kind=kind))
        current = self.continuation(feed_url, after)

        if count is not None:
            page_size = count
        else:
            page_size = current.count if current else self.config.default_page_size
        params = {"c": page_size}
        if current is not None:
            params["after"] = current.cursor
        target = _with_params(feed_url, params)
        logger.info(f"Fetching API page: {target}")

        text = await self.fetcher.fetch(
            target, headers={"Accept": "application/json"}, cancel=cancel, stage="page"
        )
        document = parse_json(text)
        items = document.require("data", "posts", stage="page")
        if not isinstance(items, list):
            raise StructureDriftError("data.posts is not a list", "page", selector="data.posts")

        posts: list[Post] = []
        failures: list[ItemFailure] = []
        for item in items:
            try:
                posts.append(self.classifier.classify_api_item(item))
            except NineGagError as e:
                post_id = item.get("id") if isinstance(item, dict) else None
                logger.warning(f"API item skipped: {e}")
                failures.append(_failure(e, post_id, "classify"))

        next_cursor = None
        raw_next = document.get("data", "nextCursor", default=None)
        if isinstance(raw_next, str) and raw_next.strip():
            # Usually "after=<token>&c=<n>"; older responses sent the bare token
            query = parse_qs(raw_next)
            token = (query.get("after") or [raw_next])[0]
            try:
                next_count = int((query.get("c") or [page_size])[0])
            except ValueError:
                next_count = page_size
            next_cursor = Cursor(cursor=token, count=next_count, section_url=feed_url)

        return Page(
            feed_url=feed_url,
            source_url=target,
            current=current,
            next=next_cursor,
            posts=posts,
            failures=failures
        )

    # --- Detail enrichment ---

    async def enrich_details(
        self,
        posts: list[Post],
        cancel: Optional[asyncio.Event] = None
    ) -> Optional[PartialFailure]:
        """
        Fetch every eligible post's detail page concurrently and fill in
        `post.details` in place.

        Returns:
            PartialFailure listing the posts that could not be enriched, or None
        """
        eligible = [post for post in posts if needs_details(post)]
        if not eligible:
            return None

        logger.info(f"Enriching {len(eligible)} posts")
        results = await run_cancellable(
            asyncio.gather(*(self._enrich_one(post) for post in eligible), return_exceptions=True),
            cancel,
            "detail"
        )

        failures = []
        for post, result in zip(eligible, results):
            if isinstance(result, NineGagError):
                logger.warning(f"Detail fetch failed for {post.id}: {result}")
                failures.append(_failure(result, post.id, "detail"))
            elif isinstance(result, Exception):
                logger.warning(f"Detail enrichment crashed for {post.id}: {result!r}")
                failures.append(_failure(result, post.id, "detail"))
            elif isinstance(result, BaseException):
                raise result

        if not failures:
            return None
        return PartialFailure(failures, stage="detail")

    async def _enrich_one(self, post: Post) -> None:
        target = post.url or self.config.post_url(post.id)
        text = await self.fetcher.fetch(target, stage="detail")
        document = self._parse_html(text)
        enricher = DETAIL_ENRICHERS[post.variant]
        try:
            details = enricher(post, document, self.config)
        except NineGagError:
            raise
        except Exception as e:
            raise StructureDriftError(f"Detail page of {post.id} could not be read", "detail", cause=e) from e
        post.details = details

    def _parse_html(self, text: str) -> HtmlDocument:
        return parse_html(text, self.config.html_backends)
