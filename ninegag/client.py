"""
NineGagClient: the public entry point.

Owns the one httpx.AsyncClient (connection pool + cookie jar) for its
lifetime and wires the pipeline stages together:

    async with NineGagClient() as client:
        sections = await client.list_sections()
        page = await client.get_page(sections[0])
        page2 = await client.get_page(sections[0], after=page)

The HTTP client is opened on __aenter__ and closed on every exit path.
"""

import asyncio
from typing import AsyncIterator, Optional

import httpx

from .assembler import Continuation, PageAssembler
from .config import ClientConfig
from .document import parse_json
from .exceptions import PartialFailure, VoteRejectedError
from .fetcher import RawFetcher
from .logger import get_module_logger
from .schemas import Page, Post, Section, SectionResult

logger = get_module_logger("client")


class NineGagClient:
    """
    Async client for 9GAG feeds.

    Must be used as an async context manager; calling an operation outside
    the context raises RuntimeError.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize NineGagClient.

        Args:
            config: Client settings (default: ClientConfig.from_env())
            transport: Custom httpx transport, e.g. httpx.MockTransport in tests
        """
        self.config = config or ClientConfig.from_env()
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None
        self._assembler: Optional[PageAssembler] = None

    async def __aenter__(self) -> "NineGagClient":
        self._http = httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            headers={
                "User-Agent": self.config.user_agent,
                "Accept": "text/html,application/xhtml+xml,application/json;q=0.9,*/*;q=0.8"
            },
            # A redirect means the page moved (or a login wall); surface it as a transport failure
            follow_redirects=False,
            transport=self._transport
        )
        self._assembler = PageAssembler(RawFetcher(self._http, self.config), self.config)
        logger.debug(f"HTTP client opened for {self.config.base_url}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None
            self._assembler = None
            logger.debug("HTTP client closed")

    @property
    def assembler(self) -> PageAssembler:
        if self._assembler is None:
            raise RuntimeError("NineGagClient must be used inside 'async with'")
        return self._assembler

    # --- Sections ---

    async def list_sections(self, cancel: Optional[asyncio.Event] = None) -> list[Section]:
        """Sections from the rendered index menu, featured ones first."""
        return await self.assembler.list_sections(cancel=cancel)

    async def get_config_sections(self, cancel: Optional[asyncio.Event] = None) -> SectionResult:
        """Sections from the index page's embedded configuration."""
        return await self.assembler.get_config_sections(cancel=cancel)

    # --- Pages ---

    async def get_page(
        self,
        section: Section,
        after: Continuation = None,
        with_details: bool = False,
        cancel: Optional[asyncio.Event] = None
    ) -> Page:
        return await self.assembler.get_page(section, after=after, with_details=with_details, cancel=cancel)

    async def get_api_page(
        self,
        group: str = "default",
        kind: str = "hot",
        count: Optional[int] = None,
        after: Continuation = None,
        cancel: Optional[asyncio.Event] = None
    ) -> Page:
        return await self.assembler.get_api_page(group=group, kind=kind, count=count, after=after, cancel=cancel)

    async def enrich_details(
        self,
        posts: list[Post],
        cancel: Optional[asyncio.Event] = None
    ) -> Optional[PartialFailure]:
        return await self.assembler.enrich_details(posts, cancel=cancel)

    async def iter_pages(
        self,
        section: Section,
        max_pages: Optional[int] = None,
        with_details: bool = False,
        cancel: Optional[asyncio.Event] = None
    ) -> AsyncIterator[Page]:
        """
        Yield consecutive pages of `section` until the feed ends or
        `max_pages` pages were produced.
        """
        page: Optional[Page] = None
        produced = 0
        while max_pages is None or produced < max_pages:
            page = await self.get_page(section, after=page, with_details=with_details, cancel=cancel)
            produced += 1
            yield page
            if not page.has_next:
                break

    # --- Session ---

    def is_signed_in(self) -> bool:
        """True when the cookie jar holds the site's session cookie."""
        return self.assembler.fetcher.has_cookie(self.config.session_cookie_name)

    async def upvote(self, post: Post, cancel: Optional[asyncio.Event] = None) -> None:
        """
        Upvote `post` (requires a signed-in session).

        Raises:
            VoteRejectedError: the site answered but did not count the vote
            TransportError: the request itself failed
        """
        await self._vote(post, self.config.vote_up_path, 1, cancel)

    async def downvote(self, post: Post, cancel: Optional[asyncio.Event] = None) -> None:
        """Downvote `post`. Same failure modes as upvote."""
        await self._vote(post, self.config.vote_down_path, -1, cancel)

    async def _vote(self, post: Post, path: str, expected: int, cancel: Optional[asyncio.Event]) -> None:
        if not post.id:
            raise VoteRejectedError("Post has no id to vote on", post_id="")

        text = await self.assembler.fetcher.fetch(
            path, method="POST", data={"id": post.id}, cancel=cancel, stage="vote"
        )
        score = parse_json(text).get("myScore", default=None)
        try:
            score = int(score)
        except (TypeError, ValueError):
            score = None

        if score != expected:
            raise VoteRejectedError(
                f"Vote on {post.id} was not registered; the session may not be signed in",
                post_id=post.id,
                score=score
            )
        logger.info(f"Voted {expected:+d} on {post.id}")
