"""
RawFetcher: one HTTP request in, one body out.

The fetcher never retries and never caches; each call is a fresh request.
The httpx client (and with it the cookie jar) belongs to the caller's
NineGagClient and is only borrowed here.
"""

import asyncio
from typing import Any, Awaitable, Optional, TypeVar

import httpx

from .config import ClientConfig
from .exceptions import OperationCancelled, TransportError
from .logger import get_module_logger

logger = get_module_logger("fetcher")

T = TypeVar("T")


async def run_cancellable(
    awaitable: Awaitable[T],
    cancel: Optional[asyncio.Event],
    stage: str
) -> T:
    """
    Await `awaitable`, abandoning it as soon as `cancel` is set.

    Cancelling the wrapped task propagates into whatever it awaits, including
    every child task of an asyncio.gather, so the whole fan-out stops.
    """
    if cancel is None:
        return await awaitable
    if cancel.is_set():
        # Never started; close a bare coroutine so it is not reported as un-awaited
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        elif asyncio.isfuture(awaitable):
            awaitable.cancel()
        raise OperationCancelled("Operation cancelled before start", stage)

    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(cancel.wait())
    try:
        done, _ = await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        work.cancel()
        waiter.cancel()
        raise

    if work in done:
        waiter.cancel()
        return work.result()

    logger.info(f"Cancel signal received during '{stage}'")
    work.cancel()
    await asyncio.gather(work, return_exceptions=True)
    raise OperationCancelled("Operation cancelled by caller", stage)


class RawFetcher:
    """Issues single GET/POST requests against the configured site."""

    def __init__(self, client: httpx.AsyncClient, config: ClientConfig):
        self.client = client
        self.config = config

    @property
    def cookies(self) -> httpx.Cookies:
        """The shared session cookie jar."""
        return self.client.cookies

    def has_cookie(self, name: str) -> bool:
        return self.client.cookies.get(name) is not None

    async def fetch(
        self,
        target: str,
        method: str = "GET",
        data: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        cancel: Optional[asyncio.Event] = None,
        stage: str = "fetch"
    ) -> str:
        """
        Fetch `target` (absolute URL or site path) and return the body text.

        Raises:
            TransportError: connection failure, timeout or non-2xx status
            OperationCancelled: `cancel` was set before the response arrived
        """
        return await run_cancellable(self._request(target, method, data, headers, stage), cancel, stage)

    async def _request(
        self,
        target: str,
        method: str,
        data: Optional[dict[str, Any]],
        headers: Optional[dict[str, str]],
        stage: str
    ) -> str:
        url = self.config.absolute(target)
        logger.debug(f"{method} {url}")
        try:
            response = await self.client.request(method, url, data=data, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"{method} {url} returned {e.response.status_code}",
                stage=stage,
                cause=e,
                status_code=e.response.status_code,
                url=url
            ) from e
        # InvalidURL (e.g. a bad port in a scraped link) is not an HTTPError subclass
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"{method} {url} failed", stage=stage, cause=e, url=url) from e

        logger.debug(f"{method} {url} -> {response.status_code} ({len(response.content)} bytes)")
        return response.text
