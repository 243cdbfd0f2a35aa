"""Web page fetcher.

Downloads the raw bytes of a recipe page with aiohttp. Any network-level
failure (timeout, DNS, refused connection, non-2xx status, oversize page) is
raised as FetchError so the caller can fall back to asking for pasted text.
"""

import asyncio
from typing import Optional, Protocol

import aiohttp

from recipe_guard.utils.config import config
from recipe_guard.utils.errors import FetchError
from recipe_guard.utils.logger import logger


class FetchedPage:
    """Raw page bytes plus the charset the server declared (if any)."""

    def __init__(self, url: str, body: bytes, charset: Optional[str] = None) -> None:
        self.url = url
        self.body = body
        self.charset = charset


class Fetcher(Protocol):
    async def fetch(self, url: str) -> bytes: ...

    async def fetch_page(self, url: str) -> FetchedPage: ...


class PageFetcher:
    """aiohttp-backed fetcher with timeout, user agent and size limit."""

    def __init__(
        self,
        timeout_seconds: Optional[int] = None,
        user_agent: Optional[str] = None,
        max_page_size_mb: Optional[int] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds or config.FETCH_TIMEOUT_SECONDS
        self.user_agent = user_agent or config.FETCH_USER_AGENT
        self.max_bytes = (max_page_size_mb or config.MAX_PAGE_SIZE_MB) * 1024 * 1024

    async def fetch_page(self, url: str) -> FetchedPage:
        """Fetch ``url`` and return its bytes with the declared charset.

        Raises:
            FetchError: On timeout, connection failure, HTTP error status or
                a body larger than the configured limit.
        """
        headers = {"User-Agent": self.user_agent, "Accept": "text/html,application/xhtml+xml"}
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        try:
            async with aiohttp.ClientSession(headers=headers, timeout=timeout) as session:
                async with session.get(url, allow_redirects=True) as response:
                    if response.status >= 400:
                        raise FetchError(f"HTTP {response.status} fetching {url}", url=url, status=response.status)

                    if response.content_length and response.content_length > self.max_bytes:
                        raise FetchError(f"Page too large ({response.content_length} bytes): {url}", url=url)

                    chunks = []
                    size = 0
                    async for chunk in response.content.iter_chunked(64 * 1024):
                        size += len(chunk)
                        if size > self.max_bytes:
                            raise FetchError(f"Page exceeds {self.max_bytes} bytes: {url}", url=url)
                        chunks.append(chunk)
                    body = b"".join(chunks)

                    logger.debug(f"Fetched {len(body)} bytes from {url}")
                    return FetchedPage(url=url, body=body, charset=response.charset)
        except FetchError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Fetch failed for {url}: {e}")
            raise FetchError(f"Could not fetch {url}: {e}", url=url) from e

    async def fetch(self, url: str) -> bytes:
        """Fetch ``url`` and return the raw body bytes."""
        page = await self.fetch_page(url)
        return page.body
