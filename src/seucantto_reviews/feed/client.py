"""
Client for the published review feed.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from ..exceptions import FeedFormatError
from ..utils.helpers import retry_async
from .normalize import normalize_feed

logger = logging.getLogger(__name__)


class FeedClient:
    """
    Fetches the review feed over HTTP.

    Failed fetches are retried with exponential backoff. The last good feed
    is cached in memory and served when every retry fails.
    """

    def __init__(self, url: str, max_retries: int = 3, delay: float = 1.0, backoff: float = 2.0):
        """
        Initialize the feed client.

        Args:
            url: Feed URL
            max_retries: Retries after the first failed attempt
            delay: Initial delay between retries in seconds
            backoff: Backoff multiplier
        """
        self.url = url
        self.max_retries = max_retries
        self.delay = delay
        self.backoff = backoff
        self.session: Optional[aiohttp.ClientSession] = None
        self._cache: Optional[Dict[str, Any]] = None

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "FeedClient":
        feed = config["feed"]
        return cls(feed["url"], feed["max_retries"], feed["delay"], feed["backoff"])

    async def __aenter__(self):
        """Async context manager entry."""
        timeout = aiohttp.ClientTimeout(total=30, connect=10)
        headers = {"Accept": "application/json", "User-Agent": "SeuCantto-Reviews/1.0"}
        self.session = aiohttp.ClientSession(timeout=timeout, headers=headers)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self.session:
            await self.session.close()
            self.session = None

    @property
    def cached(self) -> Optional[Dict[str, Any]]:
        return self._cache

    async def _fetch_once(self) -> Dict[str, Any]:
        async with self.session.get(self.url) as response:
            response.raise_for_status()
            data = await response.json(content_type=None)
        return normalize_feed(data)

    async def fetch(self) -> Dict[str, Any]:
        """
        Fetch and normalize the feed.

        Returns:
            Fresh feed, or the cached copy when the remote is unavailable

        Raises:
            aiohttp.ClientError: fetch failed and nothing is cached
        """
        if self.session is None:
            async with self:
                return await self.fetch()

        try:
            feed = await retry_async(
                self._fetch_once, max_retries=self.max_retries, delay=self.delay, backoff=self.backoff
            )
        except (aiohttp.ClientError, asyncio.TimeoutError, FeedFormatError) as e:
            if self._cache is not None:
                logger.warning(f"Feed fetch failed ({e}), serving cached copy")
                return self._cache
            logger.error(f"Feed fetch failed and no cached copy is available: {e}")
            raise

        self._cache = feed
        logger.info(f"Fetched {len(feed['reviews'])} reviews from {self.url}")
        return feed
