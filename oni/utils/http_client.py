import asyncio
from typing import Optional

import aiohttp

from oni.core.constants import BROWSER_USER_AGENT
from oni.core.models import settings


def build_session() -> aiohttp.ClientSession:
    """A session sized and timed from settings, with a browser User-Agent."""
    connector = aiohttp.TCPConnector(
        limit=settings.HTTP_CLIENT_LIMIT,
        limit_per_host=settings.HTTP_CLIENT_LIMIT_PER_HOST,
    )
    return aiohttp.ClientSession(
        connector=connector,
        timeout=aiohttp.ClientTimeout(total=settings.HTTP_CLIENT_TIMEOUT_TOTAL),
        headers={"User-Agent": BROWSER_USER_AGENT},
    )


class HttpClientManager:
    """Process-wide session shared by every provider, created on first use."""

    def __init__(self):
        self._session: Optional[aiohttp.ClientSession] = None
        self._lock = asyncio.Lock()

    @property
    def active(self) -> bool:
        return self._session is not None and not self._session.closed

    async def get_session(self) -> aiohttp.ClientSession:
        if self.active:
            return self._session

        async with self._lock:
            if not self.active:
                self._session = build_session()
            return self._session

    async def close(self):
        async with self._lock:
            if self.active:
                await self._session.close()
            self._session = None


http_client_manager = HttpClientManager()
