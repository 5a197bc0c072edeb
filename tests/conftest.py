import asyncio
import os
import tempfile

# keep test runs away from the user's ~/.oni before any oni module is imported
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="oni-tests-"))
os.environ.setdefault("LOG_TO_FILE", "false")

import pytest  # noqa: E402

from oni.providers.cache import ProviderCache  # noqa: E402


class FakeResponse:
    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body

    async def text(self):
        if isinstance(self.body, bytes):
            return self.body.decode("utf-8")
        return self.body


class Stall:
    """Reply that never arrives. Counts waiting and cancelled requests."""

    def __init__(self):
        self.waiting = 0
        self.cancelled = 0

    async def wait(self):
        self.waiting += 1
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled += 1
            raise


class FakeRequest:
    def __init__(self, reply):
        self.reply = reply

    async def __aenter__(self):
        # let concurrent branches interleave like real network calls
        await asyncio.sleep(0)
        if isinstance(self.reply, Stall):
            await self.reply.wait()
        if isinstance(self.reply, BaseException):
            raise self.reply
        status, body = self.reply
        return FakeResponse(status, body)

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    """
    Scripted stand-in for aiohttp.ClientSession.

    Routes are (substring, reply) pairs checked in insertion order against the
    url plus the repr of params and data. A reply is a body string, a
    (status, body) tuple or an exception instance to raise. Every request is
    recorded in `calls`.
    """

    def __init__(self, routes=None):
        self.routes = list(routes or [])
        self.calls = []

    def add(self, match: str, reply):
        self.routes.append((match, reply))

    def request(
        self,
        method,
        url,
        headers=None,
        params=None,
        data=None,
        allow_redirects=True,
    ):
        self.calls.append(
            {
                "method": method,
                "url": url,
                "headers": headers or {},
                "params": params,
                "data": data,
            }
        )

        target = f"{url} {params!r} {data!r}"
        for match, reply in self.routes:
            if match in target:
                if isinstance(reply, str):
                    reply = (200, reply)
                return FakeRequest(reply)

        return FakeRequest((404, f"no route for {url}"))

    def urls(self):
        return [call["url"] for call in self.calls]


class RecordingCache(ProviderCache):
    def __init__(self, path):
        super().__init__(path)
        self.saves = []

    def save(self, provider, media_id, provider_id, title):
        self.saves.append((provider, media_id, provider_id, title))
        super().save(provider, media_id, provider_id, title)


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def stall():
    return Stall()


@pytest.fixture
def cache(tmp_path):
    return RecordingCache(tmp_path / "provider_cache.ini")
