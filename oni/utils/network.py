import asyncio

import aiohttp
import orjson

from oni.core.exceptions import UpstreamError


async def fetch_text(
    session: aiohttp.ClientSession,
    url: str,
    *,
    method: str = "GET",
    headers: dict = None,
    params: dict = None,
    data=None,
    provider: str = "http",
    allow_redirects: bool = True,
) -> str:
    """
    Issue one request and return the raw body.

    Transport errors, timeouts, undecodable bodies and non-2xx statuses are
    raised as UpstreamError.
    Cancellation is left untouched so callers can abort in-flight requests.
    """
    try:
        async with session.request(
            method,
            url,
            headers=headers,
            params=params,
            data=data,
            allow_redirects=allow_redirects,
        ) as response:
            body = await response.text()
            if response.status < 200 or response.status >= 300:
                raise UpstreamError(
                    provider, "unexpected status", url=url, status=response.status
                )
            return body
    except asyncio.TimeoutError as e:
        raise UpstreamError(provider, "request timed out", url=url) from e
    except aiohttp.ClientError as e:
        raise UpstreamError(provider, str(e) or type(e).__name__, url=url) from e
    except UnicodeDecodeError as e:
        raise UpstreamError(provider, f"undecodable response body: {e}", url=url) from e


async def fetch_json(session: aiohttp.ClientSession, url: str, **kwargs):
    body = await fetch_text(session, url, **kwargs)
    try:
        return orjson.loads(body)
    except orjson.JSONDecodeError as e:
        raise UpstreamError(
            kwargs.get("provider", "http"), f"invalid JSON response: {e}", url=url
        ) from e
