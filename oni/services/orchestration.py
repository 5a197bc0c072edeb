import asyncio

import aiohttp

from oni.core.logger import log_provider_error, logger
from oni.core.models import settings
from oni.providers.cache import ProviderCache
from oni.providers.manager import ProviderManager
from oni.providers.models import VideoDescriptor
from oni.utils.http_client import http_client_manager


async def _resolve(
    manager: ProviderManager,
    cache: ProviderCache,
    session: aiohttp.ClientSession,
    media_id: int,
    episode_number: int,
    title: str,
    provider_name: str,
    quality: str,
    sub_or_dub: str,
) -> VideoDescriptor:
    provider = manager.get_provider(provider_name, session, cache)

    step = "episode lookup"
    try:
        info = await provider.get_episode_info(media_id, episode_number, title)
        logger.log(
            "PROVIDER",
            f"{provider.name} episode {episode_number}: {info.episode_title} ({info.episode_handle})",
        )

        step = "link extraction"
        video = await provider.get_video_link(info, quality, sub_or_dub)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        log_provider_error(provider.name, step, media_id, e)
        raise

    # only a fully resolved lookup is worth remembering
    value = None if info.from_cache else provider.cache_value(info)
    if value is not None:
        cache.save(provider.name, media_id, value, title)

    return video


async def resolve_video(
    manager: ProviderManager,
    cache: ProviderCache,
    media_id: int,
    episode_number: int,
    title: str,
    provider_name: str = None,
    quality: str = None,
    sub_or_dub: str = None,
    timeout: float = None,
    session: aiohttp.ClientSession = None,
) -> VideoDescriptor:
    """
    Resolve a tracked episode to a playable stream.

    Looks up the episode with the configured provider, extracts its video
    link and, when the provider searched upstream instead of reading the
    cache, records the provider's internal id for next time. Errors from
    either step are logged and propagated unchanged, so the cache is only
    ever written after a successful resolution.
    """
    provider_name = provider_name or settings.PROVIDER
    quality = quality if quality is not None else settings.QUALITY
    sub_or_dub = sub_or_dub or settings.SUB_OR_DUB
    timeout = timeout if timeout is not None else settings.RESOLVE_TIMEOUT

    if session is None:
        session = await http_client_manager.get_session()

    resolution = _resolve(
        manager,
        cache,
        session,
        media_id,
        episode_number,
        title,
        provider_name,
        quality,
        sub_or_dub,
    )
    if timeout:
        return await asyncio.wait_for(resolution, timeout)
    return await resolution
