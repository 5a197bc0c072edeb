from abc import ABC, abstractmethod
from typing import Optional

import aiohttp

from oni.providers.cache import ProviderCache
from oni.providers.models import EpisodeInfo, VideoDescriptor
from oni.utils.network import fetch_json, fetch_text


class BaseProvider(ABC):
    name: str = None

    def __init__(self, session: aiohttp.ClientSession, cache: ProviderCache):
        self.session = session
        self.cache = cache

    @abstractmethod
    async def get_episode_info(
        self, media_id: int, episode_number: int, title: str
    ) -> EpisodeInfo:
        pass

    @abstractmethod
    async def get_video_link(
        self, episode_info: EpisodeInfo, quality: str, sub_or_dub: str
    ) -> VideoDescriptor:
        pass

    def cache_value(self, episode_info: EpisodeInfo) -> Optional[str]:
        """Value to persist in the provider cache after a successful resolution."""
        return None

    def load_cached(self, media_id: int):
        return self.cache.load(self.name, media_id)

    async def fetch(self, url: str, **kwargs) -> str:
        kwargs.setdefault("provider", self.name)
        return await fetch_text(self.session, url, **kwargs)

    async def fetch_json(self, url: str, **kwargs):
        kwargs.setdefault("provider", self.name)
        return await fetch_json(self.session, url, **kwargs)
