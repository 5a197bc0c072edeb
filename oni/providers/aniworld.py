import re
from typing import Optional

from oni.core.exceptions import NoLinksFoundError, NotFoundError
from oni.providers.base import BaseProvider
from oni.providers.helpers.mal_backup import backup_title, fetch_mal_backup
from oni.providers.models import EpisodeInfo, VideoDescriptor

ANIWORLD_BASE = "https://aniworld.to"

EPISODE_HREF_PATTERN = re.compile(r'href="([^"]*/episode-[0-9]+)"')
REDIRECT_PATTERN = re.compile(r'href="(/redirect/[^"]*)"')
M3U8_PATTERN = re.compile(r"[\"'](https?://[^\"']*\.m3u8[^\"']*)[\"']")


def episode_href(html: str, episode_number: int) -> Optional[str]:
    """Href of the requested episode, falling back to the first one listed."""
    exact = re.search(rf'href="([^"]*/episode-{episode_number})"', html)
    if exact:
        return exact.group(1)
    first = EPISODE_HREF_PATTERN.search(html)
    if first:
        return first.group(1)
    return None


class AniWorldProvider(BaseProvider):
    name = "aniworld"

    def cache_value(self, episode_info: EpisodeInfo):
        return episode_info.internal_show_id

    async def get_episode_info(
        self, media_id: int, episode_number: int, title: str
    ) -> EpisodeInfo:
        cached = self.load_cached(media_id)
        if cached is not None:
            return EpisodeInfo(
                episode_handle=cached.provider_id,
                episode_title=f"Episode {episode_number}",
                internal_show_id=cached.provider_id,
                episode_number=episode_number,
                from_cache=True,
            )

        record = await fetch_mal_backup(self.session, media_id, self.name)
        search_title = backup_title(record) or title

        results = await self.fetch_json(
            f"{ANIWORLD_BASE}/ajax/search",
            method="POST",
            data={"keyword": search_title},
        )
        links = [
            result["link"]
            for result in results or []
            if isinstance(result, dict) and result.get("link")
        ]
        if not links:
            raise NotFoundError(self.name, f'show "{search_title}"')

        return EpisodeInfo(
            episode_handle=links[0],
            episode_title=f"Episode {episode_number}",
            internal_show_id=links[0],
            episode_number=episode_number,
        )

    async def get_video_link(
        self, episode_info: EpisodeInfo, quality: str, sub_or_dub: str
    ) -> VideoDescriptor:
        show_page = await self.fetch(f"{ANIWORLD_BASE}{episode_info.episode_handle}")
        href = episode_href(show_page, episode_info.episode_number or 1)
        if not href:
            raise NotFoundError(self.name, f"episode {episode_info.episode_number}")

        episode_page = await self.fetch(f"{ANIWORLD_BASE}{href}")
        redirect = REDIRECT_PATTERN.search(episode_page)
        if not redirect:
            raise NotFoundError(self.name, "hoster redirect")

        hoster_page = await self.fetch(f"{ANIWORLD_BASE}{redirect.group(1)}")
        m3u8 = M3U8_PATTERN.search(hoster_page)
        if not m3u8:
            raise NoLinksFoundError(self.name, "no m3u8 on hoster page")

        return VideoDescriptor(video_url=m3u8.group(1), referer=ANIWORLD_BASE)
