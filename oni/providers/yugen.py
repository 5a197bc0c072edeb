import re

from oni.core.exceptions import NoLinksFoundError, NotFoundError
from oni.providers.base import BaseProvider
from oni.providers.helpers.mal_backup import fetch_mal_backup, site_url
from oni.providers.models import EpisodeInfo, VideoDescriptor
from oni.utils.quality import normalize_quality_label, wants_specific_quality

YUGEN_EMBED_URL = "https://yugenanime.tv/api/embed/"

EMBED_ID_PATTERN = re.compile(r'id="main-embed" src=".*/e/([^/"]*)/?"')


def watch_url(anime_url: str, episode_number: int) -> str:
    return f"{anime_url.replace('tv/anime', 'tv/watch', 1)}{episode_number}/"


class YugenProvider(BaseProvider):
    name = "yugen"

    async def get_episode_info(
        self, media_id: int, episode_number: int, title: str
    ) -> EpisodeInfo:
        record = await fetch_mal_backup(self.session, media_id, self.name)
        anime_url = site_url(record, "YugenAnime")
        if not anime_url:
            raise NotFoundError(self.name, f"yugen url for media {media_id}")

        page = await self.fetch(watch_url(anime_url, episode_number))

        embed_id = EMBED_ID_PATTERN.search(page)
        if not embed_id:
            raise NotFoundError(self.name, f"embed for episode {episode_number}")

        episode_title = re.search(rf"{episode_number}\s:\s([^<]*)", page)
        return EpisodeInfo(
            episode_handle=embed_id.group(1),
            episode_title=(
                episode_title.group(1).strip()
                if episode_title
                else f"Episode {episode_number}"
            ),
            episode_number=episode_number,
        )

    async def get_video_link(
        self, episode_info: EpisodeInfo, quality: str, sub_or_dub: str
    ) -> VideoDescriptor:
        data = await self.fetch_json(
            YUGEN_EMBED_URL,
            method="POST",
            headers={"X-Requested-With": "XMLHttpRequest"},
            data={
                "id": episode_info.episode_handle,
                "ac": "1" if sub_or_dub == "dub" else "0",
            },
        )

        hls = data.get("hls") if isinstance(data, dict) else None
        if not hls:
            raise NoLinksFoundError(self.name, "no HLS links in embed response")

        video_url = hls[0]
        if wants_specific_quality(quality):
            video_url = video_url.replace(
                ".m3u8", f".{normalize_quality_label(quality)}.m3u8", 1
            )

        return VideoDescriptor(video_url=video_url)
