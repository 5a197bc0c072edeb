import re
from typing import Optional

from oni.core.exceptions import (
    NotFoundError,
    ProviderNotImplementedError,
    UpstreamError,
)
from oni.providers.base import BaseProvider
from oni.providers.helpers.mal_backup import fetch_mal_backup, site_url
from oni.providers.models import EpisodeInfo, VideoDescriptor

CRUNCHYROLL_BASE = "https://www.crunchyroll.com"
# public client id of the web player, "cr_web:"
ANONYMOUS_AUTHORIZATION = "Basic Y3Jfd2ViOg=="


def series_id(url: str) -> Optional[str]:
    match = re.search(r"/series/([^/]+)", url) or re.search(r".*/([^/]*)/.*", url)
    if not match:
        return None
    return match.group(1)


def first_item(data) -> Optional[dict]:
    items = data.get("data") if isinstance(data, dict) else None
    if not items:
        return None
    return items[0]


class CrunchyrollProvider(BaseProvider):
    """Episode lookup only; streams are DRM protected."""

    name = "crunchyroll"

    async def access_token(self) -> str:
        data = await self.fetch_json(
            f"{CRUNCHYROLL_BASE}/auth/v1/token",
            method="POST",
            headers={"Authorization": ANONYMOUS_AUTHORIZATION},
            data={"grant_type": "client_id", "scope": "offline_access"},
        )
        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise UpstreamError(self.name, "no access token in auth response")
        return token

    async def get_episode_info(
        self, media_id: int, episode_number: int, title: str
    ) -> EpisodeInfo:
        record = await fetch_mal_backup(self.session, media_id, self.name)
        url = site_url(record, "Crunchyroll")
        series = series_id(url) if url else None
        if not series:
            raise NotFoundError(self.name, f"crunchyroll series for media {media_id}")

        headers = {"Authorization": f"Bearer {await self.access_token()}"}

        seasons = await self.fetch_json(
            f"{CRUNCHYROLL_BASE}/content/v2/cms/series/{series}/seasons",
            headers=headers,
        )
        season = first_item(seasons)
        if not season or not season.get("id"):
            raise NotFoundError(self.name, f"season of series {series}")

        episodes = await self.fetch_json(
            f"{CRUNCHYROLL_BASE}/content/v2/cms/seasons/{season['id']}/episodes",
            headers=headers,
        )
        items = episodes.get("data") if isinstance(episodes, dict) else None
        if not items or episode_number < 1 or len(items) < episode_number:
            raise NotFoundError(self.name, f"episode {episode_number}")

        episode = items[episode_number - 1]
        return EpisodeInfo(
            episode_handle=episode["id"],
            episode_title=episode.get("title") or f"Episode {episode_number}",
            internal_show_id=series,
            episode_number=episode_number,
        )

    async def get_video_link(
        self, episode_info: EpisodeInfo, quality: str, sub_or_dub: str
    ) -> VideoDescriptor:
        raise ProviderNotImplementedError(self.name, "DRM protected playback")
