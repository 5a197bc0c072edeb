import re
from typing import Dict, List, Optional

from oni.core.exceptions import NotFoundError, UpstreamError
from oni.core.logger import logger
from oni.providers.base import BaseProvider
from oni.providers.helpers.mal_backup import fetch_mal_backup, site_url
from oni.providers.models import EpisodeInfo, VideoDescriptor
from oni.utils.decoding import unescape_json_slashes
from oni.utils.quality import normalize_quality_label, wants_specific_quality

HIANIME_BASE = "https://hianime.to"

ANCHOR_PATTERN = re.compile(r"<a\s[^>]*>")
ATTRIBUTE_PATTERN = re.compile(r'([\w-]+)="([^"]*)"')
EMBED_PATTERN = re.compile(r"(.*)/embed-([246])/e-([0-9])/(.*)\?k=1")
VIDEO_PATTERN = re.compile(r'"file":"([^"]*\.m3u8)"')
SUBTITLE_PATTERN = re.compile(r'"file":"([^"]*\.vtt)"')


def zoro_id(record: str) -> Optional[str]:
    url = site_url(record, "Zoro")
    if not url:
        return None
    match = re.search(r"-([0-9]+)/?$", url)
    if not match:
        return None
    return match.group(1)


def episode_anchors(html: str) -> List[Dict[str, str]]:
    return [dict(ATTRIBUTE_PATTERN.findall(tag)) for tag in ANCHOR_PATTERN.findall(html)]


def find_episode(html: str, episode_number: int) -> Optional[Dict[str, str]]:
    for attrs in episode_anchors(html):
        if attrs.get("data-number") == str(episode_number) and attrs.get("data-id"):
            return attrs
    return None


def find_server_id(html: str, sub_or_dub: str) -> Optional[str]:
    for kind in (sub_or_dub, "raw"):
        match = re.search(rf'data-type="{re.escape(kind)}" data-id="([0-9]*)"', html)
        if match and match.group(1):
            return match.group(1)
    return None


class AniWatchProvider(BaseProvider):
    name = "aniwatch"

    async def _ajax_html(self, url: str) -> str:
        data = await self.fetch_json(url, headers={"X-Requested-With": "XMLHttpRequest"})
        html = data.get("html") if isinstance(data, dict) else None
        if not html:
            raise UpstreamError(self.name, "response has no html field", url=url)
        return html

    async def get_episode_info(
        self, media_id: int, episode_number: int, title: str
    ) -> EpisodeInfo:
        record = await fetch_mal_backup(self.session, media_id, self.name)
        show_id = zoro_id(record)
        if not show_id:
            raise NotFoundError(self.name, f"aniwatch id for media {media_id}")

        html = await self._ajax_html(f"{HIANIME_BASE}/ajax/v2/episode/list/{show_id}")
        episode = find_episode(html, episode_number)
        if episode is None:
            raise NotFoundError(self.name, f"episode {episode_number}")

        return EpisodeInfo(
            episode_handle=episode["data-id"],
            episode_title=episode.get("title") or f"Episode {episode_number}",
            internal_show_id=show_id,
            episode_number=episode_number,
        )

    async def get_video_link(
        self, episode_info: EpisodeInfo, quality: str, sub_or_dub: str
    ) -> VideoDescriptor:
        servers = await self._ajax_html(
            f"{HIANIME_BASE}/ajax/v2/episode/servers?episodeId={episode_info.episode_handle}"
        )
        server_id = find_server_id(servers, sub_or_dub or "sub")
        if not server_id:
            raise NotFoundError(self.name, "streaming server")

        sources = await self.fetch_json(
            f"{HIANIME_BASE}/ajax/v2/episode/sources?id={server_id}"
        )
        embed_link = sources.get("link", "") if isinstance(sources, dict) else ""
        embed = EMBED_PATTERN.search(embed_link)
        if not embed:
            raise UpstreamError(self.name, f"unrecognised embed link {embed_link!r}")

        provider_link, embed_type, e_number, source_id = embed.groups()
        body = unescape_json_slashes(
            await self.fetch(
                f"{provider_link}/embed-{embed_type}/ajax/e-{e_number}/getSources?id={source_id}",
                headers={"X-Requested-With": "XMLHttpRequest"},
            )
        )

        video = VIDEO_PATTERN.search(body)
        if not video:
            raise NotFoundError(self.name, "video link")

        video_url = video.group(1)
        if wants_specific_quality(quality):
            video_url = video_url.replace(
                "/playlist.m3u8", f"/{normalize_quality_label(quality)}/index.m3u8", 1
            )

        subtitles = SUBTITLE_PATTERN.findall(body)
        logger.log(
            "PROVIDER", f"aniwatch resolved {video_url} with {len(subtitles)} subtitles"
        )
        return VideoDescriptor(video_url=video_url, subtitle_urls=subtitles)
