import re
from typing import List, Optional, Tuple
from urllib.parse import quote_plus

from oni.core.exceptions import (
    InvalidCacheEntryError,
    NoLinksFoundError,
    NotFoundError,
    UpstreamError,
)
from oni.core.logger import logger
from oni.providers.base import BaseProvider
from oni.providers.helpers.mal_backup import backup_title, fetch_mal_backup
from oni.providers.models import EpisodeInfo, VideoDescriptor
from oni.utils.decoding import decode_trash_base64
from oni.utils.quality import select_ordered_quality

HDREZKA_BASE = "https://hdrezka.website"
HDREZKA_REFERER = "https://hdrezka.website/"

SEARCH_RESULT_PATTERN = re.compile(
    r'src="([^"]*)".*?<a href="https://hdrezka\.website/([^/"]+)/([^/"]+)/([^/"]+)\.html">([^<]*)</a>.*?<div>([0-9]*)',
    re.DOTALL,
)
VARIANT_PATTERN = re.compile(r"\[([^\]]+)\]([^,\[]+)")
SEASON_PATTERN = re.compile(r'data-tab_id="([0-9]+)">')


def parse_search_result(html: str) -> Optional[Tuple[str, str, str]]:
    """First search hit as (media kind, `category/id-slug` handle, title)."""
    match = SEARCH_RESULT_PATTERN.search(html)
    if not match:
        return None
    _, kind, category, slug, title, _ = match.groups()
    return kind, f"{category}/{slug}", title


def page_id(handle: str) -> Optional[str]:
    match = re.match(r"([0-9]+)", handle.rsplit("/", 1)[-1])
    if not match:
        return None
    return match.group(1)


def parse_variants(decoded: str) -> List[Tuple[str, str]]:
    return [
        (label.strip(), url.strip()) for label, url in VARIANT_PATTERN.findall(decoded)
    ]


def parse_subtitles(subtitle) -> List[str]:
    if not subtitle or not isinstance(subtitle, str):
        return []
    variants = parse_variants(subtitle)
    if variants:
        return [url for _, url in variants]
    return [part.strip('" ') for part in subtitle.strip("[]").split(",") if part.strip('" ')]


class HDRezkaProvider(BaseProvider):
    name = "hdrezka"

    def __init__(self, session, cache):
        super().__init__(session, cache)
        self.headers = {"Referer": HDREZKA_REFERER}

    def cache_value(self, episode_info: EpisodeInfo):
        return f"{episode_info.media_kind}:{episode_info.episode_handle}"

    def _from_cache(self, media_id: int, episode_number: int) -> Optional[EpisodeInfo]:
        cached = self.load_cached(media_id)
        if cached is None:
            return None

        kind, sep, handle = cached.provider_id.partition(":")
        if not sep or not kind or not handle:
            raise InvalidCacheEntryError(
                self.name, media_id, cached.provider_id, "expected kind:handle"
            )

        return EpisodeInfo(
            episode_handle=handle,
            episode_title=f"Episode {episode_number}",
            media_kind=kind,
            internal_show_id=page_id(handle),
            episode_number=episode_number,
            from_cache=True,
        )

    async def get_episode_info(
        self, media_id: int, episode_number: int, title: str
    ) -> EpisodeInfo:
        cached = self._from_cache(media_id, episode_number)
        if cached is not None:
            return cached

        record = await fetch_mal_backup(self.session, media_id, self.name)
        search_title = backup_title(record) or title
        if not search_title:
            raise NotFoundError(self.name, f"title for media {media_id}")

        html = await self.fetch(
            f"{HDREZKA_BASE}/search/?do=search&subaction=search&q={quote_plus(search_title)}",
            headers=self.headers,
        )
        result = parse_search_result(html)
        if result is None:
            raise NotFoundError(self.name, f'show "{search_title}"')

        kind, handle, found_title = result
        logger.log("PROVIDER", f"hdrezka matched {found_title} ({kind}/{handle})")
        return EpisodeInfo(
            episode_handle=handle,
            episode_title=f"Episode {episode_number}",
            media_kind=kind,
            internal_show_id=page_id(handle),
            episode_number=episode_number,
        )

    async def get_video_link(
        self, episode_info: EpisodeInfo, quality: str, sub_or_dub: str
    ) -> VideoDescriptor:
        films = episode_info.media_kind == "films"
        page = await self.fetch(
            f"{HDREZKA_BASE}/{episode_info.media_kind}/{episode_info.episode_handle}.html",
            headers=self.headers,
        )

        init_call = "initCDNMoviesEvents" if films else "initCDNSeriesEvents"
        init = re.search(rf"{init_call}\(([0-9]+), ([0-9]+),", page)
        post_id = init.group(1) if init else episode_info.internal_show_id
        if not post_id:
            raise NotFoundError(self.name, "player id")

        form = {
            "id": post_id,
            "translator_id": init.group(2) if init else "",
            "action": "get_movie" if films else "get_stream",
        }
        if not films:
            season = SEASON_PATTERN.search(page)
            form["season"] = season.group(1) if season else "1"
            form["episode"] = str(episode_info.episode_number or 1)

        data = await self.fetch_json(
            f"{HDREZKA_BASE}/ajax/get_cdn_series/",
            method="POST",
            headers={**self.headers, "X-Requested-With": "XMLHttpRequest"},
            data=form,
        )
        if not isinstance(data, dict) or not data.get("success") or not data.get("url"):
            raise UpstreamError(self.name, "player refused the stream request")

        try:
            decoded = decode_trash_base64(data["url"])
        except ValueError as e:
            raise UpstreamError(self.name, f"cannot decode stream list: {e}") from e

        variants = parse_variants(decoded)
        if not variants:
            raise NoLinksFoundError(self.name, "no variants in decoded stream list")

        video_url = select_ordered_quality(variants, quality).split(" or ")[0].strip()
        return VideoDescriptor(
            video_url=video_url,
            subtitle_urls=parse_subtitles(data.get("subtitle")),
            referer=HDREZKA_REFERER,
        )
