import asyncio
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple

import aiohttp
import orjson

from oni.core.exceptions import NoLinksFoundError, NotFoundError, UpstreamError
from oni.core.logger import logger
from oni.core.models import settings
from oni.providers.base import BaseProvider
from oni.providers.cache import ProviderCache
from oni.providers.models import EpisodeInfo, QualityLinkSet, VideoDescriptor
from oni.utils.decoding import (
    decode_source_id,
    extract_first,
    extract_link_pairs,
    extract_source_pairs,
    find_labeled_source,
    format_source_lines,
    normalize_source_blob,
    resolve_source_path,
    unescape_json_slashes,
)
from oni.utils.playlist import (
    is_master_playlist,
    parse_master_playlist,
    playlist_base_url,
)
from oni.utils.quality import normalize_quality_label, select_quality

ALLANIME_BASE = "allanime.day"
ALLANIME_REFERER = "https://allanime.to"
ALLANIME_API_URL = "https://api.allanime.day/api"
# some mirrors reject browser agents
MIRROR_USER_AGENT = "uwu"

SEARCH_QUERY = """query($search: SearchInput, $limit: Int, $page: Int, $translationType: VaildTranslationTypeEnumType, $countryOrigin: VaildCountryOriginEnumType) {
    shows(search: $search, limit: $limit, page: $page, translationType: $translationType, countryOrigin: $countryOrigin) {
        edges {
            _id
            name
            availableEpisodes
            __typename
        }
    }
}"""

EPISODE_QUERY = """query($showId: String!, $translationType: VaildTranslationTypeEnumType!, $episodeString: String!) {
    episode(showId: $showId, translationType: $translationType, episodeString: $episodeString) {
        episodeString
        sourceUrls
    }
}"""

WIXMP_QUALITIES_PATTERN = re.compile(r"/,([^/]*),/mp4")
HLS_URL_PATTERN = re.compile(r'hls","url":"([^"]*)"')
LINK_PATTERN = re.compile(r'link":"([^"]*)"')


class Stage(str, Enum):
    SEARCHING = "SEARCHING"
    SHOW_FOUND = "SHOW_FOUND"
    SOURCES_FETCHED = "SOURCES_FETCHED"
    MIRRORS_RESOLVING = "MIRRORS_RESOLVING"
    LINKS_MERGED = "LINKS_MERGED"
    QUALITY_SELECTED = "QUALITY_SELECTED"
    DONE = "DONE"
    FAILED = "FAILED"


@dataclass(frozen=True)
class Mirror:
    name: str
    label: str  # sourceName as it appears in the episode sources


MIRRORS = (
    Mirror("gogoanime", "Luf-mp4"),
    Mirror("wixmp", "Default"),
    Mirror("dropbox", "Sak"),
    Mirror("wetransfer", "Kir"),
    Mirror("sharepoint", "S-mp4"),
)


def parse_wixmp_links(body: str) -> QualityLinkSet:
    """Expand a repackager template `/,1080p,720p,/mp4` into one link per quality."""
    links = {}
    pairs = extract_link_pairs(body)
    if not pairs:
        return links

    template = pairs[0][0]
    extract_link = template.replace("repackager.wixmp.com/", "").split(".urlset")[0]
    qualities = WIXMP_QUALITIES_PATTERN.search(template)
    if not qualities:
        return links

    for quality in qualities.group(1).split(","):
        if not quality:
            continue
        links[normalize_quality_label(quality)] = re.sub(
            r",[^/]*", quality, extract_link
        )
    return links


def parse_resolution_links(body: str) -> QualityLinkSet:
    links = {}
    for link, resolution in extract_link_pairs(body):
        links[normalize_quality_label(resolution)] = link

    hls = HLS_URL_PATTERN.search(body)
    if hls:
        links["1080"] = unescape_json_slashes(hls.group(1))
    return links


def is_playlist_response(body: str) -> bool:
    link = extract_first(LINK_PATTERN, body) or ""
    if "master.m3u8" in link:
        return True
    return (
        ("vipanicdn" in body or "anifastcdn" in body) and "original.m3u" not in body
    )


def search_variables(title: str, translation_type: str = "sub") -> dict:
    return {
        "search": {
            "allowAdult": bool(settings.SHOW_ADULT_CONTENT),
            "allowUnknown": False,
            "query": title.replace(" ", "+"),
        },
        "limit": 40,
        "page": 1,
        "translationType": translation_type,
        "countryOrigin": "ALL",
    }


class AllAnimeProvider(BaseProvider):
    name = "allanime"

    def __init__(self, session: aiohttp.ClientSession, cache: ProviderCache):
        super().__init__(session, cache)
        self.api_headers = {"Referer": ALLANIME_REFERER}
        self.mirror_headers = {
            "Referer": ALLANIME_REFERER,
            "User-Agent": MIRROR_USER_AGENT,
        }

    def _stage(self, stage: Stage, detail: str = ""):
        logger.log("PROVIDER", f"allanime {stage.value}{f': {detail}' if detail else ''}")

    async def _graphql(self, query: str, variables: dict):
        params = {
            "variables": orjson.dumps(variables).decode("utf-8"),
            "query": query,
        }
        return await self.fetch_json(
            ALLANIME_API_URL, headers=self.api_headers, params=params
        )

    async def search_show(self, title: str) -> Tuple[str, str]:
        self._stage(Stage.SEARCHING, title)
        data = await self._graphql(SEARCH_QUERY, search_variables(title))
        try:
            edges = data["data"]["shows"]["edges"]
        except (KeyError, TypeError) as e:
            raise UpstreamError(self.name, f"unexpected search response: {e}") from e

        if not edges:
            raise NotFoundError(self.name, f'show "{title}"')

        # first result is taken as-is, there is no ranking
        show = edges[0]
        self._stage(Stage.SHOW_FOUND, f"{show.get('name')} ({show['_id']})")
        return show["_id"], show.get("name") or title

    async def get_episode_info(
        self, media_id: int, episode_number: int, title: str
    ) -> EpisodeInfo:
        cached = self.load_cached(media_id)
        if cached is not None:
            return EpisodeInfo(
                episode_handle=str(episode_number),
                episode_title=f"Episode {episode_number}",
                internal_show_id=cached.provider_id,
                episode_number=episode_number,
                from_cache=True,
            )

        show_id, _ = await self.search_show(title)
        return EpisodeInfo(
            episode_handle=str(episode_number),
            episode_title=f"Episode {episode_number}",
            internal_show_id=show_id,
            episode_number=episode_number,
        )

    def cache_value(self, episode_info: EpisodeInfo):
        return episode_info.internal_show_id

    async def fetch_sources(self, show_id: str, episode: str, sub_or_dub: str) -> str:
        data = await self._graphql(
            EPISODE_QUERY,
            {
                "showId": show_id,
                "translationType": sub_or_dub,
                "episodeString": episode,
            },
        )
        try:
            source_urls = data["data"]["episode"]["sourceUrls"]
        except (KeyError, TypeError):
            source_urls = None

        if not source_urls:
            raise NoLinksFoundError(
                self.name, "episode may not exist or source URLs are empty"
            )

        self._stage(Stage.SOURCES_FETCHED, f"{len(source_urls)} sources")
        return orjson.dumps(source_urls).decode("utf-8")

    def mirror_source_lines(self, source_blob: str) -> str:
        pairs = extract_source_pairs(normalize_source_blob(source_blob))
        if not pairs:
            raise NoLinksFoundError(self.name, "no encoded sources in response")
        return format_source_lines(pairs)

    async def fetch_mirror_links(self, path: str) -> QualityLinkSet:
        url = f"https://{ALLANIME_BASE}{path}"
        body = await self.fetch(url, headers=self.mirror_headers)

        if "repackager.wixmp.com" in body:
            return parse_wixmp_links(body)

        if is_playlist_response(body):
            playlist_url = unescape_json_slashes(extract_first(LINK_PATTERN, body) or "")
            if not playlist_url:
                return {}
            playlist = await self.fetch(playlist_url, headers=self.mirror_headers)
            if not is_master_playlist(playlist):
                # single rendition, the playlist itself is the stream
                return {"hls": playlist_url}
            return parse_master_playlist(playlist, playlist_base_url(playlist_url))

        return parse_resolution_links(body)

    async def resolve_mirror(self, mirror: Mirror, source_lines: str) -> QualityLinkSet:
        """One concurrent branch; any failure is an empty contribution."""
        encoded = find_labeled_source(source_lines, mirror.label)
        if not encoded:
            logger.debug(f"allanime mirror {mirror.name} not offered for this episode")
            return {}

        try:
            path = resolve_source_path(decode_source_id(encoded))
            fetched = await self.fetch_mirror_links(path)
        except Exception as e:
            logger.log("PROVIDER", f"allanime mirror {mirror.name} unavailable: {e}")
            return {}

        links = {quality: url for quality, url in fetched.items() if url.strip()}
        logger.debug(f"allanime mirror {mirror.name} returned {len(links)} links")
        return links

    async def collect_links(self, source_lines: str) -> QualityLinkSet:
        self._stage(Stage.MIRRORS_RESOLVING, f"{len(MIRRORS)} mirrors")
        results: List[Dict[str, str]] = await asyncio.gather(
            *(self.resolve_mirror(mirror, source_lines) for mirror in MIRRORS)
        )

        links = {}
        for mirror_links in results:
            links.update(mirror_links)

        if not links:
            raise NoLinksFoundError(self.name, "all mirrors failed")

        self._stage(Stage.LINKS_MERGED, ", ".join(sorted(links)))
        return links

    async def get_video_link(
        self, episode_info: EpisodeInfo, quality: str, sub_or_dub: str
    ) -> VideoDescriptor:
        if not episode_info.internal_show_id:
            raise NotFoundError(self.name, "show id")

        try:
            source_blob = await self.fetch_sources(
                episode_info.internal_show_id,
                episode_info.episode_handle,
                sub_or_dub or "sub",
            )
            links = await self.collect_links(self.mirror_source_lines(source_blob))
        except Exception as e:
            self._stage(Stage.FAILED, str(e))
            raise

        video_url = select_quality(links, quality)
        self._stage(Stage.QUALITY_SELECTED, video_url)

        video = VideoDescriptor(video_url=video_url, referer=ALLANIME_REFERER)
        self._stage(Stage.DONE)
        return video
