import re
from typing import Optional

import aiohttp

from oni.utils.network import fetch_text

MAL_BACKUP_URL = "https://raw.githubusercontent.com/bal-mackup/mal-backup/master/anilist/anime/{media_id}.json"

TITLE_PATTERN = re.compile(r'"title":\s*"([^"]*)"')


def mal_backup_url(media_id: int) -> str:
    return MAL_BACKUP_URL.format(media_id=media_id)


async def fetch_mal_backup(
    session: aiohttp.ClientSession, media_id: int, provider: str
) -> str:
    """Raw mal-backup record mapping an AniList id to per-site pages."""
    return await fetch_text(session, mal_backup_url(media_id), provider=provider)


def site_url(record: str, site: str) -> Optional[str]:
    match = re.search(rf'"{re.escape(site)}".*?"url":\s*"([^"]*)"', record, re.DOTALL)
    if not match:
        return None
    return match.group(1)


def backup_title(record: str) -> Optional[str]:
    match = TITLE_PATTERN.search(record)
    if not match:
        return None
    return match.group(1)
