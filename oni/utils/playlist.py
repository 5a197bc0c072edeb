import re
from typing import Dict
from urllib.parse import urljoin

PLAYLIST_SEPARATOR = "#EXT-X-STREAM-INF:"
RESOLUTION_PATTERN = re.compile(r"RESOLUTION=(\d+)x(\d+)")


def is_master_playlist(text: str) -> bool:
    return PLAYLIST_SEPARATOR in text


def playlist_base_url(playlist_url: str) -> str:
    return playlist_url[: playlist_url.rfind("/") + 1]


def parse_master_playlist(text: str, base_url: str) -> Dict[str, str]:
    """
    Map each variant's height to its URI.

    A RESOLUTION tag is paired with the first following line that is not a
    comment. Relative URIs are resolved against base_url.
    """
    links = {}
    lines = [line.strip() for line in text.splitlines()]
    for i, line in enumerate(lines):
        if not line.startswith("#") or "RESOLUTION=" not in line:
            continue

        match = RESOLUTION_PATTERN.search(line)
        if not match:
            continue

        for uri in lines[i + 1 :]:
            if not uri:
                continue
            if uri.startswith("#"):
                if uri.startswith(PLAYLIST_SEPARATOR):
                    break
                continue
            links[match.group(2)] = urljoin(base_url, uri)
            break

    return links
