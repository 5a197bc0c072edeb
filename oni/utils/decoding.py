import base64
import binascii
import re
from itertools import product
from typing import List, Optional, Tuple

# Two-character hex tokens used by allanime to obfuscate mirror paths.
SOURCE_ID_TABLE = {
    "01": "9",
    "08": "0",
    "05": "=",
    "0a": "2",
    "0b": "3",
    "0c": "4",
    "07": "?",
    "00": "8",
    "5c": "d",
    "0f": "7",
    "5e": "f",
    "17": "/",
    "54": "l",
    "09": "1",
    "48": "p",
    "4f": "w",
    "0e": "6",
    "5b": "c",
    "5d": "e",
    "0d": "5",
    "53": "k",
    "1e": "&",
    "5a": "b",
    "59": "a",
    "4a": "r",
    "4c": "t",
    "4e": "v",
    "57": "o",
    "51": "i",
}

_SOURCE_ID_REVERSE = {char: token for token, char in SOURCE_ID_TABLE.items()}

CLOCK_PATTERN = re.compile(r"/clock(?!\.json)")
SOURCE_PAIR_PATTERN = re.compile(r'sourceUrl":"--([^"]*)".*sourceName":"([^"]*)"')
LINK_RESOLUTION_PATTERN = re.compile(r'link":"([^"]*)".*resolutionStr":"([^"]*)"')

TRASH_SYMBOLS = "!@#^$"


def decode_source_id(encoded: str, table: dict = None) -> str:
    """
    Decode an obfuscated mirror id two characters at a time.

    Tokens missing from the table are copied through unchanged. A trailing
    unpaired character is dropped.
    """
    table = SOURCE_ID_TABLE if table is None else table
    encoded = encoded.strip()
    decoded = []
    for i in range(0, len(encoded) - 1, 2):
        token = encoded[i : i + 2]
        decoded.append(table.get(token.lower(), token))
    return "".join(decoded)


def encode_source_id(path: str) -> str:
    try:
        return "".join(_SOURCE_ID_REVERSE[char] for char in path)
    except KeyError as e:
        raise ValueError(f"character {e.args[0]!r} has no source id token") from e


def resolve_source_path(decoded: str) -> str:
    return CLOCK_PATTERN.sub("/clock.json", decoded)


# Source blob normalisation, applied in order by normalize_source_blob.


def braces_to_newlines(text: str) -> str:
    return text.replace("{", "\n").replace("}", "\n")


def unescape_unicode_slash(text: str) -> str:
    return text.replace("\\u002F", "/").replace("\\u002f", "/")


def strip_backslashes(text: str) -> str:
    return text.replace("\\", "")


SOURCE_BLOB_TRANSFORMS = (braces_to_newlines, unescape_unicode_slash, strip_backslashes)


def normalize_source_blob(blob: str) -> str:
    for transform in SOURCE_BLOB_TRANSFORMS:
        blob = transform(blob)
    return blob


def extract_source_pairs(text: str) -> List[Tuple[str, str]]:
    """Return (source name, encoded id) pairs from a normalised source blob."""
    pairs = []
    for line in text.splitlines():
        match = SOURCE_PAIR_PATTERN.search(line)
        if match:
            pairs.append((match.group(2), match.group(1)))
    return pairs


def format_source_lines(pairs: List[Tuple[str, str]]) -> str:
    return "".join(f"{name} :{encoded}\n" for name, encoded in pairs)


def find_labeled_source(source_lines: str, label: str) -> Optional[str]:
    match = re.search(
        rf"^{re.escape(label)}\s*:(.+)$", source_lines, flags=re.MULTILINE
    )
    if not match:
        return None
    return match.group(1).strip() or None


def unescape_json_slashes(text: str) -> str:
    return text.replace("\\/", "/")


def extract_link_pairs(body: str) -> List[Tuple[str, str]]:
    """Return (link, resolutionStr) pairs, one per record of a `links` list."""
    pairs = []
    for chunk in body.replace("},{", "\n").splitlines():
        match = LINK_RESOLUTION_PATTERN.search(chunk)
        if match:
            pairs.append((unescape_json_slashes(match.group(1)), match.group(2)))
    return pairs


def extract_first(pattern, text: str, group: int = 1) -> Optional[str]:
    match = re.search(pattern, text)
    if not match:
        return None
    return match.group(group)


def decode_base64(data: str) -> str:
    data = data.strip()
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.b64decode(padded).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"invalid base64 payload: {e}") from e


def trash_codes() -> List[str]:
    codes = []
    for size in (2, 3):
        for combo in product(TRASH_SYMBOLS, repeat=size):
            codes.append(base64.b64encode("".join(combo).encode()).decode())
    return codes


TRASH_CODES = trash_codes()


def decode_trash_base64(encoded: str) -> str:
    """Decode a `#h`-prefixed base64 stream padded with base64 junk segments."""
    if encoded.startswith("#h"):
        encoded = encoded[2:]
    cleaned = "".join(encoded.split("//_//"))
    for code in TRASH_CODES:
        cleaned = cleaned.replace(code, "")
    return decode_base64(cleaned.replace("_", ""))
