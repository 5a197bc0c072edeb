import re
from typing import Dict, List, Optional, Tuple

QUALITY_NUMBER_PATTERN = re.compile(r"^\s*(\d+)")
BEST_MARKERS = ("", "best")
WORST_MARKERS = ("worst",)


def normalize_quality_label(label: str) -> str:
    label = (label or "").strip()
    match = re.fullmatch(r"(\d+)[pP]", label)
    if match:
        return match.group(1)
    return label


def quality_value(label: str) -> int:
    match = QUALITY_NUMBER_PATTERN.match(label or "")
    if not match:
        return 0
    return int(match.group(1))


def select_quality(links: Dict[str, str], preferred: Optional[str]) -> Optional[str]:
    """
    Exact label match, otherwise the numerically highest label.

    There is deliberately no nearest-quality matching.
    """
    if not links:
        return None

    preferred = preferred or ""
    if preferred in links:
        return links[preferred]

    normalized = normalize_quality_label(preferred)
    if normalized and normalized in links:
        return links[normalized]

    best = sorted(links, key=quality_value, reverse=True)[0]
    return links[best]


def select_ordered_quality(
    variants: List[Tuple[str, str]], preferred: Optional[str]
) -> Optional[str]:
    """Pick from variants listed worst to best, as hdrezka orders them."""
    if not variants:
        return None

    preferred = (preferred or "").strip().lower()
    if preferred in BEST_MARKERS:
        return variants[-1][1]
    if preferred in WORST_MARKERS:
        return variants[0][1]

    for label, url in variants:
        if preferred in label.lower():
            return url

    return variants[-1][1]


def wants_specific_quality(preferred: Optional[str]) -> bool:
    """True when preferred names a concrete quality rather than best/worst."""
    preferred = (preferred or "").strip().lower()
    return preferred not in BEST_MARKERS and preferred not in WORST_MARKERS
