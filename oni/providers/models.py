from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

# quality label ("1080", "best", ...) -> candidate url
QualityLinkSet = Dict[str, str]


class EpisodeInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    episode_handle: str  # opaque, provider specific
    episode_title: str
    media_kind: Optional[str] = None  # "series" / "films" on hdrezka
    internal_show_id: Optional[str] = None
    episode_number: Optional[int] = None
    from_cache: bool = False


class VideoDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    video_url: str
    subtitle_urls: List[str] = []
    referer: Optional[str] = None

    @field_validator("video_url")
    def video_url_not_empty(cls, v):
        if not v or not v.strip():
            raise ValueError("video_url must not be empty")
        return v.strip()


@dataclass
class ProviderCacheEntry:
    provider_id: str
    title: str
    last_used: datetime
