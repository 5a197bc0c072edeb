from configparser import ConfigParser, Error as ConfigParserError
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

from oni.core.exceptions import InvalidCacheEntryError
from oni.core.logger import logger
from oni.providers.models import ProviderCacheEntry

LEGACY_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"


def format_timestamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_timestamp(value: str) -> datetime:
    """RFC3339 first, then the timezone-less legacy format (read as UTC)."""
    rfc3339 = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
    try:
        parsed = datetime.fromisoformat(rfc3339)
        if parsed.tzinfo is not None:
            return parsed
    except ValueError:
        pass

    return datetime.strptime(value, LEGACY_TIMESTAMP_FORMAT).replace(
        tzinfo=timezone.utc
    )


def clean_title(title: str) -> str:
    """Keep a title inside its field of the `id|title|last_used` row."""
    return " ".join((title or "").replace("|", "/").split())


class ProviderCache:
    """
    Persisted (provider, media id) -> provider internal id mapping.

    One INI section per provider, keyed by the tracked media id, with values
    stored as `provider_id|title|last_used`. Every write rewrites the whole
    file, so two processes saving at once keep only the last writer's view.
    Entries never expire on their own.
    """

    def __init__(self, path):
        self.path = Path(path)
        self._parser: Optional[ConfigParser] = None

    def _new_parser(self) -> ConfigParser:
        parser = ConfigParser(interpolation=None)
        parser.optionxform = str
        return parser

    @property
    def parser(self) -> ConfigParser:
        if self._parser is None:
            self._parser = self._new_parser()
            if self.path.exists():
                try:
                    self._parser.read(self.path, encoding="utf-8")
                except ConfigParserError as e:
                    # unreadable file is treated as empty and rewritten on next save
                    logger.warning(f"Ignoring unreadable provider cache {self.path}: {e}")
                    self._parser = self._new_parser()
        return self._parser

    def _persist(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            self.parser.write(f)

    def load(self, provider: str, media_id: int) -> Optional[ProviderCacheEntry]:
        key = str(media_id)
        if not self.parser.has_section(provider):
            return None

        value = self.parser.get(provider, key, fallback="")
        if not value:
            return None

        parts = value.split("|")
        if len(parts) != 3:
            raise InvalidCacheEntryError(
                provider, media_id, value, f"expected 3 fields, got {len(parts)}"
            )

        provider_id, title, last_used = parts
        try:
            timestamp = parse_timestamp(last_used)
        except ValueError as e:
            raise InvalidCacheEntryError(
                provider, media_id, value, f"invalid timestamp format: {e}"
            ) from e

        logger.log("CACHE", f"Cache hit for {provider}/{media_id}: {provider_id}")
        return ProviderCacheEntry(
            provider_id=provider_id, title=title, last_used=timestamp
        )

    def save(self, provider: str, media_id: int, provider_id: str, title: str):
        if not self.parser.has_section(provider):
            self.parser.add_section(provider)

        timestamp = format_timestamp(datetime.now(timezone.utc))
        value = f"{provider_id}|{clean_title(title)}|{timestamp}"
        self.parser.set(provider, str(media_id), value)
        self._persist()
        logger.log("CACHE", f"Cached {provider}/{media_id} -> {provider_id}")

    def clear(self, provider: str, media_id: int) -> bool:
        if not self.parser.has_section(provider):
            return False

        removed = self.parser.remove_option(provider, str(media_id))
        self._persist()
        if removed:
            logger.log("CACHE", f"Cleared cache entry {provider}/{media_id}")
        return removed

    def clear_all(self):
        self.path.unlink(missing_ok=True)
        self._parser = self._new_parser()
        logger.log("CACHE", f"Removed provider cache file {self.path}")

    def entries(self, provider: str = None) -> List[Tuple[str, str, str]]:
        rows = []
        for section in self.parser.sections():
            if provider and section != provider:
                continue
            for media_id, value in self.parser.items(section):
                rows.append((section, media_id, value))
        return rows
