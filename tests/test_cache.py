from datetime import datetime, timezone

import pytest

from oni.core.exceptions import InvalidCacheEntryError
from oni.providers.cache import ProviderCache, format_timestamp, parse_timestamp


def test_save_then_load(tmp_path):
    path = tmp_path / "nested" / "provider_cache.ini"
    ProviderCache(path).save("allanime", 21, "ReooPAxPMsHM4KPMY", "One Piece")

    entry = ProviderCache(path).load("allanime", 21)

    assert entry.provider_id == "ReooPAxPMsHM4KPMY"
    assert entry.title == "One Piece"
    assert entry.last_used.tzinfo is not None
    assert ProviderCache(path).load("allanime", 22) is None
    assert ProviderCache(path).load("hdrezka", 21) is None


def test_file_layout(tmp_path):
    path = tmp_path / "provider_cache.ini"
    cache = ProviderCache(path)
    cache.save("hdrezka", 21, "animation:adventures/123-van-pis", "One Piece")

    text = path.read_text(encoding="utf-8")
    assert "[hdrezka]" in text
    assert "21 = animation:adventures/123-van-pis|One Piece|" in text


def test_title_with_separator_round_trips(tmp_path):
    path = tmp_path / "provider_cache.ini"
    ProviderCache(path).save("allanime", 1, "abc", "Fate | Zero\nSeason 2")

    entry = ProviderCache(path).load("allanime", 1)

    assert entry.provider_id == "abc"
    assert entry.title == "Fate / Zero Season 2"


def test_unreadable_file_is_treated_as_empty(tmp_path):
    path = tmp_path / "provider_cache.ini"
    path.write_text("21 = abc|One Piece|2024-03-01T10:20:30Z\n", encoding="utf-8")

    cache = ProviderCache(path)
    assert cache.load("allanime", 21) is None
    assert cache.entries() == []

    cache.save("allanime", 21, "abc", "One Piece")
    assert ProviderCache(path).load("allanime", 21).provider_id == "abc"


def test_duplicate_keys_are_treated_as_empty(tmp_path):
    path = tmp_path / "provider_cache.ini"
    path.write_text(
        "[allanime]\n21 = a|One Piece|2024-03-01T10:20:30Z\n21 = b|One Piece|2024-03-01T10:20:30Z\n",
        encoding="utf-8",
    )

    assert ProviderCache(path).load("allanime", 21) is None


def test_missing_file_is_empty(tmp_path):
    cache = ProviderCache(tmp_path / "absent.ini")
    assert cache.load("allanime", 1) is None
    assert cache.entries() == []


def test_wrong_field_count_is_invalid(tmp_path):
    path = tmp_path / "provider_cache.ini"
    path.write_text("[allanime]\n21 = abc|One Piece\n", encoding="utf-8")

    with pytest.raises(InvalidCacheEntryError) as exc:
        ProviderCache(path).load("allanime", 21)

    assert exc.value.media_id == 21
    assert "oni cache clear --provider allanime --media-id 21" in exc.value.display_message


def test_bad_timestamp_is_invalid(tmp_path):
    path = tmp_path / "provider_cache.ini"
    path.write_text("[allanime]\n21 = abc|One Piece|yesterday\n", encoding="utf-8")

    with pytest.raises(InvalidCacheEntryError):
        ProviderCache(path).load("allanime", 21)


def test_legacy_timestamp_is_read_as_utc(tmp_path):
    path = tmp_path / "provider_cache.ini"
    path.write_text(
        "[allanime]\n21 = abc|One Piece|2024-03-01T10:20:30\n", encoding="utf-8"
    )

    entry = ProviderCache(path).load("allanime", 21)

    assert entry.last_used == datetime(2024, 3, 1, 10, 20, 30, tzinfo=timezone.utc)


def test_timestamps():
    moment = datetime(2024, 3, 1, 10, 20, 30, tzinfo=timezone.utc)
    assert format_timestamp(moment) == "2024-03-01T10:20:30Z"
    assert parse_timestamp("2024-03-01T10:20:30Z") == moment
    assert parse_timestamp("2024-03-01T12:20:30+02:00") == moment


def test_clear_single_entry(tmp_path):
    path = tmp_path / "provider_cache.ini"
    cache = ProviderCache(path)
    cache.save("allanime", 21, "a", "One Piece")
    cache.save("allanime", 22, "b", "Naruto")

    assert cache.clear("allanime", 21)
    assert not cache.clear("allanime", 21)
    assert not cache.clear("yugen", 21)

    reloaded = ProviderCache(path)
    assert reloaded.load("allanime", 21) is None
    assert reloaded.load("allanime", 22).provider_id == "b"


def test_clear_all_removes_file(tmp_path):
    path = tmp_path / "provider_cache.ini"
    cache = ProviderCache(path)
    cache.save("allanime", 21, "a", "One Piece")

    cache.clear_all()

    assert not path.exists()
    assert cache.load("allanime", 21) is None
    cache.clear_all()


def test_entries_filter_by_provider(tmp_path):
    cache = ProviderCache(tmp_path / "provider_cache.ini")
    cache.save("allanime", 21, "a", "One Piece")
    cache.save("aniworld", 21, "/anime/stream/one-piece", "One Piece")

    assert [row[0] for row in cache.entries()] == ["allanime", "aniworld"]
    rows = cache.entries("aniworld")
    assert len(rows) == 1
    assert rows[0][1] == "21"
    assert rows[0][2].startswith("/anime/stream/one-piece|One Piece|")
