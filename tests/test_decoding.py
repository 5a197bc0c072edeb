import base64

import orjson
import pytest

from oni.utils.decoding import (
    SOURCE_ID_TABLE,
    TRASH_CODES,
    braces_to_newlines,
    decode_base64,
    decode_source_id,
    decode_trash_base64,
    encode_source_id,
    extract_link_pairs,
    extract_source_pairs,
    find_labeled_source,
    format_source_lines,
    normalize_source_blob,
    resolve_source_path,
    strip_backslashes,
    unescape_unicode_slash,
)


def test_source_id_table_is_a_bijection():
    assert len(SOURCE_ID_TABLE) == 29
    assert len(set(SOURCE_ID_TABLE.values())) == 29


def test_decode_known_tokens():
    # "/apivtwo/clock?id=1"
    encoded = "175948514e4c4f57175b54575b5307515c0509"
    assert decode_source_id(encoded) == "/apivtwo/clock?id=1"


def test_decode_is_case_insensitive_and_passes_unknown_tokens_through():
    assert decode_source_id("5D5e") == "ef"
    assert decode_source_id("zz17") == "zz/"


def test_decode_drops_trailing_unpaired_character():
    assert decode_source_id("5d5") == "e"
    assert decode_source_id("") == ""


def test_encode_matches_decode():
    path = "/apivtwo/clock?id=42&b=c"
    assert decode_source_id(encode_source_id(path)) == path


def test_encode_rejects_characters_without_token():
    with pytest.raises(ValueError):
        encode_source_id("/clock?id=g")


def test_clock_path_gets_json_suffix_once():
    assert resolve_source_path("/apivtwo/clock?id=1") == "/apivtwo/clock.json?id=1"
    assert resolve_source_path("/apivtwo/clock.json?id=1") == "/apivtwo/clock.json?id=1"
    assert resolve_source_path("/other/path") == "/other/path"


def test_blob_transforms():
    assert braces_to_newlines('[{"a":1},{"b":2}]') == '[\n"a":1\n,\n"b":2\n]'
    assert unescape_unicode_slash("https:\\u002F\\u002Fx") == "https://x"
    assert strip_backslashes('a\\"b') == 'a"b'


def test_extract_source_pairs_from_episode_sources():
    blob = orjson.dumps(
        [
            {"sourceUrl": "--175948", "priority": 7.7, "sourceName": "Luf-mp4"},
            {"sourceUrl": "https://embed.example/x", "sourceName": "Mp4"},
            {"sourceUrl": "--5d5e", "priority": 1, "sourceName": "Default"},
        ]
    ).decode()

    pairs = extract_source_pairs(normalize_source_blob(blob))

    assert pairs == [("Luf-mp4", "175948"), ("Default", "5d5e")]
    lines = format_source_lines(pairs)
    assert lines == "Luf-mp4 :175948\nDefault :5d5e\n"
    assert find_labeled_source(lines, "Default") == "5d5e"
    assert find_labeled_source(lines, "Sak") is None


def test_labeled_source_requires_whole_label():
    lines = "S-mp4 :aa\nLuf-mp4 :bb\n"
    assert find_labeled_source(lines, "S-mp4") == "aa"
    assert find_labeled_source(lines, "mp4") is None


def test_extract_link_pairs_per_record():
    body = (
        '{"links":[{"link":"https:\\/\\/cdn.example\\/a.mp4","resolutionStr":"1080p"},'
        '{"link":"https:\\/\\/cdn.example\\/b.mp4","resolutionStr":"720p"}]}'
    )
    assert extract_link_pairs(body) == [
        ("https://cdn.example/a.mp4", "1080p"),
        ("https://cdn.example/b.mp4", "720p"),
    ]


def test_decode_base64_pads_input():
    assert decode_base64("aGVsbG8h") == "hello!"
    assert decode_base64("aGk") == "hi"


def test_decode_base64_rejects_garbage():
    with pytest.raises(ValueError):
        decode_base64("a")


def test_trash_codes_cover_two_and_three_symbol_combinations():
    assert len(TRASH_CODES) == 5**2 + 5**3
    assert "ISE=" in TRASH_CODES
    assert "JCQk" in TRASH_CODES


def test_decode_trash_base64():
    text = "[360p]https://v/360.mp4 or https://b/360.mp4,[720p]https://v/720.mp4"
    payload = base64.b64encode(text.encode()).decode()
    encoded = "#h" + payload[:8] + "//_//" + TRASH_CODES[-1] + payload[8:]

    assert decode_trash_base64(encoded) == text
