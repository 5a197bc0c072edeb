import pytest

from oni.core.exceptions import UnknownProviderError
from oni.providers.allanime import AllAnimeProvider
from oni.providers.manager import ProviderManager


def test_discovers_all_providers():
    assert ProviderManager().names() == [
        "allanime",
        "aniwatch",
        "aniworld",
        "crunchyroll",
        "hdrezka",
        "yugen",
    ]


def test_get_provider_is_case_insensitive(session, cache):
    provider = ProviderManager().get_provider(" AllAnime ", session, cache)

    assert isinstance(provider, AllAnimeProvider)
    assert provider.session is session
    assert provider.cache is cache


def test_unknown_provider(session, cache):
    with pytest.raises(UnknownProviderError) as exc:
        ProviderManager().get_provider("gogoanime", session, cache)

    assert "allanime" in exc.value.available
    assert "Unknown provider: gogoanime" in exc.value.display_message
