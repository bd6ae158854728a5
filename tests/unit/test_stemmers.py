import pytest

from search_bridge.errors import UnsupportedLanguageError
from search_bridge.search import Stem, StemmerError
from search_bridge.stemmers import StemmerCache


@pytest.mark.unit
def test_cache_starts_with_identity_stemmer():
    cache = StemmerCache()

    assert "none" in cache
    assert len(cache) == 1
    assert cache.none.is_none()
    assert cache.none("Running") == "Running"


@pytest.mark.unit
def test_cache_memoizes_per_language():
    cache = StemmerCache()

    first = cache.get("en")

    assert cache.get("en") is first
    assert len(cache) == 2
    assert first("running") == "run"


@pytest.mark.unit
def test_unknown_language_raises_and_is_not_cached():
    cache = StemmerCache()

    with pytest.raises(UnsupportedLanguageError) as exc_info:
        cache.get("klingon")

    assert exc_info.value.value == "klingon"
    assert "klingon" not in cache


@pytest.mark.unit
def test_snowball_names_and_iso_codes_are_both_accepted():
    assert Stem("english")("connections") == Stem("en")("connections")


@pytest.mark.unit
def test_stem_rejects_unknown_language():
    with pytest.raises(StemmerError):
        Stem("xx")
