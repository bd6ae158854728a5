import pytest

from search_bridge.search import SimpleStopper, Stem
from search_bridge.search.analyzers import WordAnalyzer, resolve_snowball_language


@pytest.mark.unit
def test_word_analyzer_lowercases_and_keeps_apostrophes():
    tokens = WordAnalyzer()("Don't STOP me-now")

    assert [token.text for token in tokens] == ["don't", "stop", "me", "now"]
    assert [token.position for token in tokens] == [0, 1, 2, 3]


@pytest.mark.unit
@pytest.mark.parametrize(
    ("tag", "expected"),
    [("none", None), ("", None), ("en", "english"), ("EN", "english"), ("french", "french"), ("pt", "portuguese")],
)
def test_resolve_snowball_language(tag, expected):
    assert resolve_snowball_language(tag) == expected


@pytest.mark.unit
def test_stem_repr_and_identity():
    assert repr(Stem("en")) == "Stem('en')"
    assert Stem().is_none()
    assert not Stem("de").is_none()


@pytest.mark.unit
def test_simple_stopper_is_case_insensitive():
    stopper = SimpleStopper(["The", "and"])

    assert stopper("the")
    assert stopper("AND")
    assert not stopper("cat")
    assert len(stopper) == 2
