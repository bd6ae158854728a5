"""Unit tests for query string parsing."""

import pytest

from search_bridge.search import ParserFlag, QueryParser, QueryParserError, SimpleStopper, Stem, StemStrategy


@pytest.fixture
def parser():
    parser = QueryParser()
    parser.add_prefix("title", "S")
    parser.add_boolean_prefix("tag", "K")
    parser.add_boolean_prefix("id", "Q")
    return parser


def parse(parser, text, flags=ParserFlag.DEFAULT):
    return str(parser.parse_query(text, flags))


@pytest.mark.unit
class TestOperators:
    def test_implicit_or(self, parser):
        assert parse(parser, "foo bar") == "Query((foo OR bar))"

    def test_explicit_and(self, parser):
        assert parse(parser, "foo AND bar") == "Query((foo AND bar))"

    def test_lowercase_and_is_a_word(self, parser):
        assert parse(parser, "foo and bar") == "Query((foo OR and OR bar))"

    def test_not(self, parser):
        assert parse(parser, "foo NOT bar") == "Query((foo AND_NOT bar))"

    def test_love_and_hate(self, parser):
        assert parse(parser, "+foo bar") == "Query((foo AND_MAYBE bar))"
        assert parse(parser, "foo -bar") == "Query((foo AND_NOT bar))"

    def test_hyphenated_words_are_not_hate(self, parser):
        assert parse(parser, "well-known") == "Query((well OR known))"

    def test_parentheses_group(self, parser):
        assert parse(parser, "(foo OR bar) AND baz") == "Query(((foo OR bar) AND baz))"

    def test_unbalanced_parentheses_are_tolerated(self, parser):
        assert parse(parser, "(foo bar") == "Query((foo OR bar))"
        assert parse(parser, "foo) bar") == "Query((foo OR bar))"

    def test_pure_not_requires_flag(self, parser):
        with pytest.raises(QueryParserError):
            parser.parse_query("NOT foo")

        assert parse(parser, "NOT foo", ParserFlag.DEFAULT | ParserFlag.PURE_NOT) == "Query((<alldocuments> AND_NOT foo))"

    def test_empty_query_matches_nothing(self, parser):
        assert parse(parser, "") == "Query()"
        assert parse(parser, "   ") == "Query()"


@pytest.mark.unit
class TestPrefixes:
    def test_field_prefix(self, parser):
        assert parse(parser, "title:Foo") == "Query(Sfoo)"

    def test_field_phrase(self, parser):
        assert parse(parser, 'title:"hello world"') == "Query((Shello PHRASE 2 Sworld))"

    def test_unknown_field_is_plain_text(self, parser):
        assert parse(parser, "author:smith") == "Query((author OR smith))"

    def test_boolean_prefix_alone_is_weightless(self, parser):
        assert parse(parser, "tag:news") == "Query(0 * Knews)"

    def test_boolean_values_or_within_field_and_across_fields(self, parser):
        assert (
            parse(parser, "foo tag:a tag:b id:1")
            == "Query((foo FILTER ((Ka OR Kb) AND Q1)))"
        )

    def test_boolean_value_keeps_case(self, parser):
        assert parse(parser, "tag:News") == "Query(0 * KNews)"

    def test_quoted_boolean_value(self, parser):
        assert parse(parser, 'tag:"two words"') == "Query(0 * Ktwo words)"

    def test_multiple_prefixes_per_field(self, parser):
        parser.add_prefix("title", "XT")

        assert parse(parser, "title:foo") == "Query((Sfoo OR XTfoo))"


@pytest.mark.unit
class TestPhrasesAndWildcards:
    def test_phrase(self, parser):
        assert parse(parser, '"hello world"') == "Query((hello PHRASE 2 world))"

    def test_unterminated_phrase(self, parser):
        assert parse(parser, '"hello world') == "Query((hello PHRASE 2 world))"

    def test_wildcard_requires_flag(self, parser):
        assert parse(parser, "pas*") == "Query(pas)"
        assert parse(parser, "pas*", ParserFlag.DEFAULT | ParserFlag.WILDCARD) == "Query(WILDCARD SYNONYM pas)"


@pytest.mark.unit
class TestStemmingAndStopwords:
    def test_stem_some_skips_capitalized_words(self, parser):
        parser.set_stemmer(Stem("en"))

        assert parse(parser, "running Running") == "Query((Zrun OR running))"

    def test_stem_all(self, parser):
        parser.set_stemmer(Stem("en"))
        parser.set_stemming_strategy(StemStrategy.STEM_ALL)

        assert parse(parser, "Running") == "Query(Zrun)"

    def test_stem_none(self, parser):
        parser.set_stemmer(Stem("en"))
        parser.set_stemming_strategy(StemStrategy.STEM_NONE)

        assert parse(parser, "running") == "Query(running)"

    def test_identity_stemmer_adds_no_stem_prefix(self, parser):
        parser.set_stemmer(Stem("none"))

        assert parse(parser, "running") == "Query(running)"

    def test_stopwords_are_dropped_and_reported(self, parser):
        parser.set_stopper(SimpleStopper(["the", "a"]))

        assert parse(parser, "the cat") == "Query(cat)"
        assert parser.get_stoplist() == ["the"]

    def test_required_stopwords_are_kept(self, parser):
        parser.set_stopper(SimpleStopper(["the"]))

        assert parse(parser, "+the cat") == "Query((the AND_MAYBE cat))"
        assert parser.get_stoplist() == []


@pytest.mark.unit
class TestSpellingCorrection:
    class FakeDatabase:
        def __init__(self, spellings):
            self._spellings = spellings

        def spellings(self):
            return self._spellings

    def test_misspelled_words_are_replaced_in_place(self, parser):
        parser.set_database(self.FakeDatabase({"pasta": 3, "water": 1}))

        parser.parse_query("boil pastta +watr", ParserFlag.DEFAULT | ParserFlag.SPELLING_CORRECTION)

        assert parser.get_corrected_query_string() == "boil pasta +water"

    def test_no_correction_without_flag(self, parser):
        parser.set_database(self.FakeDatabase({"pasta": 3}))

        parser.parse_query("pastta")

        assert parser.get_corrected_query_string() == ""

    def test_no_correction_without_spellings(self, parser):
        parser.set_database(self.FakeDatabase({}))

        parser.parse_query("pastta", ParserFlag.SPELLING_CORRECTION)

        assert parser.get_corrected_query_string() == ""


@pytest.mark.unit
def test_query_terms_cover_every_branch(parser):
    query = parser.parse_query('foo -bar "a b" tag:x', ParserFlag.DEFAULT)

    assert query.terms() == ["foo", "a", "b", "bar", "Kx"]
    assert query.get_length() == 5
