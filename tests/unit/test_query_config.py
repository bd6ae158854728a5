"""Unit tests for metadata resolution of prefixes and stopwords."""

import json

import pytest

from search_bridge.prefix_store import STANDARD_PREFIXES, PrefixPair
from search_bridge.query_config import (
    PREFIXES_METADATA_KEY,
    STOPWORDS_METADATA_KEY,
    QueryConfig,
    resolve_prefixes,
    resolve_stopwords,
)
from search_bridge.search import Database, Stem


CUSTOM_PREFIXES = {
    "prefixes": [{"field": "author", "prefix": "A"}],
    "booleanPrefixes": [{"field": "section", "prefix": "XS"}],
}


@pytest.fixture
def open_index(make_index):
    databases = []

    def _open(**kwargs):
        database = Database(make_index("idx", [{"title": "hello"}], **kwargs))
        databases.append(database)
        return database

    yield _open
    for database in databases:
        database.close()


@pytest.mark.unit
class TestResolvePrefixes:
    def test_declared_prefixes_are_used(self, open_index):
        prefixes, fault = resolve_prefixes(open_index(prefixes=CUSTOM_PREFIXES))

        assert fault is None
        assert prefixes.prefixes == (PrefixPair(field="author", prefix="A"),)
        assert prefixes.boolean_prefixes == (PrefixPair(field="section", prefix="XS"),)

    def test_absent_metadata_falls_back_with_fault(self, open_index):
        prefixes, fault = resolve_prefixes(open_index())

        assert prefixes == STANDARD_PREFIXES
        assert fault.key == PREFIXES_METADATA_KEY
        assert "absent" in fault.reason

    def test_malformed_metadata_falls_back_with_fault(self, open_index):
        prefixes, fault = resolve_prefixes(open_index(prefixes="{not json"))

        assert prefixes == STANDARD_PREFIXES
        assert "malformed" in fault.reason

    def test_wrong_shape_is_malformed(self, open_index):
        prefixes, fault = resolve_prefixes(open_index(prefixes=json.dumps({"prefixes": "S"})))

        assert prefixes == STANDARD_PREFIXES
        assert fault is not None


@pytest.mark.unit
class TestResolveStopwords:
    def test_absent_stopwords_are_not_a_fault(self, open_index):
        assert resolve_stopwords(open_index()) == ((), None)

    def test_stopwords_list(self, open_index):
        stopwords, fault = resolve_stopwords(open_index(stopwords=["the", "and"]))

        assert stopwords == ("the", "and")
        assert fault is None

    def test_malformed_stopwords(self, open_index):
        stopwords, fault = resolve_stopwords(open_index(stopwords='{"the": 1}'))

        assert stopwords == ()
        assert fault.key == STOPWORDS_METADATA_KEY

    def test_stopwords_resolve_independently_of_prefixes(self, open_index):
        database = open_index(prefixes="garbage", stopwords=["the"])

        assert resolve_stopwords(database) == (("the",), None)
        assert resolve_prefixes(database)[1] is not None


@pytest.mark.unit
def test_build_parser_applies_prefixes_stemmer_and_stopwords():
    config = QueryConfig(stemmer=Stem("en"), prefixes=STANDARD_PREFIXES, stopwords=("the",))
    parser = config.build_parser()

    query = parser.parse_query("the running title:shoes tag:sport")

    assert str(query) == "Query(((Zrun OR ZSshoe) FILTER Ksport))"
    assert parser.get_stoplist() == ["the"]
