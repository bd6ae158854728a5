"""Per-target query configuration and metadata resolution.

Index metadata that is missing or malformed never fails index creation:
resolution substitutes the standard prefixes (or no stopwords) and returns
a `MetadataFault` describing what went wrong.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from typing import TYPE_CHECKING

from pydantic import TypeAdapter, ValidationError

from search_bridge.prefix_store import STANDARD_PREFIXES, PrefixMap
from search_bridge.search import QueryParser, SimpleStopper, StemStrategy


if TYPE_CHECKING:
    from search_bridge.search import Database, MultiDatabase, Stem

logger = logging.getLogger(__name__)

PREFIXES_METADATA_KEY = "XbPrefixes"
STOPWORDS_METADATA_KEY = "XbStopwords"

_STOPWORDS_ADAPTER = TypeAdapter(list[str])


@dataclass(frozen=True)
class MetadataFault:
    """Diagnostic record of index metadata that could not be used."""

    key: str
    reason: str


@dataclass(frozen=True)
class QueryConfig:
    """Stemmer, prefixes and stopwords used to parse queries for one target."""

    stemmer: Stem
    prefixes: PrefixMap
    stopwords: tuple[str, ...] = ()

    def build_parser(self, database: Database | MultiDatabase | None = None) -> QueryParser:
        parser = QueryParser()
        parser.set_stemmer(self.stemmer)
        parser.set_stemming_strategy(StemStrategy.STEM_SOME)
        for pair in self.prefixes.prefixes:
            parser.add_prefix(pair.field, pair.prefix)
        for pair in self.prefixes.boolean_prefixes:
            parser.add_boolean_prefix(pair.field, pair.prefix)
        if self.stopwords:
            parser.set_stopper(SimpleStopper(self.stopwords))
        parser.set_database(database)
        return parser


def resolve_prefixes(database: Database) -> tuple[PrefixMap, MetadataFault | None]:
    """Return the index's declared prefixes, or the standard set plus a fault."""
    raw = database.get_metadata(PREFIXES_METADATA_KEY)
    if not raw:
        return STANDARD_PREFIXES, MetadataFault(PREFIXES_METADATA_KEY, "metadata is absent")
    try:
        return PrefixMap.model_validate_json(raw), None
    except ValidationError as exc:
        return STANDARD_PREFIXES, MetadataFault(PREFIXES_METADATA_KEY, f"metadata is malformed: {exc}")


def resolve_stopwords(database: Database) -> tuple[tuple[str, ...], MetadataFault | None]:
    """Return the index's stopwords; absent metadata simply means none."""
    raw = database.get_metadata(STOPWORDS_METADATA_KEY)
    if not raw:
        return (), None
    try:
        return tuple(_STOPWORDS_ADAPTER.validate_python(json.loads(raw))), None
    except (json.JSONDecodeError, ValidationError) as exc:
        return (), MetadataFault(STOPWORDS_METADATA_KEY, f"metadata is malformed: {exc}")
