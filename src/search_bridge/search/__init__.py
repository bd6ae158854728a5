"""SQLite-backed search primitive: index databases, aggregates, parsing and ranking."""

from search_bridge.search.analyzers import NO_STEMMER, SimpleStopper, Stem, StemmerError
from search_bridge.search.database import (
    Database,
    DatabaseError,
    DatabaseOpeningError,
    DocNotFoundError,
    MultiDatabase,
)
from search_bridge.search.document import Document
from search_bridge.search.enquire import Enquire, MSet, MSetItem
from search_bridge.search.query import MatchAllQuery, Query
from search_bridge.search.query_parser import ParserFlag, QueryParser, QueryParserError, StemStrategy
from search_bridge.search.writer import TermGenerator, WritableDatabase


__all__ = [
    "NO_STEMMER",
    "Database",
    "DatabaseError",
    "DatabaseOpeningError",
    "DocNotFoundError",
    "Document",
    "Enquire",
    "MSet",
    "MSetItem",
    "MatchAllQuery",
    "MultiDatabase",
    "ParserFlag",
    "Query",
    "QueryParser",
    "QueryParserError",
    "SimpleStopper",
    "Stem",
    "StemStrategy",
    "StemmerError",
    "TermGenerator",
    "WritableDatabase",
]
