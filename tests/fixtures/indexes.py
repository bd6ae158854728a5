"""Index corpora and a builder writing real SQLite indexes for tests."""

from __future__ import annotations

from collections.abc import Iterable
import json
from pathlib import Path
from typing import Any

from search_bridge.search import Document, Stem, TermGenerator, WritableDatabase


EN_DOCS = [
    {"id": "en-1", "title": "Running shoes", "body": "Shoes for running fast on trails", "tags": ["sport"]},
    {"id": "en-2", "title": "Cooking pasta", "body": "Boil water and cook the pasta", "tags": ["food"]},
]

ES_DOCS = [
    {"id": "es-1", "title": "Zapatos para correr", "body": "Zapatos rapidos para la montana", "tags": ["sport"]},
]


def build_index(
    path: Path,
    documents: Iterable[dict[str, Any]] = (),
    *,
    language: str = "none",
    prefixes: dict | str | None = None,
    stopwords: list[str] | str | None = None,
    spelling: bool = False,
) -> Path:
    """Write an index whose documents carry their own record as JSON data.

    Titles are indexed under the ``S`` prefix and unprefixed, bodies
    unprefixed, tags as ``K`` and ids as ``Q`` boolean terms.
    """
    flags = TermGenerator.FLAG_SPELLING if spelling else 0
    with WritableDatabase(path) as database:
        generator = TermGenerator(Stem(language), flags=flags)
        generator.set_database(database)
        for record in documents:
            document = Document()
            generator.set_document(document)
            generator.index_text(record.get("title", ""), prefix="S")
            generator.index_text(record.get("title", ""))
            generator.increase_termpos()
            generator.index_text(record.get("body", ""))
            for tag in record.get("tags", ()):
                document.add_boolean_term("K" + tag)
            if "id" in record:
                document.add_boolean_term("Q" + record["id"])
            for slot, value in record.get("values", {}).items():
                document.add_value(slot, value)
            document.set_data(record["raw"] if "raw" in record else json.dumps(record))
            database.add_document(document)
        if prefixes is not None:
            database.set_metadata("XbPrefixes", prefixes if isinstance(prefixes, str) else json.dumps(prefixes))
        if stopwords is not None:
            database.set_metadata("XbStopwords", stopwords if isinstance(stopwords, str) else json.dumps(stopwords))
    return Path(path)
