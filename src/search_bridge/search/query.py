"""Query trees evaluated against individual index databases.

Each node scores the documents of one leaf database using collection-wide
statistics, so results from several leaves of an aggregate can be merged
on a single scale.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from search_bridge.search.database import Database
    from search_bridge.search.stats import CollectionStats

Scores = dict[int, float]


class Query:
    """Base class for query nodes."""

    def evaluate(self, database: Database, stats: CollectionStats) -> Scores:
        raise NotImplementedError

    def describe(self) -> str:
        raise NotImplementedError

    def terms(self) -> list[str]:
        return []

    def get_length(self) -> int:
        return len(self.terms())

    def __str__(self) -> str:
        return f"Query({self.describe()})"


@dataclass(frozen=True, eq=True)
class TermQuery(Query):
    term: str
    wqf: int = 1

    def evaluate(self, database: Database, stats: CollectionStats) -> Scores:
        return {
            posting.doc_id: stats.term_weight(self.term, posting.wdf, posting.doc_length, self.wqf)
            for posting in database.postlist(self.term)
        }

    def describe(self) -> str:
        return self.term

    def terms(self) -> list[str]:
        return [self.term]


@dataclass(frozen=True, eq=True)
class WildcardQuery(Query):
    """Matches every term starting with ``prefix``; expanded per database."""

    prefix: str

    def evaluate(self, database: Database, stats: CollectionStats) -> Scores:
        scores: Scores = {}
        for term in database.allterms(self.prefix):
            for doc_id, weight in TermQuery(term).evaluate(database, stats).items():
                scores[doc_id] = scores.get(doc_id, 0.0) + weight
        return scores

    def describe(self) -> str:
        return f"WILDCARD SYNONYM {self.prefix}"


@dataclass(frozen=True, eq=True)
class PhraseQuery(Query):
    """Terms that must occur at consecutive positions."""

    phrase_terms: tuple[str, ...]

    def evaluate(self, database: Database, stats: CollectionStats) -> Scores:
        per_term = [TermQuery(term).evaluate(database, stats) for term in self.phrase_terms]
        if not per_term:
            return {}
        candidates = set(per_term[0])
        for scores in per_term[1:]:
            candidates &= scores.keys()
        matched: Scores = {}
        for doc_id in candidates:
            if self._in_sequence(database, doc_id):
                matched[doc_id] = sum(scores[doc_id] for scores in per_term)
        return matched

    def _in_sequence(self, database: Database, doc_id: int) -> bool:
        positions = [set(database.positionlist(term, doc_id)) for term in self.phrase_terms]
        return any(all(start + offset in positions[offset] for offset in range(1, len(positions))) for start in positions[0])

    def describe(self) -> str:
        return "(" + f" PHRASE {len(self.phrase_terms)} ".join(self.phrase_terms) + ")"

    def terms(self) -> list[str]:
        return list(self.phrase_terms)


@dataclass(frozen=True, eq=True)
class MatchAllQuery(Query):
    def evaluate(self, database: Database, stats: CollectionStats) -> Scores:
        return dict.fromkeys(database.all_doc_ids(), 0.0)

    def describe(self) -> str:
        return "<alldocuments>"


@dataclass(frozen=True, eq=True)
class MatchNothingQuery(Query):
    def evaluate(self, database: Database, stats: CollectionStats) -> Scores:
        return {}

    def describe(self) -> str:
        return ""


@dataclass(frozen=True, eq=True)
class AndQuery(Query):
    subqueries: tuple[Query, ...]

    def evaluate(self, database: Database, stats: CollectionStats) -> Scores:
        results = [query.evaluate(database, stats) for query in self.subqueries]
        if not results:
            return {}
        common = set(results[0])
        for scores in results[1:]:
            common &= scores.keys()
        return {doc_id: sum(scores[doc_id] for scores in results) for doc_id in common}

    def describe(self) -> str:
        return "(" + " AND ".join(query.describe() for query in self.subqueries) + ")"

    def terms(self) -> list[str]:
        return [term for query in self.subqueries for term in query.terms()]


@dataclass(frozen=True, eq=True)
class OrQuery(Query):
    subqueries: tuple[Query, ...]

    def evaluate(self, database: Database, stats: CollectionStats) -> Scores:
        combined: Scores = {}
        for query in self.subqueries:
            for doc_id, weight in query.evaluate(database, stats).items():
                combined[doc_id] = combined.get(doc_id, 0.0) + weight
        return combined

    def describe(self) -> str:
        return "(" + " OR ".join(query.describe() for query in self.subqueries) + ")"

    def terms(self) -> list[str]:
        return [term for query in self.subqueries for term in query.terms()]


@dataclass(frozen=True, eq=True)
class AndNotQuery(Query):
    left: Query
    right: Query

    def evaluate(self, database: Database, stats: CollectionStats) -> Scores:
        excluded = self.right.evaluate(database, stats)
        return {doc_id: weight for doc_id, weight in self.left.evaluate(database, stats).items() if doc_id not in excluded}

    def describe(self) -> str:
        return f"({self.left.describe()} AND_NOT {self.right.describe()})"

    def terms(self) -> list[str]:
        return self.left.terms() + self.right.terms()


@dataclass(frozen=True, eq=True)
class AndMaybeQuery(Query):
    """Documents of ``left``, boosted by ``right`` where it also matches."""

    left: Query
    right: Query

    def evaluate(self, database: Database, stats: CollectionStats) -> Scores:
        optional = self.right.evaluate(database, stats)
        return {
            doc_id: weight + optional.get(doc_id, 0.0) for doc_id, weight in self.left.evaluate(database, stats).items()
        }

    def describe(self) -> str:
        return f"({self.left.describe()} AND_MAYBE {self.right.describe()})"

    def terms(self) -> list[str]:
        return self.left.terms() + self.right.terms()


@dataclass(frozen=True, eq=True)
class FilterQuery(Query):
    """Restricts ``query`` to documents matching ``filter``; the filter adds no weight."""

    query: Query
    filter: Query

    def evaluate(self, database: Database, stats: CollectionStats) -> Scores:
        allowed = self.filter.evaluate(database, stats)
        return {doc_id: weight for doc_id, weight in self.query.evaluate(database, stats).items() if doc_id in allowed}

    def describe(self) -> str:
        return f"({self.query.describe()} FILTER {self.filter.describe()})"

    def terms(self) -> list[str]:
        return self.query.terms() + self.filter.terms()


@dataclass(frozen=True, eq=True)
class ScaleWeightQuery(Query):
    query: Query
    factor: float

    def evaluate(self, database: Database, stats: CollectionStats) -> Scores:
        return {doc_id: weight * self.factor for doc_id, weight in self.query.evaluate(database, stats).items()}

    def describe(self) -> str:
        return f"{self.factor:g} * {self.query.describe()}"

    def terms(self) -> list[str]:
        return self.query.terms()


def combine_and(queries: list[Query]) -> Query | None:
    if not queries:
        return None
    return queries[0] if len(queries) == 1 else AndQuery(tuple(queries))


def combine_or(queries: list[Query]) -> Query | None:
    if not queries:
        return None
    return queries[0] if len(queries) == 1 else OrQuery(tuple(queries))
