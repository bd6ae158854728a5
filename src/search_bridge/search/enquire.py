"""Ranked retrieval over a database or an aggregate of databases."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING

from search_bridge.search.stats import CollectionStats


if TYPE_CHECKING:
    from search_bridge.search.database import Database, MultiDatabase
    from search_bridge.search.document import Document
    from search_bridge.search.query import Query

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MSetItem:
    """One ranked hit."""

    docid: int
    weight: float
    percent: int
    rank: int
    collapse_count: int
    collapse_key: str
    document: Document


@dataclass(frozen=True)
class MSet:
    """A page of ranked hits plus the number of matches before paging."""

    items: tuple[MSetItem, ...]
    firstitem: int
    matches_estimated: int

    def size(self) -> int:
        return len(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[MSetItem]:
        return iter(self.items)

    def __getitem__(self, index: int) -> MSetItem:
        return self.items[index]


@dataclass
class _Candidate:
    leaf: int
    doc_id: int
    global_id: int
    weight: float
    percent: int = 100
    collapse_key: str = ""
    collapse_count: int = 0
    sort_value: str = ""


class Enquire:
    """Runs a query against a search target and returns ranked pages.

    Weights use BM25 with statistics pooled across every child database.
    Document ids in results are interleaved across children so they stay
    unique within an aggregate.
    """

    def __init__(self, database: Database | MultiDatabase) -> None:
        self._databases = database.sub_databases()
        self._query: Query | None = None
        self._percent_cutoff = 0.0
        self._collapse_slot: str | None = None
        self._collapse_max = 1
        self._sort_slot: str | None = None
        self._sort_reverse = False

    def set_query(self, query: Query) -> None:
        self._query = query

    def get_query(self) -> Query | None:
        return self._query

    def set_cutoff(self, percent_cutoff: float) -> None:
        """Drop hits scoring below ``percent_cutoff`` percent of the best hit."""
        self._percent_cutoff = max(0.0, min(float(percent_cutoff), 100.0))

    def set_collapse_key(self, slot: str | int | None, collapse_max: int = 1) -> None:
        """Keep at most ``collapse_max`` hits per value of ``slot``; empty values never collapse."""
        self._collapse_slot = None if slot is None else str(slot)
        self._collapse_max = max(1, collapse_max)

    def set_sort_by_value(self, slot: str | int, reverse: bool = False) -> None:
        self._sort_slot = str(slot)
        self._sort_reverse = reverse

    def set_sort_by_relevance(self) -> None:
        self._sort_slot = None
        self._sort_reverse = False

    def get_mset(self, first: int, maxitems: int) -> MSet:
        if self._query is None or not self._databases:
            return MSet(items=(), firstitem=first, matches_estimated=0)

        stats = CollectionStats(self._databases)
        candidates = self._collect(stats)
        if not candidates:
            return MSet(items=(), firstitem=first, matches_estimated=0)

        top_weight = max(candidate.weight for candidate in candidates)
        for candidate in candidates:
            candidate.percent = self._percent(candidate.weight, top_weight)
        if self._percent_cutoff:
            candidates = [candidate for candidate in candidates if candidate.percent >= self._percent_cutoff]

        candidates.sort(key=lambda candidate: (-candidate.weight, candidate.global_id))
        if self._sort_slot is not None:
            for candidate in candidates:
                candidate.sort_value = self._databases[candidate.leaf].get_value(candidate.doc_id, self._sort_slot)
            candidates.sort(key=lambda candidate: candidate.sort_value, reverse=self._sort_reverse)

        if self._collapse_slot is not None:
            candidates = self._collapse(candidates)

        page = candidates[first : first + maxitems] if maxitems > 0 else []
        items = tuple(
            MSetItem(
                docid=candidate.global_id,
                weight=candidate.weight,
                percent=candidate.percent,
                rank=first + offset,
                collapse_count=candidate.collapse_count,
                collapse_key=candidate.collapse_key,
                document=self._databases[candidate.leaf].get_document(candidate.doc_id),
            )
            for offset, candidate in enumerate(page)
        )
        return MSet(items=items, firstitem=first, matches_estimated=len(candidates))

    def _collect(self, stats: CollectionStats) -> list[_Candidate]:
        leaves = len(self._databases)
        candidates: list[_Candidate] = []
        for leaf, database in enumerate(self._databases):
            for doc_id, weight in self._query.evaluate(database, stats).items():
                candidates.append(
                    _Candidate(leaf=leaf, doc_id=doc_id, global_id=(doc_id - 1) * leaves + leaf + 1, weight=weight)
                )
        return candidates

    def _collapse(self, candidates: list[_Candidate]) -> list[_Candidate]:
        kept: list[_Candidate] = []
        first_by_key: dict[str, _Candidate] = {}
        seen: dict[str, int] = {}
        for candidate in candidates:
            key = self._databases[candidate.leaf].get_value(candidate.doc_id, self._collapse_slot)
            candidate.collapse_key = key
            if not key:
                kept.append(candidate)
                continue
            count = seen.get(key, 0)
            seen[key] = count + 1
            if count < self._collapse_max:
                kept.append(candidate)
                first_by_key.setdefault(key, candidate)
            else:
                first_by_key[key].collapse_count += 1
        return kept

    @staticmethod
    def _percent(weight: float, top_weight: float) -> int:
        if top_weight <= 0:
            return 100
        return max(0, min(100, int(weight / top_weight * 100 + 0.5)))
