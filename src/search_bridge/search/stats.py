"""Statistical helpers for BM25 style scoring.

The scoring functions stay independent of storage; `CollectionStats`
aggregates the figures they need across every child of an aggregate so
that hits from different indices are ranked on one scale.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
import math
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from search_bridge.search.database import Database


def calculate_idf(doc_freq: int, total_docs: int, *, floor: float = 1e-6) -> float:
    """Return inverse document frequency with small-sample smoothing.

    The IDF is floored so that terms present in most documents of a small
    collection score close to zero instead of negative.
    """

    if total_docs <= 0:
        return 0.0
    df = max(0, min(doc_freq, total_docs))
    numerator = total_docs - df + 0.5
    denominator = df + 0.5
    ratio = max(numerator / denominator, floor)
    raw_idf = math.log(ratio + floor) + 1.0
    return max(raw_idf, floor)


def bm25(tf: int, doc_length: int, avg_doc_length: float, *, k1: float = 1.2, b: float = 0.75) -> float:
    """Compute the BM25 term weight without IDF.

    Length normalization is capped at 4x the average document length.
    """

    if tf <= 0:
        return 0.0
    max_length_ratio = 4.0
    raw_ratio = doc_length / max(avg_doc_length, 1e-9)
    normalized_length = min(raw_ratio, max_length_ratio)
    denominator = tf + k1 * (1 - b + b * normalized_length)
    return (tf * (k1 + 1)) / denominator


@dataclass
class CollectionStats:
    """Collection-wide statistics shared by every child of a search target."""

    databases: Sequence[Database]
    _termfreqs: dict[str, int] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        self.doc_count = sum(db.get_doccount() for db in self.databases)
        total_length = sum(db.get_total_length() for db in self.databases)
        self.average_length = total_length / self.doc_count if self.doc_count else 0.0

    def termfreq(self, term: str) -> int:
        if term not in self._termfreqs:
            self._termfreqs[term] = sum(db.get_termfreq(term) for db in self.databases)
        return self._termfreqs[term]

    def term_weight(self, term: str, wdf: int, doc_length: int, wqf: int = 1) -> float:
        idf = calculate_idf(self.termfreq(term), self.doc_count)
        return wqf * idf * bm25(wdf, doc_length, self.average_length)
