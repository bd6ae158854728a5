"""Per-language accumulation of field-to-term-prefix associations.

Aggregate queries span indices whose metadata declared different prefixes.
The store remembers every association seen for a language so that a parser
for the aggregate understands all of them. Entries are never retracted.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field


class PrefixPair(BaseModel):
    """A human field name mapped to the term prefix used in the index."""

    model_config = ConfigDict(frozen=True)

    field: str
    prefix: str


class PrefixMap(BaseModel):
    """Plain and boolean prefix associations, as stored in ``XbPrefixes`` metadata."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    prefixes: tuple[PrefixPair, ...]
    boolean_prefixes: tuple[PrefixPair, ...] = Field(alias="booleanPrefixes")

    def to_metadata(self) -> str:
        return self.model_dump_json(by_alias=True)


STANDARD_PREFIXES = PrefixMap(
    prefixes=(
        PrefixPair(field="title", prefix="S"),
        PrefixPair(field="exact_title", prefix="XEXACTS"),
    ),
    boolean_prefixes=(
        PrefixPair(field="tag", prefix="K"),
        PrefixPair(field="id", prefix="Q"),
    ),
)


@dataclass
class _LanguagePrefixes:
    prefixes: list[PrefixPair] = field(default_factory=list)
    boolean_prefixes: list[PrefixPair] = field(default_factory=list)

    def bucket(self, is_boolean: bool) -> list[PrefixPair]:
        return self.boolean_prefixes if is_boolean else self.prefixes

    def freeze(self) -> PrefixMap:
        return PrefixMap(prefixes=tuple(self.prefixes), boolean_prefixes=tuple(self.boolean_prefixes))


class PrefixStore:
    """Deduplicated, insertion-ordered prefix pairs keyed by language."""

    def __init__(self) -> None:
        self._by_language: dict[str, _LanguagePrefixes] = {}

    def store(self, language: str, pair: PrefixPair, is_boolean: bool) -> None:
        """Record ``pair`` for ``language`` unless an identical pair is already there."""
        bucket = self._by_language.setdefault(language, _LanguagePrefixes()).bucket(is_boolean)
        if pair not in bucket:
            bucket.append(pair)

    def store_prefix(self, language: str, pair: PrefixPair) -> None:
        self.store(language, pair, is_boolean=False)

    def store_boolean_prefix(self, language: str, pair: PrefixPair) -> None:
        self.store(language, pair, is_boolean=True)

    def store_map(self, language: str, prefix_map: PrefixMap) -> None:
        for pair in prefix_map.prefixes:
            self.store_prefix(language, pair)
        for pair in prefix_map.boolean_prefixes:
            self.store_boolean_prefix(language, pair)

    def get(self, language: str) -> PrefixMap | None:
        """Return the pairs accumulated for exactly ``language``, if it was ever used."""
        accumulated = self._by_language.get(language)
        return accumulated.freeze() if accumulated is not None else None

    def get_all(self) -> PrefixMap | None:
        """Return the first-seen union of pairs across every language, or None if empty."""
        union = _LanguagePrefixes()
        for accumulated in self._by_language.values():
            for is_boolean in (False, True):
                bucket = union.bucket(is_boolean)
                bucket.extend(pair for pair in accumulated.bucket(is_boolean) if pair not in bucket)
        if not union.prefixes and not union.boolean_prefixes:
            return None
        return union.freeze()

    def languages(self) -> list[str]:
        return list(self._by_language)

    def __contains__(self, language: object) -> bool:
        return language in self._by_language
