"""Free-text query parsing with field prefixes, stemming and stopwords.

Supported syntax:
- implicit OR between words, explicit ``AND``, ``OR``, ``NOT``
- ``+word`` (required) and ``-word`` (excluded)
- parentheses and ``"quoted phrases"``
- ``field:word`` and ``field:"a phrase"`` for declared prefixes
- ``field:value`` for boolean prefixes, applied as weightless filters
  (values of one field are OR'd, different fields are AND'd)
- trailing ``*`` wildcards when ``ParserFlag.WILDCARD`` is set
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntFlag
import logging
import re
from typing import TYPE_CHECKING

from search_bridge.search.analyzers import WordAnalyzer
from search_bridge.search.fuzzy import suggest_spelling
from search_bridge.search.query import (
    AndMaybeQuery,
    AndNotQuery,
    FilterQuery,
    MatchAllQuery,
    MatchNothingQuery,
    PhraseQuery,
    Query,
    ScaleWeightQuery,
    TermQuery,
    WildcardQuery,
    combine_and,
    combine_or,
)
from search_bridge.search.writer import STEMMED_TERM_PREFIX


if TYPE_CHECKING:
    from search_bridge.search.analyzers import SimpleStopper, Stem
    from search_bridge.search.database import Database, MultiDatabase

logger = logging.getLogger(__name__)

_FIELD_RE = re.compile(r"([A-Za-z_]\w*):(?=\S)")
_WORD_RE = re.compile(r"([\w']+)(\*)?", re.UNICODE)
_BOOLEAN_VALUE_RE = re.compile(r'"([^"]*)"?|([^\s()]+)')
_OPERATORS = {"AND": "and", "OR": "or", "NOT": "not"}


class QueryParserError(ValueError):
    """Raised for query strings that cannot be turned into a query."""


class ParserFlag(IntFlag):
    BOOLEAN = 1
    PHRASE = 2
    LOVEHATE = 4
    WILDCARD = 16
    PURE_NOT = 32
    SPELLING_CORRECTION = 128
    DEFAULT = BOOLEAN | PHRASE | LOVEHATE


class StemStrategy(Enum):
    STEM_NONE = "none"
    STEM_SOME = "some"
    STEM_ALL = "all"


@dataclass
class _Lexeme:
    kind: str
    text: str = ""
    field: str | None = None
    wildcard: bool = False
    start: int = 0
    end: int = 0


@dataclass
class _ParseState:
    lexemes: list[_Lexeme]
    flags: ParserFlag
    default_prefix: str
    index: int = 0
    filters: dict[str, list[Query]] = field(default_factory=dict)

    def peek(self) -> _Lexeme | None:
        return self.lexemes[self.index] if self.index < len(self.lexemes) else None

    def peek_kind(self) -> str | None:
        lexeme = self.peek()
        return lexeme.kind if lexeme else None

    def advance(self) -> _Lexeme:
        lexeme = self.lexemes[self.index]
        self.index += 1
        return lexeme


_CLAUSE_START = frozenset({"word", "phrase", "boolean", "lparen", "love", "hate"})


class QueryParser:
    """Builds `Query` trees from user query strings."""

    def __init__(self) -> None:
        self._prefixes: dict[str, list[str]] = {}
        self._boolean_prefixes: dict[str, list[str]] = {}
        self._analyzer = WordAnalyzer()
        self.stemmer: Stem | None = None
        self.stemming_strategy = StemStrategy.STEM_SOME
        self.stopper: SimpleStopper | None = None
        self.database: Database | MultiDatabase | None = None
        self._stoplist: list[str] = []
        self._corrected = ""

    def add_prefix(self, field_name: str, prefix: str) -> None:
        prefixes = self._prefixes.setdefault(field_name, [])
        if prefix not in prefixes:
            prefixes.append(prefix)

    def add_boolean_prefix(self, field_name: str, prefix: str) -> None:
        prefixes = self._boolean_prefixes.setdefault(field_name, [])
        if prefix not in prefixes:
            prefixes.append(prefix)

    def set_stemmer(self, stemmer: Stem | None) -> None:
        self.stemmer = stemmer

    def set_stemming_strategy(self, strategy: StemStrategy) -> None:
        self.stemming_strategy = strategy

    def set_stopper(self, stopper: SimpleStopper | None) -> None:
        self.stopper = stopper

    def set_database(self, database: Database | MultiDatabase | None) -> None:
        self.database = database

    def get_stoplist(self) -> list[str]:
        """Stopwords dropped from the most recent parse."""
        return list(self._stoplist)

    def get_corrected_query_string(self) -> str:
        """Spelling-corrected form of the most recent query, or "" if unchanged."""
        return self._corrected

    def parse_query(
        self,
        query_string: str,
        flags: ParserFlag = ParserFlag.DEFAULT,
        default_prefix: str = "",
    ) -> Query:
        """Parse ``query_string`` into a query tree.

        Raises:
            QueryParserError: For a pure negative query without ``PURE_NOT``.
        """
        self._stoplist = []
        self._corrected = ""
        lexemes = self._lex(query_string, flags)
        state = _ParseState(lexemes=lexemes, flags=flags, default_prefix=default_prefix)
        main = self._parse_or(state)

        if flags & ParserFlag.SPELLING_CORRECTION:
            self._corrected = self._correct_spelling(query_string, lexemes)

        filter_query = combine_and(
            [query for query in (combine_or(values) for values in state.filters.values()) if query is not None]
        )
        if main is None and filter_query is None:
            return MatchNothingQuery()
        if filter_query is None:
            return main
        if main is None:
            return ScaleWeightQuery(filter_query, 0.0)
        return FilterQuery(main, filter_query)

    def _lex(self, text: str, flags: ParserFlag) -> list[_Lexeme]:
        lexemes: list[_Lexeme] = []
        depth = 0
        i = 0
        n = len(text)
        while i < n:
            ch = text[i]
            if ch.isspace():
                i += 1
                continue
            if ch == "(":
                depth += 1
                lexemes.append(_Lexeme("lparen", start=i, end=i + 1))
                i += 1
                continue
            if ch == ")":
                if depth:
                    depth -= 1
                    lexemes.append(_Lexeme("rparen", start=i, end=i + 1))
                i += 1
                continue
            at_boundary = i == 0 or text[i - 1].isspace() or text[i - 1] == "("
            if ch in "+-" and flags & ParserFlag.LOVEHATE and at_boundary and i + 1 < n and not text[i + 1].isspace():
                lexemes.append(_Lexeme("love" if ch == "+" else "hate", start=i, end=i + 1))
                i += 1
                continue
            if ch == '"' and flags & ParserFlag.PHRASE:
                i = self._lex_phrase(text, i, None, lexemes)
                continue
            field_match = _FIELD_RE.match(text, i)
            if field_match:
                field_name = field_match.group(1)
                if field_name in self._boolean_prefixes:
                    value_match = _BOOLEAN_VALUE_RE.match(text, field_match.end())
                    if value_match is None:
                        i = field_match.end()
                        continue
                    value = value_match.group(1) if value_match.group(1) is not None else value_match.group(2)
                    lexemes.append(_Lexeme("boolean", text=value, field=field_name, start=i, end=value_match.end()))
                    i = value_match.end()
                    continue
                if field_name in self._prefixes:
                    i = field_match.end()
                    if text[i] == '"' and flags & ParserFlag.PHRASE:
                        i = self._lex_phrase(text, i, field_name, lexemes)
                        continue
                    word_match = _WORD_RE.match(text, i)
                    if word_match:
                        lexemes.append(self._word_lexeme(word_match, flags, field_name))
                        i = word_match.end()
                    continue
            word_match = _WORD_RE.match(text, i)
            if word_match:
                word = word_match.group(1)
                if flags & ParserFlag.BOOLEAN and word in _OPERATORS and not word_match.group(2):
                    lexemes.append(_Lexeme(_OPERATORS[word], text=word, start=i, end=word_match.end()))
                else:
                    lexemes.append(self._word_lexeme(word_match, flags, None))
                i = word_match.end()
                continue
            i += 1
        lexemes.extend(_Lexeme("rparen", start=n, end=n) for _ in range(depth))
        return lexemes

    @staticmethod
    def _word_lexeme(match: re.Match[str], flags: ParserFlag, field_name: str | None) -> _Lexeme:
        wildcard = bool(match.group(2)) and bool(flags & ParserFlag.WILDCARD)
        end = match.end() if wildcard else match.end(1)
        return _Lexeme("word", text=match.group(1), field=field_name, wildcard=wildcard, start=match.start(), end=end)

    @staticmethod
    def _lex_phrase(text: str, start: int, field_name: str | None, lexemes: list[_Lexeme]) -> int:
        close = text.find('"', start + 1)
        end = len(text) if close == -1 else close
        lexemes.append(_Lexeme("phrase", text=text[start + 1 : end], field=field_name, start=start, end=end + 1))
        return end + 1

    def _parse_or(self, state: _ParseState) -> Query | None:
        parts = [self._parse_and(state)]
        while state.peek_kind() == "or":
            state.advance()
            parts.append(self._parse_and(state))
        return combine_or([part for part in parts if part is not None])

    def _parse_and(self, state: _ParseState) -> Query | None:
        parts = [self._parse_not(state)]
        while state.peek_kind() == "and":
            state.advance()
            parts.append(self._parse_not(state))
        return combine_and([part for part in parts if part is not None])

    def _parse_not(self, state: _ParseState) -> Query | None:
        left = None if state.peek_kind() == "not" else self._parse_group(state)
        while state.peek_kind() == "not":
            state.advance()
            left = self._and_not(left, self._parse_group(state), state)
        return left

    def _and_not(self, left: Query | None, right: Query | None, state: _ParseState) -> Query | None:
        if right is None:
            return left
        if left is None:
            if not state.flags & ParserFlag.PURE_NOT:
                raise QueryParserError("Syntax: <expression> NOT <expression>")
            left = MatchAllQuery()
        return AndNotQuery(left, right)

    def _parse_group(self, state: _ParseState) -> Query | None:
        optional: list[Query] = []
        required: list[Query] = []
        excluded: list[Query] = []
        while state.peek_kind() in _CLAUSE_START:
            lexeme = state.advance()
            modifier = None
            if lexeme.kind in ("love", "hate"):
                modifier = lexeme.kind
                if state.peek_kind() not in _CLAUSE_START - {"love", "hate"}:
                    continue
                lexeme = state.advance()
            clause = self._parse_clause(lexeme, state, modifier)
            if clause is None:
                continue
            if modifier == "love":
                required.append(clause)
            elif modifier == "hate":
                excluded.append(clause)
            else:
                optional.append(clause)

        must = combine_and(required)
        may = combine_or(optional)
        if must is not None and may is not None:
            base: Query | None = AndMaybeQuery(must, may)
        else:
            base = must if must is not None else may
        return self._and_not(base, combine_or(excluded), state)

    def _parse_clause(self, lexeme: _Lexeme, state: _ParseState, modifier: str | None) -> Query | None:
        if lexeme.kind == "lparen":
            inner = self._parse_or(state)
            if state.peek_kind() == "rparen":
                state.advance()
            return inner
        if lexeme.kind == "boolean":
            query = combine_or([TermQuery(prefix + lexeme.text) for prefix in self._boolean_prefixes[lexeme.field]])
            if modifier == "hate":
                return query
            state.filters.setdefault(lexeme.field, []).append(query)
            return None
        prefixes = self._prefixes[lexeme.field] if lexeme.field else [state.default_prefix]
        if lexeme.kind == "phrase":
            return self._phrase_query(lexeme.text, prefixes)
        return self._word_query(lexeme, prefixes, required=modifier == "love")

    def _phrase_query(self, text: str, prefixes: list[str]) -> Query | None:
        words = [token.text for token in self._analyzer(text)]
        if not words:
            return None
        queries: list[Query] = []
        for prefix in prefixes:
            terms = tuple(prefix + word for word in words)
            queries.append(TermQuery(terms[0]) if len(terms) == 1 else PhraseQuery(terms))
        return combine_or(queries)

    def _word_query(self, lexeme: _Lexeme, prefixes: list[str], *, required: bool) -> Query | None:
        word = lexeme.text.lower()
        if lexeme.wildcard:
            return combine_or([WildcardQuery(prefix + word) for prefix in prefixes])
        if self.stopper is not None and not required and self.stopper(word):
            self._stoplist.append(word)
            return None
        if self._should_stem(lexeme.text):
            terms = [STEMMED_TERM_PREFIX + prefix + self.stemmer(word) for prefix in prefixes]
        else:
            terms = [prefix + word for prefix in prefixes]
        return combine_or([TermQuery(term) for term in terms])

    def _should_stem(self, raw_word: str) -> bool:
        if self.stemmer is None or self.stemmer.is_none():
            return False
        if self.stemming_strategy is StemStrategy.STEM_ALL:
            return True
        if self.stemming_strategy is StemStrategy.STEM_SOME:
            return not raw_word[:1].isupper()
        return False

    def _correct_spelling(self, query_string: str, lexemes: list[_Lexeme]) -> str:
        if self.database is None:
            return ""
        spellings = self.database.spellings()
        if not spellings:
            return ""
        corrected = query_string
        changed = False
        for lexeme in reversed(lexemes):
            if lexeme.kind != "word" or lexeme.field or lexeme.wildcard:
                continue
            suggestion = suggest_spelling(lexeme.text, spellings)
            if suggestion is None:
                continue
            corrected = corrected[: lexeme.start] + suggestion + corrected[lexeme.end :]
            changed = True
        if changed:
            logger.debug("Spelling correction %r -> %r", query_string, corrected)
        return corrected if changed else ""
