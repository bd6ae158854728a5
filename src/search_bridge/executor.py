"""Query execution against a single index or a federated view."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
import logging
import math
from typing import TYPE_CHECKING, Any, Literal

import orjson
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from search_bridge.errors import InvalidQueryError
from search_bridge.search import Enquire, MatchAllQuery, ParserFlag, QueryParserError, SimpleStopper


if TYPE_CHECKING:
    from search_bridge.query_config import QueryConfig
    from search_bridge.search import Database, MSetItem, MultiDatabase

logger = logging.getLogger(__name__)

QUERY_FLAGS = ParserFlag.DEFAULT | ParserFlag.WILDCARD | ParserFlag.PURE_NOT

_REQUIRED_PARAMS = ("limit", "offset")


class QueryOptions(BaseModel):
    """Caller-supplied query parameters.

    Exactly one of ``q`` and ``match_all`` must be set. A ``cutoff`` that is
    not a number is ignored; one outside 0-100 is rejected.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    q: str | None = None
    match_all: bool = Field(default=False, alias="matchAll")
    collapse_key: str | None = Field(default=None, alias="collapse")
    limit: int = Field(ge=0)
    offset: int = Field(default=0, ge=0)
    cutoff: float | None = Field(default=None, ge=0, le=100)
    sort_by: str | None = Field(default=None, alias="sortBy")
    order: Literal["asc", "desc"] = "asc"

    @field_validator("cutoff", mode="before")
    @classmethod
    def _ignore_non_numeric_cutoff(cls, value: Any) -> Any:
        if value is None:
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        return None if math.isnan(number) else number

    @field_validator("collapse_key", "sort_by", mode="before")
    @classmethod
    def _empty_as_unset(cls, value: Any) -> Any:
        return value or None

    @model_validator(mode="after")
    def _exactly_one_query(self) -> QueryOptions:
        if (self.q is not None) == self.match_all:
            raise ValueError("exactly one of 'q' and 'matchAll' must be given")
        return self

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> QueryOptions:
        """Build options from request parameters.

        ``limit`` and ``offset`` must be present; ``matchAll`` is a presence flag.

        Raises:
            InvalidQueryError: If the parameters are missing or invalid.
        """
        missing = [name for name in _REQUIRED_PARAMS if name not in params]
        if missing:
            raise InvalidQueryError(f"Missing required query parameters: {', '.join(missing)}")
        data: dict[str, Any] = dict(params)
        if "matchAll" in data:
            data["matchAll"] = True
        return cls.parse(data)

    @classmethod
    def parse(cls, data: Mapping[str, Any]) -> QueryOptions:
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise InvalidQueryError(f"Invalid query parameters: {_describe_validation_error(exc)}") from exc


def _describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        parts.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(parts)


@dataclass(frozen=True)
class QueryResult:
    num_results: int
    offset: int
    results: list[Any] = field(default_factory=list)
    query: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"numResults": self.num_results, "offset": self.offset}
        if self.query is not None:
            payload["query"] = self.query
        payload["results"] = self.results
        return payload


@dataclass(frozen=True)
class FixResult:
    spell_corrected_query: str | None = None
    stop_word_corrected_query: str | None = None

    def to_dict(self) -> dict[str, str]:
        payload: dict[str, str] = {}
        if self.spell_corrected_query is not None:
            payload["spellCorrectedQuery"] = self.spell_corrected_query
        if self.stop_word_corrected_query is not None:
            payload["stopWordCorrectedQuery"] = self.stop_word_corrected_query
        return payload


def execute(target: Database | MultiDatabase, config: QueryConfig, options: QueryOptions) -> QueryResult:
    """Run ``options`` against ``target`` and decode the hits.

    Targets without documents return an empty result before any ranking.

    Raises:
        InvalidQueryError: If the query string cannot be parsed.
    """
    if not target.get_uuid():
        logger.debug("Query against empty target %r short-circuited", target)
        return QueryResult(num_results=0, offset=0, results=[])

    if options.match_all:
        query = MatchAllQuery()
    else:
        parser = config.build_parser(target)
        try:
            query = parser.parse_query(options.q or "", QUERY_FLAGS)
        except QueryParserError as exc:
            raise InvalidQueryError(str(exc), options.q) from exc

    enquire = Enquire(target)
    enquire.set_query(query)
    if options.sort_by:
        enquire.set_sort_by_value(options.sort_by, reverse=options.order == "desc")
    elif options.cutoff is not None:
        enquire.set_cutoff(options.cutoff)
    if options.collapse_key:
        enquire.set_collapse_key(options.collapse_key)

    mset = enquire.get_mset(options.offset, options.limit)
    results = [_decode_payload(item) for item in mset]
    logger.debug("Query %s matched %d (returned %d)", query, mset.matches_estimated, len(results))
    return QueryResult(num_results=len(results), offset=options.offset, results=results, query=options.q)


def fix(target: Database | MultiDatabase, config: QueryConfig, query_string: str) -> FixResult:
    """Suggest spelling and stopword corrections for ``query_string``.

    ``stopWordCorrectedQuery`` is present whenever the target has stopwords.

    Raises:
        InvalidQueryError: If the query string cannot be parsed.
    """
    stop_word_corrected = None
    if config.stopwords:
        stopper = SimpleStopper(config.stopwords)
        stop_word_corrected = " ".join(word for word in query_string.split(" ") if not stopper(word))

    parser = config.build_parser(target)
    try:
        parser.parse_query(query_string, QUERY_FLAGS | ParserFlag.SPELLING_CORRECTION)
    except QueryParserError as exc:
        raise InvalidQueryError(str(exc), query_string) from exc

    return FixResult(
        spell_corrected_query=parser.get_corrected_query_string() or None,
        stop_word_corrected_query=stop_word_corrected,
    )


def _decode_payload(item: MSetItem) -> Any:
    data = item.document.get_data()
    try:
        return orjson.loads(data)
    except orjson.JSONDecodeError:
        logger.warning("Document %d holds a payload that is not JSON; returning it verbatim", item.docid)
        return data
