"""Registry of named indexes and the federated views built over them.

The registry owns every open index. Besides per-name lookups it keeps one
aggregate view over all indexes and one per language. Aggregates cannot
drop a member, so any removal or overwrite rebuilds the affected views
from the current entries; a brand new name is appended in place.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
import logging
import threading
from typing import TYPE_CHECKING

from search_bridge.errors import (
    IndexNotFoundError,
    InvalidPathError,
    ReservedIndexNameError,
    UnsupportedLanguageError,
)
from search_bridge.executor import execute, fix
from search_bridge.observability.metrics import (
    INDEX_COUNT,
    METADATA_FAULTS,
    QUERY_LATENCY,
    VIEW_REBUILDS,
    track_latency,
)
from search_bridge.prefix_store import STANDARD_PREFIXES, PrefixStore
from search_bridge.query_config import MetadataFault, QueryConfig, resolve_prefixes, resolve_stopwords
from search_bridge.search import NO_STEMMER, Database, DatabaseError, DatabaseOpeningError, MultiDatabase
from search_bridge.stemmers import StemmerCache


if TYPE_CHECKING:
    from search_bridge.catalog import Catalog
    from search_bridge.executor import FixResult, QueryOptions, QueryResult

logger = logging.getLogger(__name__)

RESERVED_PREFIX = "_"


@dataclass(frozen=True)
class IndexEntry:
    """One registered index and the configuration derived from it."""

    name: str
    path: str
    language: str
    database: Database
    query_config: QueryConfig
    metadata_faults: tuple[MetadataFault, ...] = ()


def rebuild_view(members: Iterable[Database]) -> MultiDatabase:
    """Build a fresh aggregate holding exactly ``members``."""
    view = MultiDatabase()
    for database in members:
        view.add_database(database)
    return view


def is_reserved_name(name: str) -> bool:
    return name.startswith(RESERVED_PREFIX)


class IndexRegistry:
    """Named indexes, their query configuration and the federated views over them.

    Usage:
        registry = IndexRegistry(catalog=JsonCatalog(cache_dir))
        registry.restore()
        registry.create_index("docs", "/srv/indexes/docs", "en")
        registry.query_language("en", QueryOptions(q="install", limit=10))
    """

    def __init__(self, catalog: Catalog | None = None) -> None:
        self._entries: dict[str, IndexEntry] = {}
        self._all_view = MultiDatabase()
        self._language_views: dict[str, MultiDatabase] = {}
        self._prefix_store = PrefixStore()
        self._stemmers = StemmerCache()
        self._catalog = catalog
        self._lock = threading.RLock()

    @property
    def prefix_store(self) -> PrefixStore:
        return self._prefix_store

    @property
    def stemmers(self) -> StemmerCache:
        return self._stemmers

    @property
    def all_view(self) -> MultiDatabase:
        return self._all_view

    def language_view(self, language: str) -> MultiDatabase | None:
        return self._language_views.get(language)

    def has_index(self, name: str) -> bool:
        return name in self._entries

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get_entry(self, name: str) -> IndexEntry:
        """Return the entry registered under ``name``.

        Raises:
            IndexNotFoundError: If no index has that name.
        """
        entry = self._entries.get(name)
        if entry is None:
            raise IndexNotFoundError(name)
        return entry

    def index_path(self, name: str) -> str:
        return self.get_entry(name).path

    def index_language(self, name: str) -> str:
        return self.get_entry(name).language

    def list_indexes(self) -> list[str]:
        return sorted(self._entries)

    def languages(self) -> list[str]:
        """Languages that currently have at least one registered index."""
        return sorted(self._language_views)

    def create_index(self, name: str, path: str, language: str = NO_STEMMER) -> IndexEntry:
        """Open the index at ``path`` and register it as ``name``, replacing any previous one.

        Raises:
            InvalidPathError: If ``path`` holds no valid index.
            UnsupportedLanguageError: If ``language`` has no stemmer.
            ReservedIndexNameError: If ``name`` is an aggregate name.
            OSError: If the catalog cannot be written; the registry is left unchanged.
        """
        if is_reserved_name(name):
            raise ReservedIndexNameError(name)
        language = language or NO_STEMMER
        with self._lock:
            entry = self._open_entry(name, str(path), language)
            if self._catalog is not None:
                try:
                    self._catalog.set_entry(name, entry.path, language)
                except Exception:
                    entry.database.close()
                    raise
            self._register(entry)
        logger.info("Registered index %s at %s (language %s)", name, entry.path, language)
        return entry

    def remove_index(self, name: str) -> None:
        """Unregister ``name`` and rebuild the views it belonged to.

        Raises:
            IndexNotFoundError: If no index has that name.
        """
        if is_reserved_name(name):
            raise ReservedIndexNameError(name)
        with self._lock:
            entry = self.get_entry(name)
            if self._catalog is not None:
                self._catalog.remove_entry(name)
            del self._entries[name]
            self._rebuild_all()
            self._rebuild_language(entry.language)
            entry.database.close()
            INDEX_COUNT.set(len(self._entries))
        logger.info("Removed index %s", name)

    def query_index(self, name: str, options: QueryOptions) -> QueryResult:
        with self._lock:
            entry = self.get_entry(name)
            with track_latency(QUERY_LATENCY, target="index"):
                return execute(entry.database, entry.query_config, options)

    def query_all(self, options: QueryOptions) -> QueryResult:
        """Query every registered index, using the union of all known prefixes."""
        with self._lock:
            config = QueryConfig(
                stemmer=self._stemmers.none,
                prefixes=self._prefix_store.get_all() or STANDARD_PREFIXES,
            )
            with track_latency(QUERY_LATENCY, target="all"):
                return execute(self._all_view, config, options)

    def query_language(self, language: str, options: QueryOptions) -> QueryResult:
        """Query the indexes registered under ``language``.

        A language without indexes behaves like an empty index.
        """
        with self._lock:
            view = self._language_views.get(language)
            if view is None:
                view = MultiDatabase()
                config = QueryConfig(stemmer=self._stemmers.none, prefixes=STANDARD_PREFIXES)
            else:
                config = QueryConfig(
                    stemmer=self._stemmers.get(language),
                    prefixes=self._prefix_store.get(language) or STANDARD_PREFIXES,
                )
            with track_latency(QUERY_LATENCY, target="language"):
                return execute(view, config, options)

    def fix_index(self, name: str, query_string: str) -> FixResult:
        with self._lock:
            entry = self.get_entry(name)
            return fix(entry.database, entry.query_config, query_string)

    def restore(self) -> int:
        """Re-register every catalog entry; entries that fail are dropped from the catalog.

        Returns:
            Number of indexes restored.
        """
        if self._catalog is None:
            return 0
        restored = 0
        for name, catalog_entry in self._catalog.get_entries().items():
            try:
                if is_reserved_name(name):
                    raise ReservedIndexNameError(name)
                with self._lock:
                    self._register(self._open_entry(name, catalog_entry.path, catalog_entry.lang or NO_STEMMER))
            except (InvalidPathError, UnsupportedLanguageError, ReservedIndexNameError) as exc:
                logger.warning("Dropping catalog entry %s: %s", name, exc)
                self._catalog.remove_entry(name)
                continue
            restored += 1
        logger.info("Restored %d of the catalogued indexes", restored)
        return restored

    def close(self) -> None:
        with self._lock:
            for entry in self._entries.values():
                entry.database.close()
            self._entries.clear()
            self._all_view = MultiDatabase()
            self._language_views.clear()
            INDEX_COUNT.set(0)

    def _open_entry(self, name: str, path: str, language: str) -> IndexEntry:
        try:
            database = Database(path)
        except DatabaseOpeningError as exc:
            raise InvalidPathError(path, str(exc)) from exc

        try:
            stemmer = self._stemmers.get(language)
            prefixes, prefix_fault = resolve_prefixes(database)
            stopwords, stopword_fault = resolve_stopwords(database)
        except UnsupportedLanguageError:
            database.close()
            raise
        except DatabaseError as exc:
            database.close()
            raise InvalidPathError(path, str(exc)) from exc

        faults = tuple(fault for fault in (prefix_fault, stopword_fault) if fault is not None)
        for fault in faults:
            logger.warning("Index %s: %s %s, using defaults", name, fault.key, fault.reason)
            METADATA_FAULTS.labels(key=fault.key).inc()

        return IndexEntry(
            name=name,
            path=path,
            language=language,
            database=database,
            query_config=QueryConfig(stemmer=stemmer, prefixes=prefixes, stopwords=stopwords),
            metadata_faults=faults,
        )

    def _register(self, entry: IndexEntry) -> None:
        self._prefix_store.store_map(entry.language, entry.query_config.prefixes)
        previous = self._entries.get(entry.name)
        self._entries[entry.name] = entry
        if previous is None:
            self._all_view.add_database(entry.database)
            self._language_views.setdefault(entry.language, MultiDatabase()).add_database(entry.database)
        else:
            self._rebuild_all()
            self._rebuild_language(entry.language)
            if previous.language != entry.language:
                self._rebuild_language(previous.language)
            previous.database.close()
        INDEX_COUNT.set(len(self._entries))

    def _rebuild_all(self) -> None:
        self._all_view = rebuild_view(entry.database for entry in self._entries.values())
        VIEW_REBUILDS.labels(view="all").inc()

    def _rebuild_language(self, language: str) -> None:
        members = [entry.database for entry in self._entries.values() if entry.language == language]
        if members:
            self._language_views[language] = rebuild_view(members)
        else:
            self._language_views.pop(language, None)
        VIEW_REBUILDS.labels(view=language).inc()
