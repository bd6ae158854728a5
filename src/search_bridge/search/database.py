"""Read access to SQLite-backed index directories and their aggregates.

An index is a directory holding ``index.db``. Postings store packed
``array("I")`` position blobs next to the within-document frequency, and
the ``index_info`` table carries the index uuid. Aggregates can only gain
children: there is deliberately no way to detach one.
"""

from __future__ import annotations

from array import array
from contextlib import contextmanager
import logging
from pathlib import Path
import sqlite3
import threading
from typing import TYPE_CHECKING

from search_bridge.search.document import Document
from search_bridge.search.sqlite_pragmas import apply_read_pragmas


if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.db"

SCHEMA = """
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS index_info (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS documents (
    doc_id INTEGER PRIMARY KEY AUTOINCREMENT,
    data TEXT NOT NULL,
    length INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS postings (
    term TEXT NOT NULL,
    doc_id INTEGER NOT NULL,
    wdf INTEGER NOT NULL,
    positions BLOB,
    PRIMARY KEY (term, doc_id)
) WITHOUT ROWID;
CREATE TABLE IF NOT EXISTS doc_values (
    doc_id INTEGER NOT NULL,
    slot TEXT NOT NULL,
    value TEXT NOT NULL,
    PRIMARY KEY (doc_id, slot)
) WITHOUT ROWID;
CREATE TABLE IF NOT EXISTS spellings (
    word TEXT PRIMARY KEY,
    frequency INTEGER NOT NULL
);
"""

REQUIRED_TABLES = frozenset({"metadata", "index_info", "documents", "postings", "doc_values", "spellings"})


class DatabaseError(Exception):
    """Base error for index database access."""


class DatabaseOpeningError(DatabaseError):
    """Raised when a path does not hold a valid index."""


class DocNotFoundError(DatabaseError):
    """Raised when a document id is not present in an index."""


class Posting:
    """One entry of a term's posting list."""

    __slots__ = ("doc_id", "doc_length", "wdf")

    def __init__(self, doc_id: int, wdf: int, doc_length: int) -> None:
        self.doc_id = doc_id
        self.wdf = wdf
        self.doc_length = doc_length

    def __repr__(self) -> str:
        return f"Posting(doc_id={self.doc_id}, wdf={self.wdf}, doc_length={self.doc_length})"


def index_file(path: str | Path) -> Path:
    return Path(path) / INDEX_FILENAME


class SQLiteConnectionPool:
    """Thread-local read connections, all closed together."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._local = threading.local()
        self._connections: list[sqlite3.Connection] = []
        self._lock = threading.Lock()

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        """Get a thread-local connection."""
        connection = getattr(self._local, "connection", None)
        if connection is None:
            connection = self._create_connection()
            self._local.connection = connection
        yield connection

    def _create_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False, cached_statements=32)
        apply_read_pragmas(conn)
        with self._lock:
            self._connections.append(conn)
        return conn

    def close_all(self) -> None:
        with self._lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            try:
                conn.close()
            except sqlite3.Error as exc:
                logger.warning("Failed to close SQLite connection for %s: %s", self.db_path, exc)
        self._local = threading.local()


class Database:
    """A single index opened for reading.

    Raises:
        DatabaseOpeningError: If ``path`` is not a directory holding a valid
            ``index.db``.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        db_path = index_file(self.path)
        if not self.path.is_dir() or not db_path.is_file():
            raise DatabaseOpeningError(f"No index found at {self.path}")
        self._validate(db_path)
        self._pool = SQLiteConnectionPool(db_path)

    @staticmethod
    def _validate(db_path: Path) -> None:
        conn = None
        try:
            conn = sqlite3.connect(db_path)
            rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
            uuid_row = conn.execute("SELECT value FROM index_info WHERE key = 'uuid'").fetchone()
        except sqlite3.Error as exc:
            raise DatabaseOpeningError(f"Invalid index at {db_path.parent}: {exc}") from exc
        finally:
            if conn is not None:
                conn.close()
        missing = REQUIRED_TABLES - {row[0] for row in rows}
        if missing or not uuid_row:
            raise DatabaseOpeningError(f"Invalid index at {db_path.parent}: missing {sorted(missing) or ['uuid']}")

    def _query(self, sql: str, params: tuple = ()) -> list[tuple]:
        try:
            with self._pool.get_connection() as conn:
                return conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise DatabaseError(f"Query against {self.path} failed: {exc}") from exc

    def sub_databases(self) -> list[Database]:
        return [self]

    def get_metadata(self, key: str) -> str:
        """Return the metadata value stored under ``key``, or "" if absent."""
        rows = self._query("SELECT value FROM metadata WHERE key = ?", (key,))
        return rows[0][0] if rows else ""

    def get_uuid(self) -> str:
        """Return the index uuid, or "" when the index holds no documents."""
        if not self.get_doccount():
            return ""
        rows = self._query("SELECT value FROM index_info WHERE key = 'uuid'")
        return rows[0][0] if rows else ""

    def get_doccount(self) -> int:
        return int(self._query("SELECT COUNT(*) FROM documents")[0][0])

    def get_total_length(self) -> int:
        return int(self._query("SELECT COALESCE(SUM(length), 0) FROM documents")[0][0])

    def get_termfreq(self, term: str) -> int:
        return int(self._query("SELECT COUNT(*) FROM postings WHERE term = ?", (term,))[0][0])

    def postlist(self, term: str) -> list[Posting]:
        rows = self._query(
            "SELECT p.doc_id, p.wdf, d.length FROM postings p JOIN documents d ON d.doc_id = p.doc_id "
            "WHERE p.term = ? ORDER BY p.doc_id",
            (term,),
        )
        return [Posting(doc_id=int(doc_id), wdf=int(wdf), doc_length=int(length)) for doc_id, wdf, length in rows]

    def positionlist(self, term: str, doc_id: int) -> list[int]:
        rows = self._query("SELECT positions FROM postings WHERE term = ? AND doc_id = ?", (term, doc_id))
        positions = array("I")
        if rows and rows[0][0]:
            positions.frombytes(rows[0][0])
        return list(positions)

    def allterms(self, prefix: str = "") -> list[str]:
        if not prefix:
            rows = self._query("SELECT DISTINCT term FROM postings ORDER BY term")
        else:
            rows = self._query(
                "SELECT DISTINCT term FROM postings WHERE substr(term, 1, ?) = ? ORDER BY term",
                (len(prefix), prefix),
            )
        return [row[0] for row in rows]

    def all_doc_ids(self) -> list[int]:
        return [int(row[0]) for row in self._query("SELECT doc_id FROM documents ORDER BY doc_id")]

    def get_value(self, doc_id: int, slot: str | int) -> str:
        rows = self._query("SELECT value FROM doc_values WHERE doc_id = ? AND slot = ?", (doc_id, str(slot)))
        return rows[0][0] if rows else ""

    def get_document(self, doc_id: int) -> Document:
        rows = self._query("SELECT data FROM documents WHERE doc_id = ?", (doc_id,))
        if not rows:
            raise DocNotFoundError(f"Document {doc_id} not found in {self.path}")
        values = self._query("SELECT slot, value FROM doc_values WHERE doc_id = ?", (doc_id,))
        return Document(data=rows[0][0], values=dict(values), doc_id=doc_id)

    def spellings(self) -> dict[str, int]:
        return {word: int(freq) for word, freq in self._query("SELECT word, frequency FROM spellings")}

    def close(self) -> None:
        self._pool.close_all()

    def __repr__(self) -> str:
        return f"Database({str(self.path)!r})"


class MultiDatabase:
    """Aggregate of index databases searched as one collection.

    Children can be added but never removed; callers that need to drop a
    member build a fresh aggregate.
    """

    def __init__(self) -> None:
        self._databases: list[Database] = []

    def add_database(self, database: Database | MultiDatabase) -> None:
        self._databases.extend(database.sub_databases())

    def sub_databases(self) -> list[Database]:
        return list(self._databases)

    def get_uuid(self) -> str:
        """Join the uuids of non-empty children; "" when nothing is searchable."""
        return ":".join(uuid for uuid in (db.get_uuid() for db in self._databases) if uuid)

    def get_doccount(self) -> int:
        return sum(db.get_doccount() for db in self._databases)

    def get_metadata(self, key: str) -> str:
        for database in self._databases:
            value = database.get_metadata(key)
            if value:
                return value
        return ""

    def spellings(self) -> dict[str, int]:
        merged: dict[str, int] = {}
        for database in self._databases:
            for word, freq in database.spellings().items():
                merged[word] = merged.get(word, 0) + freq
        return merged

    def __len__(self) -> int:
        return len(self._databases)

    def __contains__(self, database: object) -> bool:
        return any(child is database for child in self._databases)

    def __repr__(self) -> str:
        return f"MultiDatabase({self._databases!r})"
