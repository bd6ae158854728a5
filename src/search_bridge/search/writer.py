"""Index creation: writable databases and text-to-term generation."""

from __future__ import annotations

from array import array
import logging
from pathlib import Path
import sqlite3
from types import TracebackType
from typing import TYPE_CHECKING
from uuid import uuid4

from search_bridge.search.analyzers import WordAnalyzer
from search_bridge.search.database import SCHEMA, DatabaseError, index_file
from search_bridge.search.sqlite_pragmas import apply_write_pragmas


if TYPE_CHECKING:
    from search_bridge.search.analyzers import Stem
    from search_bridge.search.document import Document

logger = logging.getLogger(__name__)

STEMMED_TERM_PREFIX = "Z"


class WritableDatabase:
    """An index opened for writing; creates the directory and schema on demand."""

    def __init__(self, path: str | Path, *, overwrite: bool = False) -> None:
        self.path = Path(path)
        self.path.mkdir(parents=True, exist_ok=True)
        db_path = index_file(self.path)
        if overwrite:
            for candidate in (db_path, db_path.with_name(db_path.name + "-wal"), db_path.with_name(db_path.name + "-shm")):
                candidate.unlink(missing_ok=True)
        try:
            self._conn = sqlite3.connect(db_path, check_same_thread=False)
            apply_write_pragmas(self._conn)
            self._conn.executescript(SCHEMA)
            self._conn.execute("INSERT OR IGNORE INTO index_info (key, value) VALUES ('uuid', ?)", (str(uuid4()),))
            self._conn.commit()
        except sqlite3.Error as exc:
            raise DatabaseError(f"Failed to create index at {self.path}: {exc}") from exc

    def add_document(self, document: Document) -> int:
        """Store a document and its postings; returns the new document id."""
        try:
            cursor = self._conn.execute(
                "INSERT INTO documents (data, length) VALUES (?, ?)",
                (document.data, document.length),
            )
            doc_id = int(cursor.lastrowid)
            self._conn.executemany(
                "INSERT INTO postings (term, doc_id, wdf, positions) VALUES (?, ?, ?, ?)",
                [
                    (term, doc_id, entry.wdf, array("I", sorted(entry.positions)).tobytes() if entry.positions else None)
                    for term, entry in document.terms.items()
                ],
            )
            self._conn.executemany(
                "INSERT INTO doc_values (doc_id, slot, value) VALUES (?, ?, ?)",
                [(doc_id, slot, value) for slot, value in document.values.items()],
            )
        except sqlite3.Error as exc:
            raise DatabaseError(f"Failed to add document to {self.path}: {exc}") from exc
        document.doc_id = doc_id
        return doc_id

    def set_metadata(self, key: str, value: str) -> None:
        """Set a metadata entry; an empty value removes it."""
        if value:
            self._conn.execute("INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)", (key, value))
        else:
            self._conn.execute("DELETE FROM metadata WHERE key = ?", (key,))

    def add_spelling(self, word: str, freq_inc: int = 1) -> None:
        self._conn.execute(
            "INSERT INTO spellings (word, frequency) VALUES (?, ?) "
            "ON CONFLICT(word) DO UPDATE SET frequency = frequency + excluded.frequency",
            (word, freq_inc),
        )

    def get_doccount(self) -> int:
        return int(self._conn.execute("SELECT COUNT(*) FROM documents").fetchone()[0])

    def commit(self) -> None:
        try:
            self._conn.commit()
            self._conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
        except sqlite3.Error as exc:
            raise DatabaseError(f"Failed to commit index at {self.path}: {exc}") from exc

    def close(self) -> None:
        self.commit()
        self._conn.close()

    def __enter__(self) -> WritableDatabase:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            self._conn.rollback()
            self._conn.close()
            return
        self.close()


class TermGenerator:
    """Turns text into positional terms on a document.

    Every word is indexed unstemmed as ``prefix + word`` with its position.
    With a stemmer, the stemmed form is indexed as ``Z + prefix + stem``.
    """

    FLAG_SPELLING = 1

    def __init__(self, stemmer: Stem | None = None, *, flags: int = 0) -> None:
        self.stemmer = stemmer
        self.flags = flags
        self._analyzer = WordAnalyzer()
        self._document: Document | None = None
        self._database: WritableDatabase | None = None
        self._termpos = 0

    def set_stemmer(self, stemmer: Stem | None) -> None:
        self.stemmer = stemmer

    def set_document(self, document: Document) -> None:
        self._document = document
        self._termpos = 0

    def set_database(self, database: WritableDatabase) -> None:
        self._database = database

    def get_termpos(self) -> int:
        return self._termpos

    def increase_termpos(self, delta: int = 100) -> None:
        self._termpos += delta

    def index_text(self, text: str, wdf_inc: int = 1, prefix: str = "") -> None:
        self._index(text, wdf_inc, prefix, with_positions=True)

    def index_text_without_positions(self, text: str, wdf_inc: int = 1, prefix: str = "") -> None:
        self._index(text, wdf_inc, prefix, with_positions=False)

    def _index(self, text: str, wdf_inc: int, prefix: str, *, with_positions: bool) -> None:
        if self._document is None:
            raise DatabaseError("TermGenerator has no document; call set_document() first")
        stem = self.stemmer if self.stemmer is not None and not self.stemmer.is_none() else None
        spelling = bool(self.flags & self.FLAG_SPELLING) and self._database is not None and not prefix
        for token in self._analyzer(text):
            self._termpos += 1
            term = prefix + token.text
            if with_positions:
                self._document.add_posting(term, self._termpos, wdf_inc)
            else:
                self._document.add_term(term, wdf_inc)
            if stem is not None:
                self._document.add_term(STEMMED_TERM_PREFIX + prefix + stem(token.text), wdf_inc)
            if spelling:
                self._database.add_spelling(token.text)
