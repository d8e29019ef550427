"""SQLite FTS5 store for ranked search over index records."""

import re
import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from documenter_search_index.models import IndexRecord, SearchIndex, SearchResult


class RecordDatabase:
    """Manages the SQLite FTS5 database for search index records."""

    def __init__(self, db_path: Path) -> None:
        """Initialise database with the given path.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = db_path
        self._initialise_schema()

    @staticmethod
    def _sanitise_query(query: str) -> str:
        """Sanitise user query for FTS5 MATCH clause.

        FTS5 barewords may only hold word characters. Queries containing
        anything else, or a boolean operator, are quoted so they match as a
        literal phrase.

        Args:
            query: Raw user query string.

        Returns:
            Sanitised query string safe for FTS5 MATCH.
        """
        fts5_special_chars = r"[^\w\s]"

        fts5_operators = re.compile(r"\b(AND|OR|NOT|NEAR)\b", re.IGNORECASE)

        if re.search(fts5_special_chars, query) or fts5_operators.search(query):
            query = query.replace('"', '""')
            return f'"{query}"'

        return query

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager for database connections.

        Yields:
            SQLite connection with Row factory enabled.
        """
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _initialise_schema(self) -> None:
        """Create database schema if it doesn't exist."""
        with self._get_connection() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS records (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    position INTEGER UNIQUE NOT NULL,
                    location TEXT NOT NULL,
                    page TEXT NOT NULL,
                    title TEXT NOT NULL,
                    text TEXT NOT NULL,
                    category TEXT NOT NULL
                );

                CREATE VIRTUAL TABLE IF NOT EXISTS records_fts USING fts5(
                    title,
                    text,
                    content='records',
                    content_rowid='id',
                    tokenize='porter unicode61'
                );

                CREATE TRIGGER IF NOT EXISTS records_ai AFTER INSERT ON records BEGIN
                    INSERT INTO records_fts(rowid, title, text)
                    VALUES (new.id, new.title, new.text);
                END;

                CREATE TRIGGER IF NOT EXISTS records_ad AFTER DELETE ON records BEGIN
                    INSERT INTO records_fts(records_fts, rowid, title, text)
                    VALUES ('delete', old.id, old.title, old.text);
                END;

                CREATE TRIGGER IF NOT EXISTS records_au AFTER UPDATE ON records BEGIN
                    INSERT INTO records_fts(records_fts, rowid, title, text)
                    VALUES ('delete', old.id, old.title, old.text);
                    INSERT INTO records_fts(rowid, title, text)
                    VALUES (new.id, new.title, new.text);
                END;

                CREATE INDEX IF NOT EXISTS idx_records_category ON records(category);
                CREATE INDEX IF NOT EXISTS idx_records_location ON records(location);
            """)
            conn.commit()

    def replace(self, index: SearchIndex) -> int:
        """Replace every stored record with the records of an index.

        Args:
            index: Index whose records become the database contents.

        Returns:
            Number of records stored.
        """
        with self._get_connection() as conn:
            conn.execute("DELETE FROM records")
            conn.executemany(
                """
                INSERT INTO records (position, location, page, title, text, category)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (position, record.location, record.page, record.title, record.text, record.category)
                    for position, record in enumerate(index)
                ],
            )
            conn.commit()
        return len(index)

    def search(self, query: str, category: str | None = None, limit: int = 10) -> list[SearchResult]:
        """Search records using FTS5.

        Args:
            query: Search query string.
            category: Optional category filter.
            limit: Maximum number of results.

        Returns:
            List of SearchResult instances ordered by relevance.

        Raises:
            ValueError: If limit is negative.
        """
        if limit < 0:
            msg = f"limit must not be negative: {limit}"
            raise ValueError(msg)
        # Queries without a single token match nothing
        if not re.search(r"\w", query):
            return []

        sanitised_query = self._sanitise_query(query)

        with self._get_connection() as conn:
            sql = """
                SELECT
                    r.location,
                    r.page,
                    r.title,
                    r.category,
                    snippet(records_fts, 1, '<mark>', '</mark>', '...', 64) as snippet,
                    bm25(records_fts, 5.0, 1.0) as score
                FROM records_fts
                JOIN records r ON records_fts.rowid = r.id
                WHERE records_fts MATCH ?
            """
            params: list[str | int] = [sanitised_query]

            if category:
                sql += " AND r.category = ?"
                params.append(category)

            sql += " ORDER BY score, r.position LIMIT ?"
            params.append(limit)

            cursor = conn.execute(sql, params)
            return [
                SearchResult(
                    location=row["location"],
                    page=row["page"],
                    title=row["title"],
                    category=row["category"],
                    snippet=row["snippet"],
                    score=abs(row["score"]),  # BM25 returns negative scores
                )
                for row in cursor.fetchall()
            ]

    def records_at(self, location: str) -> list[IndexRecord]:
        """Retrieve every record stored at a location.

        Args:
            location: Record location, including any anchor.

        Returns:
            Records in index order.
        """
        with self._get_connection() as conn:
            cursor = conn.execute(
                "SELECT * FROM records WHERE location = ? ORDER BY position",
                (location,),
            )
            return [self._row_to_record(row) for row in cursor.fetchall()]

    def to_index(self) -> SearchIndex:
        """Rebuild a frozen index from the stored records in original order."""
        with self._get_connection() as conn:
            cursor = conn.execute("SELECT * FROM records ORDER BY position")
            return SearchIndex((self._row_to_record(row) for row in cursor.fetchall()), frozen=True)

    def clear(self) -> None:
        """Clear all records from the database."""
        with self._get_connection() as conn:
            conn.execute("DELETE FROM records")
            conn.commit()

    def count(self) -> int:
        """Return the total number of stored records.

        Returns:
            Count of records in the database.
        """
        with self._get_connection() as conn:
            cursor = conn.execute("SELECT COUNT(*) FROM records")
            result = cursor.fetchone()
            return int(result[0]) if result else 0

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> IndexRecord:
        return IndexRecord(
            location=row["location"],
            page=row["page"],
            title=row["title"],
            text=row["text"],
            category=row["category"],
        )
