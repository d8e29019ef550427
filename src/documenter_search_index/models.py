"""Data models for documentation search indexes."""

from collections import Counter
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, fields
from typing import Any

PAGE = "page"
SECTION = "section"
MODULE = "module"
CONSTANT = "constant"
FUNCTION = "function"
MACRO = "macro"
METHOD = "method"
TYPE = "type"

CATEGORIES = frozenset({PAGE, SECTION, MODULE, CONSTANT, FUNCTION, MACRO, METHOD, TYPE})

SNIPPET_WIDTH = 64


class SearchIndexFormatError(ValueError):
    """Raised when serialized index data does not have the expected shape."""


class SearchIndexFrozenError(RuntimeError):
    """Raised when appending to an index that has been frozen."""


@dataclass(frozen=True)
class IndexRecord:
    """A single searchable entry of the index."""

    location: str
    page: str
    title: str
    text: str
    category: str

    def to_dict(self) -> dict[str, str]:
        """Return the record as a dict with keys in wire order.

        Returns:
            Mapping of field name to value.
        """
        return {field.name: getattr(self, field.name) for field in fields(self)}

    @classmethod
    def from_dict(cls, data: Any, position: int | None = None) -> "IndexRecord":
        """Build a record from decoded JSON data.

        Args:
            data: Decoded JSON value for one record.
            position: Position of the record in the index, for error messages.

        Returns:
            IndexRecord instance.

        Raises:
            SearchIndexFormatError: If the data is not an object or a field is
                missing or not a string.
        """
        where = f"record {position}" if position is not None else "record"
        if not isinstance(data, dict):
            msg = f"{where} is not an object: {type(data).__name__}"
            raise SearchIndexFormatError(msg)

        values = {}
        for field in fields(cls):
            if field.name not in data:
                msg = f"{where} is missing field '{field.name}'"
                raise SearchIndexFormatError(msg)
            value = data[field.name]
            if not isinstance(value, str):
                msg = f"{where} field '{field.name}' is not a string: {type(value).__name__}"
                raise SearchIndexFormatError(msg)
            values[field.name] = value
        return cls(**values)


@dataclass
class SearchResult:
    """Represents a search result."""

    location: str
    page: str
    title: str
    category: str
    snippet: str
    score: float


class SearchIndex:
    """Ordered sequence of index records.

    Records may be appended until the index is frozen; after that the index
    is read-only for the rest of its life.
    """

    def __init__(self, records: Iterable[IndexRecord] = (), frozen: bool = False) -> None:
        self._records: list[IndexRecord] = list(records)
        self._frozen = frozen

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def records(self) -> tuple[IndexRecord, ...]:
        return tuple(self._records)

    def append(self, record: IndexRecord) -> None:
        """Append a record to the end of the index.

        Args:
            record: Record to append.

        Raises:
            SearchIndexFrozenError: If the index has been frozen.
        """
        if self._frozen:
            msg = "Cannot append to a frozen search index"
            raise SearchIndexFrozenError(msg)
        self._records.append(record)

    def extend(self, records: Iterable[IndexRecord]) -> None:
        for record in records:
            self.append(record)

    def freeze(self) -> "SearchIndex":
        self._frozen = True
        return self

    def pages(self) -> list[str]:
        """Return distinct page names in first-seen order."""
        return list(dict.fromkeys(record.page for record in self._records))

    def categories(self) -> Counter[str]:
        return Counter(record.category for record in self._records)

    def search(self, query: str, category: str | None = None, limit: int | None = None) -> list[SearchResult]:
        """Scan the records for entries matching every query term.

        Matching is case-insensitive substring matching against the title and
        text of each record. Records with more terms in their title rank first;
        ties keep index order.

        Args:
            query: Whitespace-separated search terms.
            category: Optional category filter.
            limit: Maximum number of results.

        Returns:
            List of SearchResult instances ordered by relevance.

        Raises:
            ValueError: If limit is negative.
        """
        if limit is not None and limit < 0:
            msg = f"limit must not be negative: {limit}"
            raise ValueError(msg)

        terms = query.lower().split()
        if not terms:
            return []

        scored = []
        for position, record in enumerate(self._records):
            if category is not None and record.category != category:
                continue
            title = record.title.lower()
            text = record.text.lower()
            if not all(term in title or term in text for term in terms):
                continue
            score = sum(2.0 if term in title else 1.0 for term in terms)
            scored.append((score, position, record))

        scored.sort(key=lambda item: (-item[0], item[1]))
        if limit is not None:
            scored = scored[:limit]

        return [
            SearchResult(
                location=record.location,
                page=record.page,
                title=record.title,
                category=record.category,
                snippet=_snippet(record.text, terms),
                score=score,
            )
            for score, _, record in scored
        ]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[IndexRecord]:
        return iter(self._records)

    def __getitem__(self, position: int) -> IndexRecord:
        return self._records[position]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SearchIndex):
            return NotImplemented
        return self._records == other._records

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "open"
        return f"SearchIndex({len(self._records)} records, {state})"


def _snippet(text: str, terms: list[str]) -> str:
    """Cut a window of text around the first matching term."""
    flat = " ".join(text.split())
    lowered = flat.lower()
    hits = [lowered.find(term) for term in terms if term in lowered]
    if not hits:
        return flat[:SNIPPET_WIDTH]

    start = max(min(hits) - SNIPPET_WIDTH // 4, 0)
    end = start + SNIPPET_WIDTH
    snippet = flat[start:end]
    if start > 0:
        snippet = "..." + snippet
    if end < len(flat):
        snippet += "..."
    return snippet
