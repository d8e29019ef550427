"""Read, write, build and search Documenter-style documentation search indexes."""

from documenter_search_index.codec import dump, dumps, load, loads
from documenter_search_index.models import CATEGORIES, IndexRecord, SearchIndex, SearchResult

__all__ = [
    "CATEGORIES",
    "IndexRecord",
    "SearchIndex",
    "SearchResult",
    "dump",
    "dumps",
    "load",
    "loads",
]
