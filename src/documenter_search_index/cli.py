"""Command line interface for building, checking and querying search indexes.

Usage:
    documenter-search-index build docs/src -o build/search_index.js
    documenter-search-index validate build/search_index.js
    documenter-search-index search build/search_index.js "seir model" --category method
"""

import argparse
import logging
import sqlite3
import sys
from pathlib import Path

from documenter_search_index import codec
from documenter_search_index.database import RecordDatabase
from documenter_search_index.indexer import SearchIndexBuilder
from documenter_search_index.models import CATEGORIES
from documenter_search_index.validation import validate

logger = logging.getLogger(__name__)


def non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        msg = f"must not be negative: {value}"
        raise argparse.ArgumentTypeError(msg)
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="documenter-search-index",
        description="Build, validate and search documentation search indexes.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser("build", help="Build search_index.js from RST sources")
    build.add_argument("docs_dir", type=Path, help="Documentation source directory")
    build.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path(SearchIndexBuilder.DEFAULT_OUTPUT),
        help="Output path (default: %(default)s)",
    )
    build.add_argument("--db", type=Path, help="Also load the records into this SQLite database")

    check = subparsers.add_parser("validate", help="Check an index file")
    check.add_argument("index_file", type=Path, help="Path to search_index.js")
    check.add_argument("--allow-empty", action="store_true", help="Accept an index without records")

    search = subparsers.add_parser("search", help="Search an index file")
    search.add_argument("index_file", type=Path, help="Path to search_index.js")
    search.add_argument("query", help="Search query")
    search.add_argument("--category", choices=sorted(CATEGORIES), help="Only return this category")
    search.add_argument("--limit", type=non_negative_int, default=10, help="Maximum results (default: %(default)s)")
    search.add_argument(
        "--db",
        type=Path,
        help="Search through this SQLite database instead of scanning; the index is loaded only into an empty database",
    )

    return parser


def run_build(args: argparse.Namespace) -> int:
    builder = SearchIndexBuilder()
    index = builder.build_from_path(args.docs_dir)
    builder.write(index, args.output)
    if args.db:
        builder.build_to_database(index, RecordDatabase(args.db))
    print(f"Indexed {len(index)} records from {len(index.pages())} pages into {args.output}")
    return 0


def run_validate(args: argparse.Namespace) -> int:
    index = codec.load(args.index_file)
    issues = validate(index, require_records=not args.allow_empty)
    if issues:
        for issue in issues:
            print(issue)
        return 1
    print(f"{args.index_file}: {len(index)} records OK")
    return 0


def run_search(args: argparse.Namespace) -> int:
    index = codec.load(args.index_file)
    if args.db:
        database = RecordDatabase(args.db)
        if database.count() == 0:
            logger.info("Loading %d records into empty database %s", len(index), args.db)
            database.replace(index)
        results = database.search(args.query, category=args.category, limit=args.limit)
    else:
        results = index.search(args.query, category=args.category, limit=args.limit)

    for result in results:
        print(f"[{result.category}] {result.title} ({result.page}) -> {result.location or '/'}")
        if result.snippet:
            print(f"    {result.snippet}")
    logger.debug("%d results for %r", len(results), args.query)
    return 0


COMMANDS = {
    "build": run_build,
    "validate": run_validate,
    "search": run_search,
}


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return COMMANDS[args.command](args)
    except (ValueError, OSError, sqlite3.Error) as exc:
        logger.error("%s", exc)
        return 2


if __name__ == "__main__":
    sys.exit(main())
