"""Builds search indexes from reStructuredText documentation sources."""

import logging
import subprocess
import tempfile
from pathlib import Path

from documenter_search_index import codec
from documenter_search_index.database import RecordDatabase
from documenter_search_index.models import SearchIndex
from documenter_search_index.parser import PageParser

logger = logging.getLogger(__name__)


class SearchIndexBuilder:
    """Builds a search index from a tree of documentation source pages."""

    SOURCE_SUFFIXES = (".rst", ".rest")
    DEFAULT_DOCS_PATH = "docs/src"
    DEFAULT_OUTPUT = "search_index.js"

    def __init__(self, parser: PageParser | None = None) -> None:
        """Initialise builder.

        Args:
            parser: Page parser, a default PageParser when omitted.
        """
        self.parser = parser or PageParser()

    def build_from_path(self, docs_path: Path) -> SearchIndex:
        """Build an index from a local documentation directory.

        Pages are visited root page first, then in path order, so unchanged
        sources always give the same index.

        Args:
            docs_path: Path to the documentation source directory.

        Returns:
            Frozen SearchIndex.

        Raises:
            ValueError: If the documentation path does not exist.
        """
        if not docs_path.exists():
            msg = f"Documentation path does not exist: {docs_path}"
            raise ValueError(msg)

        source_files = self._find_sources(docs_path)
        logger.info("Found %d RST files to index", len(source_files))

        index = SearchIndex()
        indexed_count = 0
        for file_path in source_files:
            records = self.parser.parse_file(file_path, docs_path)
            if records is None:
                logger.warning("Failed to parse: %s", file_path)
                continue
            index.extend(records)
            indexed_count += 1
            logger.debug("Indexed %d records from %s", len(records), file_path)

        logger.info("Indexed %d pages into %d records", indexed_count, len(index))
        return index.freeze()

    def build_from_git(
        self,
        repo_url: str,
        branch: str = "main",
        docs_path: str = DEFAULT_DOCS_PATH,
        shallow: bool = True,
    ) -> SearchIndex:
        """Clone a repository and build an index from its documentation.

        Args:
            repo_url: URL of the git repository.
            branch: Git branch to clone.
            docs_path: Documentation source directory inside the repository.
            shallow: Whether to do a shallow, sparse clone.

        Returns:
            Frozen SearchIndex.
        """
        with tempfile.TemporaryDirectory() as temp_dir:
            repo_path = Path(temp_dir) / "repository"
            self._clone_repository(repo_url, repo_path, branch, docs_path, shallow)
            return self.build_from_path(repo_path / docs_path)

    def write(self, index: SearchIndex, output_path: Path) -> None:
        """Write the index payload, replacing any previous version wholesale.

        Args:
            index: Index to write.
            output_path: Destination ``search_index.js`` path.
        """
        output_path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = output_path.with_name(output_path.name + ".tmp")
        try:
            codec.dump(index, temp_path)
            temp_path.replace(output_path)
        except Exception:
            temp_path.unlink(missing_ok=True)
            raise
        logger.info("Wrote %d records to %s", len(index), output_path)

    def build_to_database(self, index: SearchIndex, database: RecordDatabase) -> int:
        """Replace the contents of a record database with an index.

        Args:
            index: Index to store.
            database: Target database.

        Returns:
            Number of records stored.
        """
        logger.info("Loading %d records into %s", len(index), database.db_path)
        return database.replace(index)

    def _find_sources(self, docs_path: Path) -> list[Path]:
        files = [path for path in docs_path.rglob("*") if path.is_file() and path.suffix in self.SOURCE_SUFFIXES]

        def order(path: Path) -> tuple[bool, str]:
            relative = path.relative_to(docs_path)
            return PageParser.compute_location(relative) != "", relative.as_posix()

        return sorted(files, key=order)

    def _clone_repository(self, repo_url: str, target_path: Path, branch: str, docs_path: str, shallow: bool) -> None:
        """Clone the documentation repository.

        Args:
            repo_url: URL of the git repository.
            target_path: Directory to clone into.
            branch: Git branch to clone.
            docs_path: Directory to keep in a sparse checkout.
            shallow: Whether to do a shallow clone.
        """
        cmd = ["git", "clone"]
        if shallow:
            cmd.extend(["--depth", "1", "--filter=blob:none", "--sparse"])
        cmd.extend(["--branch", branch, repo_url, str(target_path)])

        logger.info("Cloning %s...", repo_url)
        subprocess.run(cmd, check=True, capture_output=True)  # noqa: S603

        # For sparse checkout, specify only the docs directory
        if shallow:
            logger.info("Setting up sparse checkout for %s...", docs_path)
            subprocess.run(  # noqa: S603
                ["git", "-C", str(target_path), "sparse-checkout", "set", docs_path],  # noqa: S607
                check=True,
                capture_output=True,
            )

        logger.info("Repository cloned successfully")
