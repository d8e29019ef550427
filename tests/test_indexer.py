"""Tests for search index builder."""

from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from documenter_search_index import codec
from documenter_search_index.database import RecordDatabase
from documenter_search_index.indexer import SearchIndexBuilder
from documenter_search_index.models import SearchIndex
from documenter_search_index.validation import validate


@pytest.fixture
def builder() -> SearchIndexBuilder:
    """Create a builder instance.

    Returns:
        SearchIndexBuilder instance.
    """
    return SearchIndexBuilder()


def write_docs(docs_dir: Path) -> None:
    """Write a small documentation tree.

    Args:
        docs_dir: Directory to create the pages in.
    """
    docs_dir.mkdir(parents=True, exist_ok=True)
    (docs_dir / "index.rst").write_text("""
Epidemics
=========

Documentation for Epidemics.

.. docstring:: Epidemics.Population
   :category: type

   Population(name, demographyvector, initialconditions, contact_matrix)
""")
    (docs_dir / "guide.rst").write_text("""
Guide
=====

Running a model.
""")
    api_dir = docs_dir / "api"
    api_dir.mkdir(exist_ok=True)
    (api_dir / "models.rest").write_text("""
Models
======

.. docstring:: Epidemics.seir!
   :category: method
   :anchor: Epidemics.seir!-NTuple{4, Any}

   seir!(du, u, parameters, t)
""")


def test_build_from_path(builder: SearchIndexBuilder, tmp_path: Path) -> None:
    """Test building from a local directory."""
    docs_dir = tmp_path / "src"
    write_docs(docs_dir)

    index = builder.build_from_path(docs_dir)

    assert index.frozen
    assert index.pages() == ["Epidemics", "Models", "Guide"]
    assert [record.location for record in index] == [
        "#Epidemics",
        "",
        "#Epidemics.Population",
        "api/models/#Models",
        "api/models/#Epidemics.seir!-NTuple{4, Any}",
        "guide/#Guide",
        "guide/",
    ]
    assert validate(index) == []


def test_build_is_reproducible(builder: SearchIndexBuilder, tmp_path: Path) -> None:
    """Test that unchanged sources give byte-identical output."""
    docs_dir = tmp_path / "src"
    write_docs(docs_dir)

    first = codec.dumps(builder.build_from_path(docs_dir))
    second = codec.dumps(builder.build_from_path(docs_dir))

    assert first == second


def test_build_from_path_nonexistent(builder: SearchIndexBuilder, tmp_path: Path) -> None:
    """Test building from a nonexistent path raises error."""
    with pytest.raises(ValueError, match="Documentation path does not exist"):
        builder.build_from_path(tmp_path / "nonexistent")


def test_build_skips_invalid_files(builder: SearchIndexBuilder, tmp_path: Path) -> None:
    """Test that undecodable files are skipped gracefully."""
    docs_dir = tmp_path / "src"
    docs_dir.mkdir()
    (docs_dir / "valid.rst").write_text("""
Valid
=====

Valid content.
""")
    (docs_dir / "invalid.rst").write_bytes(b"\xff\xfe")

    index = builder.build_from_path(docs_dir)

    assert index.pages() == ["Valid"]
    assert len(index) == 2


def test_build_ignores_other_files(builder: SearchIndexBuilder, tmp_path: Path) -> None:
    """Test that only RST sources are indexed."""
    docs_dir = tmp_path / "src"
    docs_dir.mkdir()
    (docs_dir / "notes.txt").write_text("Not a page.")
    (docs_dir / "page.rst").write_text("A page without a title.")

    index = builder.build_from_path(docs_dir)

    assert [record.page for record in index] == ["Page"]


def test_write_replaces_previous_index(builder: SearchIndexBuilder, tmp_path: Path) -> None:
    """Test that writing replaces the previous payload."""
    docs_dir = tmp_path / "src"
    write_docs(docs_dir)
    output_path = tmp_path / "build" / "search_index.js"
    output_path.parent.mkdir()
    output_path.write_text("var documenterSearchIndex = {\"docs\":[]}")

    index = builder.build_from_path(docs_dir)
    builder.write(index, output_path)

    assert codec.load(output_path) == index
    assert list(output_path.parent.iterdir()) == [output_path]


def test_build_to_database(builder: SearchIndexBuilder, tmp_path: Path) -> None:
    """Test loading a built index into the record database."""
    docs_dir = tmp_path / "src"
    write_docs(docs_dir)
    database = RecordDatabase(tmp_path / "test.db")

    count = builder.build_to_database(builder.build_from_path(docs_dir), database)

    assert count == 7
    assert database.count() == 7
    assert database.search("seir")[0].category == "method"


def test_build_from_git(builder: SearchIndexBuilder) -> None:
    """Test building from a cloned repository."""

    def fake_clone(repo_url: str, target_path: Path, branch: str, docs_path: str, shallow: bool) -> None:
        write_docs(target_path / docs_path)

    with patch.object(builder, "_clone_repository", side_effect=fake_clone) as mock_clone:
        index = builder.build_from_git("https://example.com/Epidemics.jl.git", branch="dev")

    assert len(index) == 7
    args = mock_clone.call_args[0]
    assert args[0] == "https://example.com/Epidemics.jl.git"
    assert args[2] == "dev"
    assert args[3] == "docs/src"
    assert args[4] is True


@patch("subprocess.run")
def test_clone_repository(mock_run: Mock, builder: SearchIndexBuilder, tmp_path: Path) -> None:
    """Test that clone_repository runs correct git commands."""
    target_path = tmp_path / "repository"

    builder._clone_repository("https://example.com/Epidemics.jl.git", target_path, "main", "docs/src", shallow=True)

    # Verify git clone was called
    assert mock_run.call_count == 2
    clone_call = mock_run.call_args_list[0]
    assert "clone" in clone_call[0][0]
    assert "--branch" in clone_call[0][0]
    assert "main" in clone_call[0][0]
    assert "https://example.com/Epidemics.jl.git" in clone_call[0][0]

    # Verify sparse checkout was configured
    sparse_call = mock_run.call_args_list[1]
    assert "sparse-checkout" in sparse_call[0][0]
    assert "docs/src" in sparse_call[0][0]


@patch("subprocess.run")
def test_clone_repository_without_sparse(mock_run: Mock, builder: SearchIndexBuilder, tmp_path: Path) -> None:
    """Test clone without sparse checkout."""
    target_path = tmp_path / "repository"

    builder._clone_repository("https://example.com/Epidemics.jl.git", target_path, "main", "docs/src", shallow=False)

    # Should only have one call (git clone, no sparse checkout)
    assert mock_run.call_count == 1
    assert "clone" in mock_run.call_args[0][0]
    assert "--depth" not in mock_run.call_args[0][0]


def test_write_failure_removes_temp_file(builder: SearchIndexBuilder, tmp_path: Path) -> None:
    """Test that a failed write leaves neither a temp file nor a changed payload."""
    output_path = tmp_path / "search_index.js"
    output_path.write_text('var documenterSearchIndex = {"docs":[]}')

    def partial_dump(index: object, path: Path) -> None:
        path.write_text("var documenterSearchIndex = {")
        raise OSError("disk full")

    with patch("documenter_search_index.indexer.codec.dump", side_effect=partial_dump):
        with pytest.raises(OSError, match="disk full"):
            builder.write(SearchIndex(), output_path)

    assert list(tmp_path.iterdir()) == [output_path]
    assert output_path.read_text() == 'var documenterSearchIndex = {"docs":[]}'
