"""Extract search index records from reStructuredText documentation pages."""

import re
import unicodedata
from pathlib import Path

import docutils.frontend  # type: ignore[import-untyped]
import docutils.nodes  # type: ignore[import-untyped]
import docutils.parsers.rst  # type: ignore[import-untyped]
import docutils.utils  # type: ignore[import-untyped]
from docutils.parsers.rst import Directive, directives  # type: ignore[import-untyped]

from documenter_search_index.models import (
    CONSTANT,
    FUNCTION,
    MACRO,
    METHOD,
    MODULE,
    PAGE,
    SECTION,
    TYPE,
    IndexRecord,
)

SYMBOL_CATEGORIES = (MODULE, CONSTANT, FUNCTION, MACRO, METHOD, TYPE)


class docstring_entry(docutils.nodes.General, docutils.nodes.Element):  # type: ignore[misc]  # noqa: N801
    """Doctree node holding one documented symbol."""


class DocstringDirective(Directive):  # type: ignore[misc]
    """``.. docstring:: Name`` directive recording a documented symbol.

    Options:
        category: One of the symbol categories, ``function`` by default.
        anchor: Anchor of the entry, the symbol name by default.
    """

    required_arguments = 1
    has_content = True
    option_spec = {
        "category": lambda argument: directives.choice(argument, SYMBOL_CATEGORIES),
        "anchor": directives.unchanged_required,
    }

    def run(self) -> list[docutils.nodes.Node]:
        name = self.arguments[0]
        node = docstring_entry()
        node["name"] = name
        node["category"] = self.options.get("category", FUNCTION)
        node["anchor"] = self.options.get("anchor", name)
        node["text"] = "\n".join(self.content)
        return [node]


directives.register_directive("docstring", DocstringDirective)


def slugify(text: str) -> str:
    """Turn a heading into an anchor.

    Args:
        text: Heading text.

    Returns:
        Anchor keeping letters, digits and punctuation, with whitespace
        replaced by hyphens.
    """
    slug = re.sub(r"\s+", "-", text.strip())
    slug = slug.replace("&", "-and-")
    slug = "".join(ch for ch in slug if ch == "-" or ch.isalnum() or unicodedata.category(ch).startswith("P"))
    slug = re.sub(r"-{2,}", "-", slug)
    return slug.strip("-")


class TitleVisitor(docutils.nodes.GenericNodeVisitor):  # type: ignore[misc]
    """Visitor to find the page title (first section header)."""

    def __init__(self, document: docutils.nodes.document) -> None:
        super().__init__(document)
        self.title: str | None = None

    def visit_title(self, node: docutils.nodes.title) -> None:
        if self.title is None:
            self.title = node.astext()

    def visit_docstring_entry(self, node: docstring_entry) -> None:
        raise docutils.nodes.SkipNode

    def default_visit(self, node: docutils.nodes.Node) -> None:
        """Default visit handler (no-op)."""

    def default_departure(self, node: docutils.nodes.Node) -> None:
        """Default departure handler (no-op)."""


class RecordVisitor(docutils.nodes.GenericNodeVisitor):  # type: ignore[misc]
    """Visitor emitting index records in document order."""

    def __init__(self, document: docutils.nodes.document, page: str, location: str) -> None:
        """Initialise record visitor.

        Args:
            document: Docutils document tree.
            page: Display name of the page.
            location: Location of the page, without anchor.
        """
        super().__init__(document)
        self.page = page
        self.location = location
        self.records: list[IndexRecord] = []
        self._anchors: set[str] = set()

    def _unique_anchor(self, heading: str) -> str:
        """Slug the heading, suffixing -1, -2, ... when the page already uses it."""
        base = slugify(heading)
        anchor = base
        repeat = 0
        while anchor in self._anchors:
            repeat += 1
            anchor = f"{base}-{repeat}"
        self._anchors.add(anchor)
        return anchor

    def visit_section(self, node: docutils.nodes.section) -> None:
        """Emit a section record for the section heading.

        Args:
            node: Section node.
        """
        if node.children and isinstance(node[0], docutils.nodes.title):
            heading = node[0].astext()
            self.records.append(
                IndexRecord(
                    location=f"{self.location}#{self._unique_anchor(heading)}",
                    page=self.page,
                    title=heading,
                    text="",
                    category=SECTION,
                )
            )

    def visit_title(self, node: docutils.nodes.title) -> None:
        raise docutils.nodes.SkipNode

    def visit_paragraph(self, node: docutils.nodes.paragraph) -> None:
        """Emit a page record for a paragraph.

        Args:
            node: Paragraph node.

        Raises:
            docutils.nodes.SkipNode: Always raised, the paragraph text is taken whole.
        """
        text = clean_text(node.astext())
        if text:
            self.records.append(
                IndexRecord(location=self.location, page=self.page, title=self.page, text=text, category=PAGE)
            )
        raise docutils.nodes.SkipNode

    def visit_docstring_entry(self, node: docstring_entry) -> None:
        """Emit a record for a documented symbol.

        Args:
            node: Docstring entry node.

        Raises:
            docutils.nodes.SkipNode: Always raised, the node has no children.
        """
        self.records.append(
            IndexRecord(
                location=f"{self.location}#{node['anchor']}",
                page=self.page,
                title=node["name"],
                text=node["text"],
                category=node["category"],
            )
        )
        raise docutils.nodes.SkipNode

    def visit_literal_block(self, node: docutils.nodes.literal_block) -> None:
        raise docutils.nodes.SkipNode

    def visit_comment(self, node: docutils.nodes.comment) -> None:
        raise docutils.nodes.SkipNode

    def visit_system_message(self, node: docutils.nodes.system_message) -> None:
        raise docutils.nodes.SkipNode

    def default_visit(self, node: docutils.nodes.Node) -> None:
        """Default visit handler (no-op)."""

    def default_departure(self, node: docutils.nodes.Node) -> None:
        """Default departure handler (no-op)."""


def clean_text(text: str) -> str:
    """Reduce leftover RST roles to their text and collapse whitespace."""
    text = re.sub(r":[\w-]+:`([^`]+)`", r"\1", text)
    text = re.sub(r"\s+", " ", text)
    return text.strip()


class PageParser:
    """Parses RST documentation pages into index records."""

    def parse_file(self, file_path: Path, base_path: Path) -> list[IndexRecord] | None:
        """Parse an RST page and extract its index records.

        Args:
            file_path: Path to the RST file.
            base_path: Root of the documentation source tree.

        Returns:
            Records in document order, or None if parsing fails.
        """
        try:
            source = file_path.read_text(encoding="utf-8")
            doctree = self._parse_rst(source, file_path)
            page = self._extract_title(doctree, file_path)
            location = self.compute_location(file_path.relative_to(base_path))

            visitor = RecordVisitor(doctree, page, location)
            doctree.walkabout(visitor)
            return visitor.records
        except Exception:
            return None

    @staticmethod
    def compute_location(relative_path: Path) -> str:
        """Compute the page location from its source path.

        Args:
            relative_path: Path relative to the documentation root.

        Returns:
            Slash-terminated page URL, or an empty string for the root page.
        """
        parts = list(relative_path.with_suffix("").parts)
        if parts and parts[-1] == "index":
            parts.pop()
        return "/".join(parts) + "/" if parts else ""

    def _parse_rst(self, source: str, file_path: Path) -> docutils.nodes.document:
        """Parse RST source into docutils document tree.

        Args:
            source: RST source text.
            file_path: Path to the file (for error reporting).

        Returns:
            Docutils document tree.
        """
        parser = docutils.parsers.rst.Parser()
        settings = docutils.frontend.get_default_settings(docutils.parsers.rst.Parser)
        settings.report_level = 5  # Suppress warnings
        document = docutils.utils.new_document(str(file_path), settings)
        parser.parse(source, document)
        return document

    def _extract_title(self, doctree: docutils.nodes.document, file_path: Path) -> str:
        visitor = TitleVisitor(doctree)
        doctree.walk(visitor)
        if visitor.title:
            return visitor.title
        # Fallback to filename if no title found
        return file_path.stem.replace("-", " ").replace("_", " ").title()
