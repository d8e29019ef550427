"""Reading and writing the ``documenterSearchIndex`` JavaScript payload."""

import json
import re
from pathlib import Path

from documenter_search_index.models import IndexRecord, SearchIndex, SearchIndexFormatError

VARIABLE_NAME = "documenterSearchIndex"

_BINDING = re.compile(r"^\s*(?:var|let|const)\s+" + VARIABLE_NAME + r"\s*=\s*")


def dumps(index: SearchIndex) -> str:
    """Serialise an index to the JavaScript payload read by the search widget.

    Args:
        index: Index to serialise.

    Returns:
        Payload text, identical for identical indexes.
    """
    docs = [record.to_dict() for record in index]
    body = json.dumps(docs, ensure_ascii=False, separators=(",", ":"))
    return f'var {VARIABLE_NAME} = {{"docs":\n{body}\n}}\n'


def loads(text: str) -> SearchIndex:
    """Parse a JavaScript payload into a frozen index.

    Args:
        text: Payload text.

    Returns:
        Frozen SearchIndex with records in payload order.

    Raises:
        SearchIndexFormatError: If the payload is malformed.
    """
    match = _BINDING.match(text)
    if not match:
        msg = f"Payload does not bind '{VARIABLE_NAME}'"
        raise SearchIndexFormatError(msg)

    literal = text[match.end() :].strip()
    if literal.endswith(";"):
        literal = literal[:-1].rstrip()

    try:
        data = json.loads(literal)
    except json.JSONDecodeError as exc:
        msg = f"Payload is not valid JSON: {exc}"
        raise SearchIndexFormatError(msg) from exc

    if not isinstance(data, dict):
        msg = f"Payload value is not an object: {type(data).__name__}"
        raise SearchIndexFormatError(msg)
    if "docs" not in data:
        msg = "Payload object has no 'docs' key"
        raise SearchIndexFormatError(msg)
    if not isinstance(data["docs"], list):
        msg = f"Payload 'docs' is not an array: {type(data['docs']).__name__}"
        raise SearchIndexFormatError(msg)

    records = [IndexRecord.from_dict(item, position) for position, item in enumerate(data["docs"])]
    return SearchIndex(records, frozen=True)


def dump(index: SearchIndex, path: Path) -> None:
    path.write_text(dumps(index), encoding="utf-8")


def load(path: Path) -> SearchIndex:
    """Read a payload file into a frozen index.

    Args:
        path: Path to a ``search_index.js`` file.

    Returns:
        Frozen SearchIndex.

    Raises:
        SearchIndexFormatError: If the file content is malformed.
    """
    return loads(path.read_text(encoding="utf-8"))
