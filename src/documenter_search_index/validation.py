"""Structural checks for regenerated search indexes."""

from dataclasses import dataclass, fields

from documenter_search_index.models import CATEGORIES, IndexRecord, SearchIndex


@dataclass(frozen=True)
class ValidationIssue:
    """A single problem found in an index.

    ``position`` is ``None`` for problems that concern the index as a whole.
    """

    position: int | None
    message: str

    def __str__(self) -> str:
        if self.position is None:
            return self.message
        return f"record {self.position}: {self.message}"


class SearchIndexValidationError(ValueError):
    """Raised by :func:`check` when an index has validation issues."""

    def __init__(self, issues: list[ValidationIssue]) -> None:
        self.issues = issues
        lines = "\n".join(f"  - {issue}" for issue in issues)
        super().__init__(f"Search index has {len(issues)} issue(s):\n{lines}")


def validate(index: SearchIndex, require_records: bool = True) -> list[ValidationIssue]:
    """Check an index against the properties every generated index must hold.

    Args:
        index: Index to check.
        require_records: Whether an empty index counts as an issue.

    Returns:
        List of issues, empty when the index is valid.
    """
    issues: list[ValidationIssue] = []

    if require_records and len(index) == 0:
        issues.append(ValidationIssue(None, "index has no records"))

    owners: dict[str, str] = {}
    for position, record in enumerate(index):
        issues.extend(_check_fields(position, record))

        if isinstance(record.category, str) and record.category not in CATEGORIES:
            issues.append(ValidationIssue(position, f"unknown category '{record.category}'"))

        if not isinstance(record.location, str) or not isinstance(record.page, str):
            continue
        # The same location may repeat within a page, never across pages.
        owner = owners.setdefault(record.location, record.page)
        if owner != record.page:
            issues.append(
                ValidationIssue(
                    position,
                    f"location '{record.location}' belongs to page '{owner}', not '{record.page}'",
                )
            )

    return issues


def check(index: SearchIndex, require_records: bool = True) -> None:
    """Raise if the index has any validation issue.

    Raises:
        SearchIndexValidationError: Listing every issue found.
    """
    issues = validate(index, require_records=require_records)
    if issues:
        raise SearchIndexValidationError(issues)


def _check_fields(position: int, record: IndexRecord) -> list[ValidationIssue]:
    return [
        ValidationIssue(position, f"field '{field.name}' is not a string")
        for field in fields(record)
        if not isinstance(getattr(record, field.name), str)
    ]
