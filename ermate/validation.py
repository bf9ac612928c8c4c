"""
Schema validation - Check schemas for structural issues.

Validation never raises and never changes the schema: every finding is
returned as an advisory issue for the caller to display or ignore. The
same schema always yields the same list, in the same order.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Schema


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Invalid state, must be fixed
    WARNING = "warning"  # Potential problem, should review


@dataclass(frozen=True)
class ValidationIssue:
    """A single validation issue found in a schema."""
    severity: IssueSeverity
    message: str
    table_id: str | None = None
    column_id: str | None = None
    relationship_id: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.table_id:
            result["tableId"] = self.table_id
        if self.column_id:
            result["columnId"] = self.column_id
        if self.relationship_id:
            result["relationshipId"] = self.relationship_id
        return result


def validate(schema: "Schema") -> list[ValidationIssue]:
    """
    Validate a schema and return a list of issues.

    Checks, per table in table order:
    - Duplicate table name, case-insensitive - ERROR
    - Columns present but none is a primary key - WARNING
    - Duplicate column name within the table, case-insensitive - ERROR

    Then, per relationship in relationship order:
    - Source table missing, else source column missing - ERROR
    - Target table missing, else target column missing - ERROR

    Args:
        schema: The schema to validate

    Returns:
        List of ValidationIssue objects
    """
    issues: list[ValidationIssue] = []

    seen_tables: set[str] = set()
    for table in schema.tables:
        key = table.name.lower()
        if key in seen_tables:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f'Duplicate table name: "{table.name}"',
                table_id=table.id
            ))
        seen_tables.add(key)

        if table.columns and not table.primary_key_columns():
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message=f'Table "{table.name}" has no primary key',
                table_id=table.id
            ))

        seen_columns: set[str] = set()
        for column in table.columns:
            column_key = column.name.lower()
            if column_key in seen_columns:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message=f'Duplicate column name "{column.name}" in table "{table.name}"',
                    table_id=table.id,
                    column_id=column.id
                ))
            seen_columns.add(column_key)

    # Quick lookup
    tables_by_id = {t.id: t for t in schema.tables}

    for rel in schema.relationships:
        for side, endpoint in (("source", rel.source), ("target", rel.target)):
            table = tables_by_id.get(endpoint.table_id)
            if table is None:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message=f"Relationship references non-existent {side} table",
                    relationship_id=rel.id
                ))
            elif table.get_column(endpoint.column_id) is None:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message=f'Relationship references non-existent {side} column in "{table.name}"',
                    relationship_id=rel.id
                ))

    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """
    Create a summary of validation issues.

    Args:
        issues: List of validation issues

    Returns:
        Dictionary with counts by severity
    """
    errors = len([i for i in issues if i.severity == IssueSeverity.ERROR])
    return {
        "total": len(issues),
        "errors": errors,
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "valid": errors == 0
    }
