"""
ERMate Core - Schema model, editing engine, validation, layout and SQL.

This package provides the functionality shared by the HTTP API, the CLI and
the action adapter, so that every surface edits schemas the same way.
"""

from .models import (
    # Enums
    ColumnType,
    ColumnConstraint,
    RelationshipType,
    # Core models
    Position,
    Column,
    Table,
    Endpoint,
    Relationship,
    Schema,
    # Mutation inputs
    ColumnSpec,
    RelationshipSpec,
    TableUpdate,
    ColumnUpdate,
    RelationshipUpdate,
)

from .ids import IdSource, UuidIdSource, SequentialIdSource
from .mutations import (
    add_table,
    add_table_with_columns,
    update_table,
    remove_table,
    add_column,
    update_column,
    remove_column,
    reorder_columns,
    add_relationship,
    update_relationship,
    remove_relationship,
    remove_all_relationships,
    apply_positions,
)
from .validation import validate, validation_summary, ValidationIssue, IssueSeverity
from .junction import generate_junction_table
from .layout import compute_layout, find_open_position, layout_schema
from .dialects import SQLDialect
from .sql_parser import from_sql
from .sql_generator import to_sql
from .serialization import to_json, from_json
from .errors import ErmateError, SQLParseError, SchemaFormatError, UnknownDialectError

__all__ = [
    # Enums
    "ColumnType",
    "ColumnConstraint",
    "RelationshipType",
    "SQLDialect",
    # Models
    "Position",
    "Column",
    "Table",
    "Endpoint",
    "Relationship",
    "Schema",
    # Mutation inputs
    "ColumnSpec",
    "RelationshipSpec",
    "TableUpdate",
    "ColumnUpdate",
    "RelationshipUpdate",
    # IDs
    "IdSource",
    "UuidIdSource",
    "SequentialIdSource",
    # Mutations
    "add_table",
    "add_table_with_columns",
    "update_table",
    "remove_table",
    "add_column",
    "update_column",
    "remove_column",
    "reorder_columns",
    "add_relationship",
    "update_relationship",
    "remove_relationship",
    "remove_all_relationships",
    "apply_positions",
    # Validation
    "validate",
    "validation_summary",
    "ValidationIssue",
    "IssueSeverity",
    # Junction tables
    "generate_junction_table",
    # Layout
    "compute_layout",
    "find_open_position",
    "layout_schema",
    # SQL and JSON
    "from_sql",
    "to_sql",
    "to_json",
    "from_json",
    # Errors
    "ErmateError",
    "SQLParseError",
    "SchemaFormatError",
    "UnknownDialectError",
]
