"""
SQL DDL export.

Emits one CREATE TABLE per table, then one ALTER TABLE ... ADD CONSTRAINT
... FOREIGN KEY per relationship whose endpoints both exist. The dialect
only changes identifier quoting and type spelling.
"""

from typing import TYPE_CHECKING, Union

from .dialects import SQLDialect, resolve_dialect
from .models import ColumnConstraint, ColumnType

if TYPE_CHECKING:
    from .models import Column, Schema, Table


VARCHAR_LENGTH = 255

_BASE_TYPES = {
    ColumnType.VARCHAR: f"VARCHAR({VARCHAR_LENGTH})",
    ColumnType.INTEGER: "INTEGER",
    ColumnType.BOOLEAN: "BOOLEAN",
    ColumnType.TEXT: "TEXT",
    ColumnType.TIMESTAMP: "TIMESTAMP",
}

_DIALECT_TYPES = {
    SQLDialect.MYSQL: {
        ColumnType.INTEGER: "INT",
        ColumnType.BOOLEAN: "TINYINT(1)",
        ColumnType.TIMESTAMP: "DATETIME",
    },
    SQLDialect.SQLITE: {
        ColumnType.TIMESTAMP: "TEXT",
    },
}

# Order in which constraints are written after the type
_CONSTRAINT_ORDER = (
    ColumnConstraint.PRIMARY_KEY,
    ColumnConstraint.NOT_NULL,
    ColumnConstraint.UNIQUE,
)


def quote_identifier(name: str, dialect: SQLDialect = SQLDialect.POSTGRESQL) -> str:
    quote = "`" if dialect == SQLDialect.MYSQL else '"'
    return f"{quote}{name.replace(quote, quote * 2)}{quote}"


def sql_type(column_type: ColumnType, dialect: SQLDialect = SQLDialect.POSTGRESQL) -> str:
    overrides = _DIALECT_TYPES.get(dialect, {})
    return overrides.get(column_type, _BASE_TYPES[column_type])


def _column_sql(column: "Column", dialect: SQLDialect) -> str:
    parts = [f"  {quote_identifier(column.name, dialect)}", sql_type(column.type, dialect)]
    parts.extend(c.value for c in _CONSTRAINT_ORDER if c in column.constraints)
    return " ".join(parts)


def table_to_sql(table: "Table", dialect: SQLDialect = SQLDialect.POSTGRESQL) -> str:
    """CREATE TABLE statement for one table, columns in stored order."""
    lines = ",\n".join(_column_sql(c, dialect) for c in table.columns)
    return f"CREATE TABLE {quote_identifier(table.name, dialect)} (\n{lines}\n);"


def to_sql(schema: "Schema", dialect: Union[SQLDialect, str, None] = None) -> str:
    """
    Generate SQL DDL for a schema.

    Args:
        schema: Schema to export
        dialect: "PostgreSQL" (default), "MySQL" or "SQLite"

    Returns:
        Statements separated by a blank line
    """
    chosen = resolve_dialect(dialect) or SQLDialect.POSTGRESQL

    def q(name: str) -> str:
        return quote_identifier(name, chosen)

    statements = [table_to_sql(table, chosen) for table in schema.tables]

    tables_by_id = {t.id: t for t in schema.tables}
    for rel in schema.relationships:
        source_table = tables_by_id.get(rel.source.table_id)
        target_table = tables_by_id.get(rel.target.table_id)
        if source_table is None or target_table is None:
            continue
        source_column = source_table.get_column(rel.source.column_id)
        target_column = target_table.get_column(rel.target.column_id)
        if source_column is None or target_column is None:
            continue

        constraint_name = f"fk_{source_table.name}_{source_column.name}"
        statements.append(
            f"ALTER TABLE {q(source_table.name)} ADD CONSTRAINT {q(constraint_name)} "
            f"FOREIGN KEY ({q(source_column.name)}) "
            f"REFERENCES {q(target_table.name)} ({q(target_column.name)});"
        )

    return "\n\n".join(statements)
