"""
SQL DDL import.

Turns CREATE TABLE / ALTER TABLE text into a Schema:
1. Parse with sqlglot, trying dialects in order until one succeeds
2. Extract tables, columns and inline constraints
3. Apply table-level PRIMARY KEY / UNIQUE constraints (pg_dump style)
4. Collect foreign keys from CREATE TABLE and ALTER TABLE into one list
5. Assign IDs and resolve foreign keys against the tables of this batch
6. Lay the tables out hierarchically

Foreign keys whose target table is not defined in the same text (for
example auth.users when only public.* tables are created) are dropped.
Statements other than CREATE TABLE and ALTER TABLE are ignored.
"""

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Optional, Sequence, Union

from sqlglot.errors import SqlglotError

from .dialects import PARSE_ORDER, SQLDialect, resolve_dialect
from .errors import SQLParseError
from .ids import COLUMN_PREFIX, DEFAULT_IDS, RELATIONSHIP_PREFIX, TABLE_PREFIX, IdSource
from .layout import compute_layout
from .models import (
    Column,
    ColumnConstraint,
    ColumnType,
    Endpoint,
    Relationship,
    RelationshipType,
    Schema,
    Table,
)
from .sql_ast import (
    AlterTable,
    ConstraintKind,
    CreateTable,
    ReferenceDef,
    Statement,
    TableRef,
    parse_statements,
)

logger = logging.getLogger(__name__)


_INTEGER_TYPES = {"INT", "INTEGER", "BIGINT", "SMALLINT", "SERIAL"}
_BOOLEAN_TYPES = {"BOOL", "BOOLEAN"}
_TEXT_TYPES = {"TEXT", "CLOB"}
_TIMESTAMP_PREFIXES = ("TIMESTAMP", "DATETIME")
_TIMESTAMP_TYPES = {"DATE", "TIME"}


def map_column_type(type_name: str) -> ColumnType:
    """Map a SQL type name to the closest ColumnType (VARCHAR by default)."""
    upper = (type_name or "").upper()
    if upper in _INTEGER_TYPES:
        return ColumnType.INTEGER
    if upper in _BOOLEAN_TYPES:
        return ColumnType.BOOLEAN
    if upper in _TEXT_TYPES:
        return ColumnType.TEXT
    if upper.startswith(_TIMESTAMP_PREFIXES) or upper in _TIMESTAMP_TYPES:
        return ColumnType.TIMESTAMP
    return ColumnType.VARCHAR


def normalize_identifier(name: str) -> str:
    """Lookup key for a table name: surrounding quotes removed, lower case."""
    name = name.strip()
    if len(name) >= 2 and name[0] == name[-1] and name[0] in "\"`'":
        name = name[1:-1]
    return name.lower()


# --- Parsing with dialect fallback ---

Attempt = tuple[SQLDialect, Callable[[], list[Statement]]]


def _attempts(sql: str, dialects: Sequence[SQLDialect]) -> list[Attempt]:
    return [(d, partial(parse_statements, sql, d.sqlglot_name)) for d in dialects]


def _first_success(attempts: list[Attempt]) -> list[Statement]:
    """Run attempts in order; the first that parses wins."""
    last_error: Optional[SqlglotError] = None
    last_dialect: Optional[SQLDialect] = None
    for dialect, attempt in attempts:
        try:
            statements = attempt()
        except SqlglotError as err:
            logger.debug("SQL did not parse as %s: %s", dialect.value, err)
            last_error, last_dialect = err, dialect
            continue
        logger.debug("Parsed %d DDL statements as %s", len(statements), dialect.value)
        return statements

    raise SQLParseError(
        str(last_error) if last_error else "Failed to parse SQL",
        dialect=last_dialect.value if last_dialect else None,
    ) from last_error


# --- Intermediate values ---

@dataclass
class _ParsedColumn:
    name: str
    type: ColumnType
    constraints: list[ColumnConstraint] = field(default_factory=list)
    reference: Optional[ReferenceDef] = None
    id: str = ""

    def add(self, constraint: ColumnConstraint) -> None:
        if constraint not in self.constraints:
            self.constraints.append(constraint)


@dataclass
class _ParsedTable:
    table: TableRef
    columns: list[_ParsedColumn]
    id: str = ""

    def find_column(self, name: str) -> Optional[_ParsedColumn]:
        """Exact name match first, then case-insensitive."""
        for column in self.columns:
            if column.name == name:
                return column
        lowered = name.lower()
        for column in self.columns:
            if column.name.lower() == lowered:
                return column
        return None

    def primary_key(self) -> Optional[_ParsedColumn]:
        for column in self.columns:
            if ColumnConstraint.PRIMARY_KEY in column.constraints:
                return column
        return None


@dataclass(frozen=True)
class _PendingForeignKey:
    source_table: TableRef
    source_column: str
    target: ReferenceDef

    @property
    def target_table_key(self) -> str:
        return normalize_identifier(self.target.table.qualified_name)


# --- Extraction ---

def _extract_table(statement: CreateTable) -> _ParsedTable:
    columns = []
    for definition in statement.columns:
        column = _ParsedColumn(name=definition.name, type=map_column_type(definition.type_name))
        if definition.primary_key:
            column.add(ColumnConstraint.PRIMARY_KEY)
        if definition.unique:
            column.add(ColumnConstraint.UNIQUE)
        if definition.not_null:
            column.add(ColumnConstraint.NOT_NULL)
        column.reference = definition.reference
        columns.append(column)
    parsed = _ParsedTable(table=statement.table, columns=columns)

    # Table-level PRIMARY KEY (...) / UNIQUE (...)
    for constraint in statement.constraints:
        if constraint.kind == ConstraintKind.FOREIGN_KEY:
            continue
        flag = (
            ColumnConstraint.PRIMARY_KEY
            if constraint.kind == ConstraintKind.PRIMARY_KEY
            else ColumnConstraint.UNIQUE
        )
        for name in constraint.columns:
            column = parsed.find_column(name)
            if column is not None:
                column.add(flag)

    # One primary key column per table: a composite key keeps its first column
    key = parsed.primary_key()
    for column in parsed.columns:
        if column is not key and ColumnConstraint.PRIMARY_KEY in column.constraints:
            column.constraints.remove(ColumnConstraint.PRIMARY_KEY)

    return parsed


def _extract_foreign_keys(statements: list[Statement]) -> list[_PendingForeignKey]:
    """Table-level FOREIGN KEY constraints of CREATE TABLE, then ALTER TABLE ones."""
    pending = []
    for kind in (CreateTable, AlterTable):
        for statement in statements:
            if not isinstance(statement, kind):
                continue
            for constraint in statement.constraints:
                if constraint.kind != ConstraintKind.FOREIGN_KEY or constraint.reference is None:
                    continue
                pending.append(_PendingForeignKey(
                    source_table=statement.table,
                    source_column=constraint.columns[0],
                    target=constraint.reference,
                ))
    return pending


# --- Assembly ---

class _Assembler:
    """Resolves references against the tables of one DDL batch."""

    def __init__(self, tables: list[_ParsedTable], ids: IdSource):
        self.tables = tables
        self.ids = ids
        self.by_key: dict[str, _ParsedTable] = {}
        self.relationships: list[Relationship] = []
        self._seen: set[tuple[str, str, str, str]] = set()

        for parsed in tables:
            parsed.id = ids.new_id(TABLE_PREFIX)
            for column in parsed.columns:
                column.id = ids.new_id(COLUMN_PREFIX)
            self.by_key.setdefault(normalize_identifier(parsed.table.qualified_name), parsed)
            if parsed.table.schema:
                self.by_key.setdefault(normalize_identifier(parsed.table.name), parsed)

    def lookup_source(self, table: TableRef) -> Optional[_ParsedTable]:
        found = self.by_key.get(normalize_identifier(table.qualified_name))
        if found is None and table.schema:
            found = self.by_key.get(normalize_identifier(table.name))
        return found

    def link(self, source: _ParsedTable, column_name: str, target_key: str, reference: ReferenceDef) -> None:
        """Create one relationship if both ends resolve inside the batch."""
        target = self.by_key.get(target_key)
        if target is None:
            logger.debug(
                "Dropping foreign key %s.%s -> %s: table not defined in this batch",
                source.table.name, column_name, target_key,
            )
            return

        source_column = source.find_column(column_name)
        if reference.columns:
            target_column = target.find_column(reference.columns[0])
        else:
            # REFERENCES t without a column list points at t's primary key
            target_column = target.primary_key()
        if source_column is None or target_column is None:
            return

        source_column.add(ColumnConstraint.FOREIGN_KEY)
        key = (source.id, source_column.id, target.id, target_column.id)
        if key in self._seen:
            return
        self._seen.add(key)

        one_to_one = ColumnConstraint.UNIQUE in source_column.constraints
        self.relationships.append(Relationship(
            id=self.ids.new_id(RELATIONSHIP_PREFIX),
            source=Endpoint(table_id=source.id, column_id=source_column.id),
            target=Endpoint(table_id=target.id, column_id=target_column.id),
            type=RelationshipType.ONE_TO_ONE if one_to_one else RelationshipType.ONE_TO_MANY,
        ))

    def build(self, foreign_keys: list[_PendingForeignKey]) -> Schema:
        for parsed in self.tables:
            for column in parsed.columns:
                if column.reference is not None:
                    target_key = normalize_identifier(column.reference.table.qualified_name)
                    self.link(parsed, column.name, target_key, column.reference)

        for fk in foreign_keys:
            source = self.lookup_source(fk.source_table)
            if source is not None:
                self.link(source, fk.source_column, fk.target_table_key, fk.target)

        tables = tuple(
            Table(
                id=parsed.id,
                name=parsed.table.name,
                columns=tuple(
                    Column(id=c.id, name=c.name, type=c.type, constraints=tuple(c.constraints))
                    for c in parsed.columns
                ),
            )
            for parsed in self.tables
        )
        relationships = tuple(self.relationships)

        positions = compute_layout(tables, relationships)
        tables = tuple(
            t.model_copy(update={"position": positions[t.id]}) if t.id in positions else t
            for t in tables
        )
        return Schema(tables=tables, relationships=relationships)


def build_schema(statements: list[Statement], *, ids: IdSource = DEFAULT_IDS) -> Schema:
    """Assemble a laid-out Schema from adapted DDL statements."""
    tables = [_extract_table(s) for s in statements if isinstance(s, CreateTable)]
    foreign_keys = _extract_foreign_keys(statements)
    return _Assembler(tables, ids).build(foreign_keys)


def from_sql(
    sql: str,
    dialect: Union[SQLDialect, str, None] = None,
    *,
    ids: IdSource = DEFAULT_IDS,
) -> Schema:
    """
    Parse SQL DDL into a Schema.

    Args:
        sql: SQL text (CREATE TABLE / ALTER TABLE; other statements ignored)
        dialect: "PostgreSQL", "MySQL" or "SQLite". When omitted, each is
            tried in that order and the first successful parse is used.
        ids: ID source for the new tables, columns and relationships

    Returns:
        A new Schema with positions assigned by the hierarchical layout

    Raises:
        SQLParseError: If the text does not parse in any tried dialect
        UnknownDialectError: If `dialect` is not a known dialect name
    """
    text = sql.strip()
    if not text:
        return Schema.empty()

    chosen = resolve_dialect(dialect)
    dialects = (chosen,) if chosen is not None else PARSE_ORDER
    statements = _first_success(_attempts(text, dialects))
    return build_schema(statements, ids=ids)
