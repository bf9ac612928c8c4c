"""
DDL statements as plain values, translated from the sqlglot AST.

The parser only needs a small part of what sqlglot produces, so the AST is
converted once, here, into a closed set of frozen dataclasses:

- CreateTable: table name, column definitions, table-level constraints
- ColumnDef: column name, raw type name, inline constraints, inline REFERENCES
- ConstraintDef: table-level PRIMARY KEY / UNIQUE / FOREIGN KEY
- AlterTable: foreign keys added by ALTER TABLE ... ADD CONSTRAINT
- ReferenceDef: target of a REFERENCES clause

Every other statement (INSERT, UPDATE, CREATE INDEX, SET, ...) is dropped.
Nothing outside this module touches sqlglot expression classes.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError


# CREATE <kind> statements that never describe a table
NON_TABLE_KINDS = frozenset({
    "AGGREGATE", "CAST", "COLLATION", "DATABASE", "DOMAIN", "EVENT", "EXTENSION",
    "FUNCTION", "INDEX", "LANGUAGE", "MATERIALIZED", "OPERATOR", "POLICY",
    "PROCEDURE", "PUBLICATION", "ROLE", "RULE", "SCHEMA", "SEQUENCE", "SERVER",
    "STATISTICS", "SUBSCRIPTION", "TABLESPACE", "TRIGGER", "TYPE", "USER", "VIEW",
})


@dataclass(frozen=True)
class TableRef:
    """A possibly schema-qualified table name."""
    name: str
    schema: Optional[str] = None

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.name}" if self.schema else self.name


@dataclass(frozen=True)
class ReferenceDef:
    """REFERENCES target(columns...)"""
    table: TableRef
    columns: tuple[str, ...] = ()


@dataclass(frozen=True)
class ColumnDef:
    name: str
    type_name: str
    primary_key: bool = False
    unique: bool = False
    not_null: bool = False
    reference: Optional[ReferenceDef] = None


class ConstraintKind(str, Enum):
    PRIMARY_KEY = "PRIMARY KEY"
    UNIQUE = "UNIQUE"
    FOREIGN_KEY = "FOREIGN KEY"


@dataclass(frozen=True)
class ConstraintDef:
    """A table-level constraint over one or more columns."""
    kind: ConstraintKind
    columns: tuple[str, ...]
    reference: Optional[ReferenceDef] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class CreateTable:
    table: TableRef
    columns: tuple[ColumnDef, ...] = ()
    constraints: tuple[ConstraintDef, ...] = ()


@dataclass(frozen=True)
class AlterTable:
    table: TableRef
    constraints: tuple[ConstraintDef, ...] = ()


Statement = Union[CreateTable, AlterTable]


def parse_statements(sql: str, dialect: str) -> list[Statement]:
    """
    Parse SQL text with sqlglot and keep the DDL statements we understand.

    Args:
        sql: SQL text, possibly several statements
        dialect: sqlglot dialect name ("postgres", "mysql", "sqlite")

    Returns:
        CreateTable and AlterTable values, in statement order

    Raises:
        sqlglot.errors.SqlglotError: If the text does not parse in this dialect,
            including table DDL that sqlglot could only keep as a raw Command
    """
    statements: list[Statement] = []
    for expression in sqlglot.parse(sql, read=dialect):
        # Empty statements (";;") come back as None
        if expression is None:
            continue
        if isinstance(expression, exp.Command) and _is_unparsed_ddl(expression):
            raise ParseError(f"Unsupported syntax for {dialect}: {_command_text(expression)}")
        statement = adapt_statement(expression)
        if statement is not None:
            statements.append(statement)
    return statements


def adapt_statement(expression: exp.Expression) -> Optional[Statement]:
    """Translate one top-level sqlglot expression (None if not relevant)."""
    if isinstance(expression, exp.Create):
        if (expression.args.get("kind") or "").upper() != "TABLE":
            return None
        return _adapt_create(expression)
    if isinstance(expression, exp.Alter):
        if (expression.args.get("kind") or "TABLE").upper() != "TABLE":
            return None
        return _adapt_alter(expression)
    return None


# --- Raw commands ---

def _command_text(command: exp.Command) -> str:
    rest = command.expression
    if isinstance(rest, exp.Expression):
        rest = rest.name
    text = " ".join(f"{command.this or ''}{rest or ''}".split())
    return text if len(text) <= 80 else text[:77] + "..."


def _is_unparsed_ddl(command: exp.Command) -> bool:
    """
    True when sqlglot fell back to a raw Command for DDL we would import.

    sqlglot keeps statements it cannot parse as Command instead of raising.
    A CREATE counts unless its object kind is a known non-table one, so a
    typo such as CREATE TABL does too. An ALTER counts when it adds a
    foreign key.
    """
    keyword = str(command.this or "").upper()
    rest = command.expression
    if isinstance(rest, exp.Expression):
        rest = rest.name
    # Object kind and name come before any parenthesised column list
    words = re.findall(r"\w+", str(rest or "").split("(", 1)[0].upper())

    if keyword == "CREATE":
        for word in words:
            if word == "TABLE":
                return True
            if word in NON_TABLE_KINDS:
                return False
        return True
    if keyword == "ALTER":
        return "FOREIGN" in words
    return False


# --- Names ---

def _unquote(name: str) -> str:
    # Dialects without backtick identifiers tokenize `x` as a bare word
    if len(name) >= 2 and name[0] == name[-1] == "`":
        return name[1:-1]
    return name


def _name_of(node: exp.Expression) -> str:
    """Plain name of an identifier-like node (column, identifier, ordered column)."""
    if isinstance(node, exp.Ordered):
        node = node.this
    return _unquote(node.name)


def _table_ref(node: exp.Expression) -> Optional[TableRef]:
    if isinstance(node, exp.Schema):
        node = node.this
    if not isinstance(node, exp.Table) or not node.name:
        return None
    return TableRef(name=_unquote(node.name), schema=_unquote(node.db) or None)


def _column_list(node: Optional[exp.Expression]) -> tuple[str, ...]:
    if node is None:
        return ()
    names = (_name_of(item) for item in node.expressions)
    return tuple(name for name in names if name)


def _reference(node: Optional[exp.Expression]) -> Optional[ReferenceDef]:
    """REFERENCES clause; the target is a Table or a Schema(Table, columns)."""
    if not isinstance(node, exp.Reference):
        return None
    target = node.this
    table = _table_ref(target)
    if table is None:
        return None
    columns = _column_list(target) if isinstance(target, exp.Schema) else ()
    return ReferenceDef(table=table, columns=columns)


def _type_name(data_type: Optional[exp.Expression]) -> str:
    """Upper-case base type name without size or precision."""
    if not isinstance(data_type, exp.DataType):
        return ""
    if data_type.this == exp.DataType.Type.USERDEFINED:
        return str(data_type.args.get("kind") or "").upper()
    return data_type.this.name.upper()


# --- CREATE TABLE ---

def _adapt_column(node: exp.ColumnDef) -> ColumnDef:
    primary_key = unique = not_null = False
    reference = None

    for constraint in node.args.get("constraints") or []:
        kind = constraint.args.get("kind") if isinstance(constraint, exp.ColumnConstraint) else constraint
        if isinstance(kind, exp.PrimaryKeyColumnConstraint):
            primary_key = True
        elif isinstance(kind, exp.UniqueColumnConstraint):
            unique = True
        elif isinstance(kind, exp.NotNullColumnConstraint):
            # A bare NULL is parsed as NotNull(allow_null=True)
            if not kind.args.get("allow_null"):
                not_null = True
        elif isinstance(kind, exp.Reference):
            reference = _reference(kind)

    return ColumnDef(
        name=_name_of(node),
        type_name=_type_name(node.args.get("kind")),
        primary_key=primary_key,
        unique=unique,
        not_null=not_null,
        reference=reference,
    )


def _adapt_constraint(node: exp.Expression, name: Optional[str] = None) -> Optional[ConstraintDef]:
    """Table-level PRIMARY KEY (...), UNIQUE (...) or FOREIGN KEY (...) REFERENCES ..."""
    if isinstance(node, exp.PrimaryKey):
        return ConstraintDef(ConstraintKind.PRIMARY_KEY, _column_list(node), name=name)
    if isinstance(node, exp.UniqueColumnConstraint):
        # Column list lives in a Schema node: UNIQUE [name] (a, b)
        target = node.this if isinstance(node.this, exp.Schema) else None
        columns = _column_list(target)
        if not columns:
            return None
        return ConstraintDef(ConstraintKind.UNIQUE, columns, name=name)
    if isinstance(node, exp.ForeignKey):
        reference = _reference(node.args.get("reference"))
        columns = _column_list(node)
        if reference is None or not columns:
            return None
        return ConstraintDef(ConstraintKind.FOREIGN_KEY, columns, reference=reference, name=name)
    return None


def _table_constraints(node: exp.Expression) -> list[ConstraintDef]:
    """Constraints of one definition, unwrapping CONSTRAINT <name> ..."""
    if isinstance(node, exp.Constraint):
        name = node.name or None
        found = (_adapt_constraint(inner, name) for inner in node.expressions)
        return [c for c in found if c is not None]
    constraint = _adapt_constraint(node)
    return [constraint] if constraint is not None else []


def _adapt_create(node: exp.Create) -> Optional[CreateTable]:
    target = node.this
    table = _table_ref(target)
    if table is None:
        return None

    columns: list[ColumnDef] = []
    constraints: list[ConstraintDef] = []
    # CREATE TABLE ... AS SELECT has no column definitions
    definitions = target.expressions if isinstance(target, exp.Schema) else []
    for definition in definitions:
        if isinstance(definition, exp.ColumnDef):
            if definition.name:
                columns.append(_adapt_column(definition))
        else:
            constraints.extend(_table_constraints(definition))

    return CreateTable(table=table, columns=tuple(columns), constraints=tuple(constraints))


# --- ALTER TABLE ---

def _adapt_alter(node: exp.Alter) -> Optional[AlterTable]:
    table = _table_ref(node.this)
    if table is None:
        return None

    constraints: list[ConstraintDef] = []
    for action in node.args.get("actions") or []:
        for foreign_key in action.find_all(exp.ForeignKey):
            parent = foreign_key.parent
            name = (parent.name or None) if isinstance(parent, exp.Constraint) else None
            constraint = _adapt_constraint(foreign_key, name)
            if constraint is not None:
                constraints.append(constraint)

    if not constraints:
        return None
    return AlterTable(table=table, constraints=tuple(constraints))
