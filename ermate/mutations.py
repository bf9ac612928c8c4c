"""
Mutation engine - pure CRUD operations over a Schema.

Every function takes a Schema (plus arguments) and returns a new Schema.
Inputs are never modified: tables, columns and relationships that are not
touched by an operation are the very same objects in the result.

Rules enforced here:
- A table has at most one PRIMARY KEY column. Adding or updating a column
  with PRIMARY KEY strips it from every other column of that table.
- Removing a table removes every relationship touching it.
- Removing a column removes every relationship anchored on that column.
- Unknown IDs are a no-op: the input schema is returned unchanged.
  Nothing in this module raises for stale or made-up IDs.
"""

import logging
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from .ids import COLUMN_PREFIX, DEFAULT_IDS, RELATIONSHIP_PREFIX, TABLE_PREFIX, IdSource
from .models import (
    Column,
    ColumnConstraint,
    ColumnSpec,
    ColumnType,
    ColumnUpdate,
    Position,
    Relationship,
    RelationshipSpec,
    RelationshipUpdate,
    Schema,
    Table,
    TableUpdate,
)

logger = logging.getLogger(__name__)

PositionLike = Union[Position, Mapping[str, float], tuple]


# --- Helpers ---

def _as_position(value: PositionLike) -> Position:
    if isinstance(value, Position):
        return value
    if isinstance(value, tuple):
        x, y = value
        return Position(x=x, y=y)
    return Position.model_validate(value)


def _as_model(model: type, value: Any):
    if isinstance(value, model):
        return value
    return model.model_validate(value)


def _changes(update: Any) -> dict:
    """Fields of a partial-update model that were actually provided."""
    return {key: value for key, value in update if value is not None}


def _map_table(schema: Schema, table_id: str, change: Callable[[Table], Table]) -> Schema:
    """Replace one table via `change`; every other table is shared."""
    for index, table in enumerate(schema.tables):
        if table.id != table_id:
            continue
        updated = change(table)
        if updated is table:
            return schema
        tables = schema.tables[:index] + (updated,) + schema.tables[index + 1:]
        return schema.model_copy(update={"tables": tables})
    logger.debug("Table %s not found, schema unchanged", table_id)
    return schema


def _strip_primary_key(columns: tuple, keep_id: str) -> tuple:
    """Remove PRIMARY KEY from every column except `keep_id`."""
    return tuple(
        column if column.id == keep_id else column.without(ColumnConstraint.PRIMARY_KEY)
        for column in columns
    )


def _new_column(spec: ColumnSpec, ids: IdSource) -> Column:
    return Column(
        id=ids.new_id(COLUMN_PREFIX),
        name=spec.name,
        type=spec.type,
        constraints=spec.constraints,
    )


def default_columns(ids: IdSource) -> tuple[Column, Column, Column]:
    """The conventional `id` key plus the bookkeeping timestamps."""
    return (
        Column(
            id=ids.new_id(COLUMN_PREFIX),
            name="id",
            type=ColumnType.INTEGER,
            constraints=(ColumnConstraint.PRIMARY_KEY, ColumnConstraint.NOT_NULL),
        ),
        Column(
            id=ids.new_id(COLUMN_PREFIX),
            name="created_at",
            type=ColumnType.TIMESTAMP,
            constraints=(ColumnConstraint.NOT_NULL,),
        ),
        Column(
            id=ids.new_id(COLUMN_PREFIX),
            name="updated_at",
            type=ColumnType.TIMESTAMP,
            constraints=(ColumnConstraint.NOT_NULL,),
        ),
    )


# --- Tables ---

def add_table(
    schema: Schema,
    name: str,
    position: PositionLike,
    *,
    ids: IdSource = DEFAULT_IDS,
) -> Schema:
    """Append a table with the default column set (id, created_at, updated_at)."""
    return add_table_with_columns(schema, name, position, (), ids=ids)


def add_table_with_columns(
    schema: Schema,
    name: str,
    position: PositionLike,
    columns: Iterable[Union[ColumnSpec, Mapping[str, Any]]],
    *,
    ids: IdSource = DEFAULT_IDS,
) -> Schema:
    """
    Append a table whose caller-supplied columns sit between the default
    `id` column and the trailing timestamp columns.

    If any supplied column is a PRIMARY KEY, the last such column keeps it
    and every other column (the default `id` included) loses it.
    """
    table_id = ids.new_id(TABLE_PREFIX)
    key, created_at, updated_at = default_columns(ids)
    extra = tuple(_new_column(_as_model(ColumnSpec, c), ids) for c in columns)
    all_columns = (key,) + extra + (created_at, updated_at)

    primary = [c for c in extra if c.is_primary_key]
    if primary:
        all_columns = _strip_primary_key(all_columns, primary[-1].id)

    table = Table(
        id=table_id,
        name=name,
        position=_as_position(position),
        columns=all_columns,
    )
    return schema.model_copy(update={"tables": schema.tables + (table,)})


def update_table(
    schema: Schema,
    table_id: str,
    updates: Union[TableUpdate, Mapping[str, Any]],
) -> Schema:
    """Replace the name and/or position of a table."""
    changes = _changes(_as_model(TableUpdate, updates))
    if not changes:
        return schema
    return _map_table(schema, table_id, lambda t: t.model_copy(update=changes))


def remove_table(schema: Schema, table_id: str) -> Schema:
    """Remove a table and every relationship that references it."""
    if schema.get_table(table_id) is None:
        return schema
    return schema.model_copy(update={
        "tables": tuple(t for t in schema.tables if t.id != table_id),
        "relationships": tuple(
            r for r in schema.relationships if not r.references_table(table_id)
        ),
    })


# --- Columns ---

def add_column(
    schema: Schema,
    table_id: str,
    column: Union[ColumnSpec, Mapping[str, Any]],
    *,
    ids: IdSource = DEFAULT_IDS,
) -> Schema:
    """Append a column; a new PRIMARY KEY column takes the key from the others."""
    spec = _as_model(ColumnSpec, column)

    def change(table: Table) -> Table:
        new_column = _new_column(spec, ids)
        columns = table.columns + (new_column,)
        if new_column.is_primary_key:
            columns = _strip_primary_key(columns, new_column.id)
        return table.model_copy(update={"columns": columns})

    return _map_table(schema, table_id, change)


def update_column(
    schema: Schema,
    table_id: str,
    column_id: str,
    updates: Union[ColumnUpdate, Mapping[str, Any]],
) -> Schema:
    """Update name/type/constraints of a column (constraints replace the set)."""
    changes = _changes(_as_model(ColumnUpdate, updates))
    if not changes:
        return schema

    def change(table: Table) -> Table:
        if table.get_column(column_id) is None:
            return table
        columns = tuple(
            c.model_copy(update=changes) if c.id == column_id else c
            for c in table.columns
        )
        if ColumnConstraint.PRIMARY_KEY in changes.get("constraints", ()):
            columns = _strip_primary_key(columns, column_id)
        return table.model_copy(update={"columns": columns})

    return _map_table(schema, table_id, change)


def remove_column(schema: Schema, table_id: str, column_id: str) -> Schema:
    """Remove a column and every relationship anchored on it."""
    table = schema.get_table(table_id)
    if table is None or table.get_column(column_id) is None:
        return schema

    schema = _map_table(
        schema,
        table_id,
        lambda t: t.model_copy(update={
            "columns": tuple(c for c in t.columns if c.id != column_id)
        }),
    )
    return schema.model_copy(update={
        "relationships": tuple(
            r for r in schema.relationships
            if not r.references_column(table_id, column_id)
        ),
    })


def reorder_columns(
    schema: Schema,
    table_id: str,
    from_index: int,
    to_index: int,
) -> Schema:
    """
    Move one column inside its table.

    An out-of-range `from_index` is a no-op; `to_index` is clamped to the
    valid range.
    """
    def change(table: Table) -> Table:
        count = len(table.columns)
        if not 0 <= from_index < count:
            return table
        target = min(max(to_index, 0), count - 1)
        if target == from_index:
            return table
        columns = list(table.columns)
        moved = columns.pop(from_index)
        columns.insert(target, moved)
        return table.model_copy(update={"columns": tuple(columns)})

    return _map_table(schema, table_id, change)


# --- Relationships ---

def add_relationship(
    schema: Schema,
    relationship: Union[RelationshipSpec, Mapping[str, Any]],
    *,
    ids: IdSource = DEFAULT_IDS,
) -> Schema:
    """Append a relationship. Endpoints are not checked (see validation)."""
    spec = _as_model(RelationshipSpec, relationship)
    rel = Relationship(
        id=ids.new_id(RELATIONSHIP_PREFIX),
        source=spec.source,
        target=spec.target,
        type=spec.type,
    )
    return schema.model_copy(update={"relationships": schema.relationships + (rel,)})


def update_relationship(
    schema: Schema,
    relationship_id: str,
    updates: Union[RelationshipUpdate, Mapping[str, Any]],
) -> Schema:
    """Change the type and/or endpoints of a relationship."""
    changes = _changes(_as_model(RelationshipUpdate, updates))
    if not changes or schema.get_relationship(relationship_id) is None:
        return schema
    return schema.model_copy(update={
        "relationships": tuple(
            r.model_copy(update=changes) if r.id == relationship_id else r
            for r in schema.relationships
        ),
    })


def remove_relationship(schema: Schema, relationship_id: str) -> Schema:
    """Remove a single relationship."""
    if schema.get_relationship(relationship_id) is None:
        return schema
    return schema.model_copy(update={
        "relationships": tuple(r for r in schema.relationships if r.id != relationship_id),
    })


def remove_all_relationships(schema: Schema) -> Schema:
    """Drop every relationship, keeping the tables."""
    if not schema.relationships:
        return schema
    return schema.model_copy(update={"relationships": ()})


# --- Positions ---

def apply_positions(schema: Schema, positions: Mapping[str, PositionLike]) -> Schema:
    """Move tables to the given positions (tables not in the map stay put)."""
    changed = False
    tables = []
    for table in schema.tables:
        position: Optional[PositionLike] = positions.get(table.id)
        if position is not None:
            position = _as_position(position)
            if position != table.position:
                table = table.model_copy(update={"position": position})
                changed = True
        tables.append(table)
    if not changed:
        return schema
    return schema.model_copy(update={"tables": tuple(tables)})
