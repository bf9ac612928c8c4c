"""Shared fixtures: deterministic IDs and a small blog schema."""

import pytest

from ermate.ids import SequentialIdSource
from ermate.models import (
    ColumnConstraint,
    ColumnSpec,
    ColumnType,
    Endpoint,
    RelationshipSpec,
    Schema,
)
from ermate.mutations import add_column, add_relationship, add_table


@pytest.fixture(name="ids")
def sequential_ids() -> SequentialIdSource:
    """IDs t_1, c_2, ... in creation order."""
    return SequentialIdSource(session="")


@pytest.fixture(name="blog")
def blog_schema(ids: SequentialIdSource) -> Schema:
    """users and posts, posts.user_id -> users.id (1:N)."""
    schema = add_table(Schema.empty(), "users", (0, 0), ids=ids)
    schema = add_table(schema, "posts", (400, 0), ids=ids)
    users, posts = schema.tables

    schema = add_column(schema, posts.id, ColumnSpec(
        name="user_id",
        type=ColumnType.INTEGER,
        constraints=[ColumnConstraint.FOREIGN_KEY, ColumnConstraint.NOT_NULL],
    ), ids=ids)
    user_id = schema.tables[1].columns[-1]

    return add_relationship(schema, RelationshipSpec(
        source=Endpoint(table_id=posts.id, column_id=user_id.id),
        target=Endpoint(table_id=users.id, column_id=users.columns[0].id),
    ), ids=ids)


def table_named(schema: Schema, name: str):
    for table in schema.tables:
        if table.name == name:
            return table
    raise AssertionError(f"no table {name!r}")


def column_named(table, name: str):
    for column in table.columns:
        if column.name == name:
            return column
    raise AssertionError(f"no column {name!r} in {table.name!r}")
