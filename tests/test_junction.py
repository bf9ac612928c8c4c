from conftest import column_named, table_named

from ermate.junction import JUNCTION_OFFSET_Y, generate_junction_table
from ermate.models import ColumnConstraint, ColumnType, Position, RelationshipType, Schema
from ermate.mutations import add_table, update_column
from ermate.validation import validate


def two_tables(ids):
    schema = add_table(Schema.empty(), "users", Position(x=0, y=0), ids=ids)
    return add_table(schema, "tags", Position(x=400, y=200), ids=ids)


def test_users_tags(ids):
    schema = two_tables(ids)
    users, tags = schema.tables
    result = generate_junction_table(schema, users.id, tags.id, ids=ids)

    junction = table_named(result, "users_tags")
    assert [c.name for c in junction.columns] == [
        "id", "created_at", "updated_at", "users_id", "tags_id",
    ]
    users_id = column_named(junction, "users_id")
    tags_id = column_named(junction, "tags_id")
    assert users_id.type == ColumnType.INTEGER
    assert users_id.constraints == (ColumnConstraint.NOT_NULL,)

    assert len(result.relationships) == 2
    first, second = result.relationships
    assert first.type == second.type == RelationshipType.ONE_TO_MANY
    assert (first.source.table_id, first.source.column_id) == (junction.id, users_id.id)
    assert (first.target.table_id, first.target.column_id) == (users.id, users.columns[0].id)
    assert (second.source.column_id, second.target.table_id) == (tags_id.id, tags.id)
    assert validate(result) == []


def test_position_is_below_midpoint(ids):
    schema = two_tables(ids)
    users, tags = schema.tables
    junction = generate_junction_table(schema, users.id, tags.id, ids=ids).tables[-1]
    assert junction.position == Position(x=200, y=100 + JUNCTION_OFFSET_Y)


def test_foreign_keys_follow_parent_key_type(ids):
    schema = two_tables(ids)
    users, tags = schema.tables
    schema = update_column(schema, tags.id, tags.columns[0].id, {"type": "VARCHAR"})
    junction = generate_junction_table(schema, users.id, tags.id, ids=ids).tables[-1]
    assert column_named(junction, "tags_id").type == ColumnType.VARCHAR


def test_input_schema_is_untouched(ids):
    schema = two_tables(ids)
    users, tags = schema.tables
    generate_junction_table(schema, users.id, tags.id, ids=ids)
    assert len(schema.tables) == 2
    assert schema.relationships == ()


def test_missing_primary_key_is_noop(ids):
    schema = two_tables(ids)
    users, tags = schema.tables
    schema = update_column(schema, tags.id, tags.columns[0].id, {"constraints": ["NOT NULL"]})
    assert generate_junction_table(schema, users.id, tags.id, ids=ids) is schema


def test_unknown_table_is_noop(ids):
    schema = two_tables(ids)
    assert generate_junction_table(schema, schema.tables[0].id, "t_missing", ids=ids) is schema
