"""
Junction tables for many-to-many relationships.

A many-to-many link between A and B is modelled as a bridge table
``A_B`` holding one foreign key to each parent, plus two one-to-many
relationships from the bridge to the parents.
"""

import logging

from .ids import DEFAULT_IDS, IdSource
from .models import (
    ColumnConstraint,
    ColumnSpec,
    Endpoint,
    Position,
    RelationshipSpec,
    RelationshipType,
    Schema,
)
from .mutations import add_column, add_relationship, add_table

logger = logging.getLogger(__name__)

# How far below the midpoint of the two parents the bridge table lands
JUNCTION_OFFSET_Y = 100


def generate_junction_table(
    schema: Schema,
    table_id_a: str,
    table_id_b: str,
    *,
    ids: IdSource = DEFAULT_IDS,
) -> Schema:
    """
    Create a junction table between two tables.

    Both tables must exist and have exactly one PRIMARY KEY column;
    otherwise the schema is returned unchanged.
    """
    table_a = schema.get_table(table_id_a)
    table_b = schema.get_table(table_id_b)
    if table_a is None or table_b is None:
        return schema

    pks_a = table_a.primary_key_columns()
    pks_b = table_b.primary_key_columns()
    if len(pks_a) != 1 or len(pks_b) != 1:
        logger.debug(
            "Junction %s/%s skipped: each table needs exactly one primary key",
            table_a.name, table_b.name,
        )
        return schema
    pk_a, pk_b = pks_a[0], pks_b[0]

    position = Position(
        x=(table_a.position.x + table_b.position.x) / 2,
        y=(table_a.position.y + table_b.position.y) / 2 + JUNCTION_OFFSET_Y,
    )
    result = add_table(schema, f"{table_a.name}_{table_b.name}", position, ids=ids)
    junction_id = result.tables[-1].id

    anchors = []
    for parent, pk in ((table_a, pk_a), (table_b, pk_b)):
        result = add_column(result, junction_id, ColumnSpec(
            name=f"{parent.name}_id",
            type=pk.type,
            constraints=(ColumnConstraint.NOT_NULL,),
        ), ids=ids)
        # the column just added is the last one of the junction table
        fk_column = result.tables[-1].columns[-1]
        anchors.append((fk_column.id, parent.id, pk.id))

    for fk_column_id, parent_id, pk_id in anchors:
        result = add_relationship(result, RelationshipSpec(
            source=Endpoint(table_id=junction_id, column_id=fk_column_id),
            target=Endpoint(table_id=parent_id, column_id=pk_id),
            type=RelationshipType.ONE_TO_MANY,
        ), ids=ids)

    return result
