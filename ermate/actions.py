"""
Named actions - the boundary with the AI orchestration layer.

Actions reference tables and columns by NAME, never by ID. Names are
resolved against the latest schema when each action is applied, so in a
batch action N+1 sees the tables and columns created by action N.

Each action is a pydantic model discriminated on its `action` field:

    {"action": "addRelationship", "sourceTable": "posts", "sourceColumn": "user_id",
     "targetTable": "users", "targetColumn": "id", "type": "1:N"}

Unresolvable names are logged and leave the schema unchanged.
"""

import logging
from typing import Annotated, Callable, Literal, Optional, Union

from pydantic import Field, TypeAdapter, field_validator

from .ids import DEFAULT_IDS, IdSource
from .junction import generate_junction_table
from .layout import find_open_position, layout_schema
from .models import (
    Column,
    ColumnConstraint,
    ColumnSpec,
    ColumnType,
    ColumnUpdate,
    Endpoint,
    Position,
    RelationshipSpec,
    RelationshipType,
    RelationshipUpdate,
    Schema,
    Table,
    WireModel,
    convert_relationship_shorthand,
)
from .mutations import (
    add_column,
    add_relationship,
    add_table,
    add_table_with_columns,
    remove_all_relationships,
    remove_column,
    remove_relationship,
    remove_table,
    update_column,
    update_relationship,
    update_table,
)
from .store import SchemaStore

logger = logging.getLogger(__name__)

MAX_HISTORY_STEPS = 50


# --- Name resolution ---

def resolve_table(schema: Schema, name: str) -> Optional[Table]:
    """First table whose name matches, ignoring case."""
    key = name.lower()
    for table in schema.tables:
        if table.name.lower() == key:
            return table
    return None


def resolve_column(schema: Schema, table_name: str, column_name: str) -> Optional[tuple[Table, Column]]:
    """(table, column) for a table/column name pair, ignoring case."""
    table = resolve_table(schema, table_name)
    if table is None:
        return None
    key = column_name.lower()
    for column in table.columns:
        if column.name.lower() == key:
            return table, column
    return None


# --- Action models ---

class BaseAction(WireModel):
    """Common fields; `message` is the text shown to the user, if any."""
    message: str = ""

    def describe(self) -> str:
        return self.message or self.default_message()

    def default_message(self) -> str:
        return self.__class__.__name__

    def unchanged_message(self) -> str:
        """Reported instead of describe() when the action changed nothing."""
        return f"{getattr(self, 'action', self.__class__.__name__)}: nothing changed"


class NewTable(WireModel):
    name: str
    columns: list[ColumnSpec] = []


class RelationshipByName(WireModel):
    source_table: str
    source_column: str
    target_table: str
    target_column: str
    type: RelationshipType = RelationshipType.ONE_TO_MANY

    @field_validator("type", mode="before")
    @classmethod
    def convert_shorthand(cls, value):
        return convert_relationship_shorthand(value)


class CreateTable(BaseAction):
    action: Literal["createTable"] = "createTable"
    name: str

    def default_message(self) -> str:
        return f'Created table "{self.name}"'


class CreateTableWithColumns(BaseAction):
    action: Literal["createTableWithColumns"] = "createTableWithColumns"
    name: str
    columns: list[ColumnSpec] = []

    def default_message(self) -> str:
        count = len(self.columns)
        return f'Created table "{self.name}" with {count} custom column{"" if count == 1 else "s"}'


class CreateMultipleTables(BaseAction):
    action: Literal["createMultipleTables"] = "createMultipleTables"
    tables: list[NewTable]

    def default_message(self) -> str:
        names = ", ".join(t.name for t in self.tables)
        return f"Created {len(self.tables)} tables: {names}"


class RenameTable(BaseAction):
    action: Literal["renameTable"] = "renameTable"
    table_name: str
    new_name: str

    def default_message(self) -> str:
        return f'Renamed table "{self.table_name}" to "{self.new_name}"'


class DeleteTable(BaseAction):
    action: Literal["deleteTable"] = "deleteTable"
    table_name: str

    def default_message(self) -> str:
        return f'Deleted table "{self.table_name}"'


class AddColumn(BaseAction):
    action: Literal["addColumn"] = "addColumn"
    table_name: str
    name: str
    type: ColumnType = ColumnType.VARCHAR
    constraints: list[ColumnConstraint] = []

    def default_message(self) -> str:
        return f'Added column "{self.name}" to "{self.table_name}"'


class UpdateColumn(BaseAction):
    action: Literal["updateColumn"] = "updateColumn"
    table_name: str
    column_name: str
    updates: ColumnUpdate

    def default_message(self) -> str:
        return f'Updated column "{self.table_name}.{self.column_name}"'


class DeleteColumn(BaseAction):
    action: Literal["deleteColumn"] = "deleteColumn"
    table_name: str
    column_name: str

    def default_message(self) -> str:
        return f'Deleted column "{self.table_name}.{self.column_name}"'


class AddRelationship(BaseAction, RelationshipByName):
    action: Literal["addRelationship"] = "addRelationship"

    def default_message(self) -> str:
        return (
            f"Created {self.type.value} relationship: "
            f"{self.source_table}.{self.source_column} -> {self.target_table}.{self.target_column}"
        )


class AddMultipleRelationships(BaseAction):
    action: Literal["addMultipleRelationships"] = "addMultipleRelationships"
    relationships: list[RelationshipByName]

    def default_message(self) -> str:
        return f"Created {len(self.relationships)} relationships"


class UpdateRelationship(BaseAction):
    action: Literal["updateRelationship"] = "updateRelationship"
    relationship_id: str
    updates: RelationshipUpdate

    def default_message(self) -> str:
        return "Updated relationship"


class DeleteRelationship(BaseAction):
    action: Literal["deleteRelationship"] = "deleteRelationship"
    relationship_id: str

    def default_message(self) -> str:
        return "Deleted relationship"


class DeleteAllRelationships(BaseAction):
    action: Literal["deleteAllRelationships"] = "deleteAllRelationships"

    def default_message(self) -> str:
        return "Deleted all relationships"


class GenerateJunctionTable(BaseAction):
    action: Literal["generateJunctionTable"] = "generateJunctionTable"
    source_table: str
    target_table: str

    def default_message(self) -> str:
        return f"Created junction table for {self.source_table} and {self.target_table}"


class ResetSchema(BaseAction):
    action: Literal["resetSchema"] = "resetSchema"

    def default_message(self) -> str:
        return "Reset schema"


class Undo(BaseAction):
    action: Literal["undo"] = "undo"
    steps: int = Field(default=1, ge=1, le=MAX_HISTORY_STEPS)

    def default_message(self) -> str:
        return f"Undid {self.steps} step{'' if self.steps == 1 else 's'}"

    def unchanged_message(self) -> str:
        return "Nothing to undo"


class Redo(BaseAction):
    action: Literal["redo"] = "redo"
    steps: int = Field(default=1, ge=1, le=MAX_HISTORY_STEPS)

    def default_message(self) -> str:
        return f"Redid {self.steps} step{'' if self.steps == 1 else 's'}"

    def unchanged_message(self) -> str:
        return "Nothing to redo"


Action = Annotated[
    Union[
        CreateTable,
        CreateTableWithColumns,
        CreateMultipleTables,
        RenameTable,
        DeleteTable,
        AddColumn,
        UpdateColumn,
        DeleteColumn,
        AddRelationship,
        AddMultipleRelationships,
        UpdateRelationship,
        DeleteRelationship,
        DeleteAllRelationships,
        GenerateJunctionTable,
        ResetSchema,
        Undo,
        Redo,
    ],
    Field(discriminator="action"),
]

_ACTIONS = TypeAdapter(list[Action])


def parse_actions(data: list[dict]) -> list[BaseAction]:
    """Validate a list of action dicts (raises pydantic.ValidationError)."""
    return _ACTIONS.validate_python(data)


# --- Applying actions ---

Placer = Callable[[Schema], Position]


def _default_placer(schema: Schema) -> Position:
    return find_open_position(schema.tables, Position())


def _apply_relationship(schema: Schema, rel: RelationshipByName, ids: IdSource) -> Schema:
    """
    Add one relationship by names.

    A missing source column is created first, typed like the target column
    and flagged FOREIGN KEY + NOT NULL. An existing source column without
    FOREIGN KEY gets it.
    """
    target = resolve_column(schema, rel.target_table, rel.target_column)
    if target is None:
        logger.warning("Could not resolve target column %s.%s", rel.target_table, rel.target_column)
        return schema
    target_table, target_column = target

    source = resolve_column(schema, rel.source_table, rel.source_column)
    if source is None:
        source_table = resolve_table(schema, rel.source_table)
        if source_table is None:
            logger.warning("Source table not found: %s", rel.source_table)
            return schema
        schema = add_column(schema, source_table.id, ColumnSpec(
            name=rel.source_column,
            type=target_column.type,
            constraints=(ColumnConstraint.FOREIGN_KEY, ColumnConstraint.NOT_NULL),
        ), ids=ids)
        source = resolve_column(schema, rel.source_table, rel.source_column)
        if source is None:
            logger.warning("Failed to create FK column %s.%s", rel.source_table, rel.source_column)
            return schema
    else:
        source_table, source_column = source
        if not source_column.has(ColumnConstraint.FOREIGN_KEY):
            schema = update_column(schema, source_table.id, source_column.id, ColumnUpdate(
                constraints=source_column.constraints + (ColumnConstraint.FOREIGN_KEY,),
            ))
    source_table, source_column = source

    return add_relationship(schema, RelationshipSpec(
        source=Endpoint(table_id=source_table.id, column_id=source_column.id),
        target=Endpoint(table_id=target_table.id, column_id=target_column.id),
        type=rel.type,
    ), ids=ids)


def apply_action(
    schema: Schema,
    action: BaseAction,
    *,
    ids: IdSource = DEFAULT_IDS,
    place: Placer = _default_placer,
) -> Schema:
    """
    Apply one action to a schema and return the new schema.

    `place` picks the position of each new table from the current schema.
    Undo and redo need a history and are left to ActionRunner; here they
    return the schema unchanged.
    """
    if isinstance(action, CreateTable):
        return add_table(schema, action.name, place(schema), ids=ids)

    if isinstance(action, CreateTableWithColumns):
        return add_table_with_columns(schema, action.name, place(schema), action.columns, ids=ids)

    if isinstance(action, CreateMultipleTables):
        for table in action.tables:
            schema = add_table_with_columns(schema, table.name, place(schema), table.columns, ids=ids)
        return schema

    if isinstance(action, (RenameTable, DeleteTable)):
        table = resolve_table(schema, action.table_name)
        if table is None:
            logger.warning("Table not found: %s", action.table_name)
            return schema
        if isinstance(action, RenameTable):
            return update_table(schema, table.id, {"name": action.new_name})
        return remove_table(schema, table.id)

    if isinstance(action, AddColumn):
        table = resolve_table(schema, action.table_name)
        if table is None:
            logger.warning("Table not found: %s", action.table_name)
            return schema
        return add_column(schema, table.id, ColumnSpec(
            name=action.name, type=action.type, constraints=action.constraints,
        ), ids=ids)

    if isinstance(action, (UpdateColumn, DeleteColumn)):
        resolved = resolve_column(schema, action.table_name, action.column_name)
        if resolved is None:
            logger.warning("Column not found: %s.%s", action.table_name, action.column_name)
            return schema
        table, column = resolved
        if isinstance(action, UpdateColumn):
            return update_column(schema, table.id, column.id, action.updates)
        return remove_column(schema, table.id, column.id)

    if isinstance(action, AddRelationship):
        return _apply_relationship(schema, action, ids)

    if isinstance(action, AddMultipleRelationships):
        for rel in action.relationships:
            schema = _apply_relationship(schema, rel, ids)
        return schema

    if isinstance(action, UpdateRelationship):
        return update_relationship(schema, action.relationship_id, action.updates)

    if isinstance(action, DeleteRelationship):
        return remove_relationship(schema, action.relationship_id)

    if isinstance(action, DeleteAllRelationships):
        return remove_all_relationships(schema)

    if isinstance(action, GenerateJunctionTable):
        source = resolve_table(schema, action.source_table)
        target = resolve_table(schema, action.target_table)
        if source is None or target is None:
            logger.warning("Tables not found for junction: %s, %s",
                           action.source_table, action.target_table)
            return schema
        return generate_junction_table(schema, source.id, target.id, ids=ids)

    if isinstance(action, ResetSchema):
        return Schema.empty()

    return schema


class ActionRunner:
    """
    Applies batches of actions to a SchemaStore.

    Every action is committed on its own, so each is one undo step. When a
    batch creates more than one table the hierarchical layout is run once
    at the end (also one undo step).
    """

    def __init__(self, store: SchemaStore, ids: Optional[IdSource] = None, viewport_center: Optional[Position] = None):
        self.store = store
        self.ids = ids if ids is not None else store.ids
        self.viewport_center = viewport_center or Position()

    def _place(self, schema: Schema) -> Position:
        return find_open_position(schema.tables, self.viewport_center)

    def run(self, actions: list[BaseAction]) -> list[str]:
        """Apply actions in order and return their messages."""
        messages = []
        created = 0

        for action in actions:
            if isinstance(action, Undo):
                changed = self.store.undo(action.steps) > 0
            elif isinstance(action, Redo):
                changed = self.store.redo(action.steps) > 0
            else:
                before = len(self.store.schema.tables)
                changed = self.store.commit(apply_action(
                    self.store.schema, action, ids=self.ids, place=self._place,
                ))
                created += max(len(self.store.schema.tables) - before, 0)
            messages.append(action.describe() if changed else action.unchanged_message())

        if created > 1:
            self.store.commit(layout_schema(self.store.schema))

        return messages
