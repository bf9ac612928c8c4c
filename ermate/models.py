"""
Core data models for relational schemas.

These models define the canonical schema value:
- Tables with a canvas position and an ordered list of columns
- Columns with a logical type and a set of constraints
- Relationships connecting a (table, column) endpoint to another

All entity models are frozen. "Changing" a schema means building a new
value with model_copy(); unchanged tables, columns and relationships are
shared between the old and the new value.

Field Naming Convention:
- Python attributes are snake_case (table_id, column_id)
- JSON serialization outputs camelCase (tableId, columnId)
- Both spellings are accepted on input
"""

from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


SCHEMA_VERSION = 1


class ColumnType(str, Enum):
    """Logical column types supported by the model."""
    VARCHAR = "VARCHAR"
    INTEGER = "INTEGER"
    BOOLEAN = "BOOLEAN"
    TEXT = "TEXT"
    TIMESTAMP = "TIMESTAMP"


class ColumnConstraint(str, Enum):
    """Column-level constraints."""
    PRIMARY_KEY = "PRIMARY KEY"
    FOREIGN_KEY = "FOREIGN KEY"
    NOT_NULL = "NOT NULL"
    UNIQUE = "UNIQUE"


class RelationshipType(str, Enum):
    """Cardinality of a relationship."""
    ONE_TO_ONE = "one-to-one"
    ONE_TO_MANY = "one-to-many"
    MANY_TO_MANY = "many-to-many"


# Shorthand accepted from action and update payloads
RELATIONSHIP_SHORTHAND = {
    "1:1": RelationshipType.ONE_TO_ONE,
    "1:N": RelationshipType.ONE_TO_MANY,
    "N:M": RelationshipType.MANY_TO_MANY,
}


def convert_relationship_shorthand(value: Any) -> Any:
    """Map "1:1" / "1:N" / "N:M" onto RelationshipType; anything else passes through."""
    if isinstance(value, str) and not isinstance(value, RelationshipType):
        return RELATIONSHIP_SHORTHAND.get(value.upper(), value)
    return value


_CONSTRAINT_ORDER = list(ColumnConstraint)


def normalize_constraints(value: Any) -> tuple:
    """Turn a list/set/tuple of constraints into a duplicate-free tuple.

    Lists keep their order (first occurrence wins). Sets have no order of
    their own, so they are sorted by declaration order of ColumnConstraint.
    """
    if value is None:
        return ()
    if isinstance(value, (str, ColumnConstraint)):
        value = [value]
    items = [ColumnConstraint(v) for v in value]
    if isinstance(value, (set, frozenset)):
        items.sort(key=_CONSTRAINT_ORDER.index)
    return tuple(dict.fromkeys(items))


class WireModel(BaseModel):
    """Base for everything exchanged as JSON (camelCase on the wire)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ValueModel(WireModel):
    """Base for immutable entity values."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class Position(ValueModel):
    """Top-left corner of a table on the canvas."""
    x: float = 0
    y: float = 0


class Column(ValueModel):
    """A column inside a table."""
    id: str
    name: str
    type: ColumnType = ColumnType.VARCHAR
    constraints: tuple[ColumnConstraint, ...] = ()

    @field_validator("constraints", mode="before")
    @classmethod
    def coerce_constraints(cls, value: Any) -> tuple:
        return normalize_constraints(value)

    def has(self, constraint: ColumnConstraint) -> bool:
        return constraint in self.constraints

    @property
    def is_primary_key(self) -> bool:
        return ColumnConstraint.PRIMARY_KEY in self.constraints

    def without(self, constraint: ColumnConstraint) -> "Column":
        """Return this column minus one constraint (self if not present)."""
        if constraint not in self.constraints:
            return self
        remaining = tuple(c for c in self.constraints if c != constraint)
        return self.model_copy(update={"constraints": remaining})

    def with_constraint(self, constraint: ColumnConstraint) -> "Column":
        """Return this column plus one constraint (self if already present)."""
        if constraint in self.constraints:
            return self
        return self.model_copy(update={"constraints": self.constraints + (constraint,)})


class Table(ValueModel):
    """A table on the canvas."""
    id: str
    name: str
    position: Position = Position()
    columns: tuple[Column, ...] = ()

    def get_column(self, column_id: str) -> Optional[Column]:
        for column in self.columns:
            if column.id == column_id:
                return column
        return None

    def primary_key_columns(self) -> list[Column]:
        return [c for c in self.columns if c.is_primary_key]


class Endpoint(ValueModel):
    """One side of a relationship: a column of a table."""
    table_id: str
    column_id: str


class Relationship(ValueModel):
    """
    A foreign-key style link between two columns.

    The source is the referencing (FK) side, the target the referenced
    (PK) side.
    """
    id: str
    source: Endpoint
    target: Endpoint
    type: RelationshipType = RelationshipType.ONE_TO_MANY

    def references_table(self, table_id: str) -> bool:
        return self.source.table_id == table_id or self.target.table_id == table_id

    def references_column(self, table_id: str, column_id: str) -> bool:
        return (
            (self.source.table_id == table_id and self.source.column_id == column_id)
            or (self.target.table_id == table_id and self.target.column_id == column_id)
        )


class Schema(ValueModel):
    """
    The complete schema structure.
    This is what gets saved to/loaded from JSON files.
    """
    version: int = SCHEMA_VERSION
    tables: tuple[Table, ...] = ()
    relationships: tuple[Relationship, ...] = ()

    @classmethod
    def empty(cls) -> "Schema":
        return cls(version=SCHEMA_VERSION, tables=(), relationships=())

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict with wire field names."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_json_dict(cls, data: dict) -> "Schema":
        """Create a Schema from a JSON dict (camelCase or snake_case keys)."""
        return cls.model_validate(data)

    def get_table(self, table_id: str) -> Optional[Table]:
        """Get a table by ID (O(n))."""
        for table in self.tables:
            if table.id == table_id:
                return table
        return None

    def get_relationship(self, relationship_id: str) -> Optional[Relationship]:
        """Get a relationship by ID (O(n))."""
        for rel in self.relationships:
            if rel.id == relationship_id:
                return rel
        return None

    def all_ids(self) -> Iterable[str]:
        """Every table, column and relationship ID in the schema."""
        for table in self.tables:
            yield table.id
            for column in table.columns:
                yield column.id
        for rel in self.relationships:
            yield rel.id


# --- Mutation inputs ---

class ColumnSpec(WireModel):
    """A column to be created (the ID is assigned on insertion)."""
    name: str
    type: ColumnType = ColumnType.VARCHAR
    constraints: tuple[ColumnConstraint, ...] = ()

    @field_validator("constraints", mode="before")
    @classmethod
    def coerce_constraints(cls, value: Any) -> tuple:
        return normalize_constraints(value)


class RelationshipSpec(WireModel):
    """A relationship to be created (the ID is assigned on insertion)."""
    source: Endpoint
    target: Endpoint
    type: RelationshipType = RelationshipType.ONE_TO_MANY

    @field_validator("type", mode="before")
    @classmethod
    def convert_shorthand(cls, value: Any) -> Any:
        return convert_relationship_shorthand(value)


class TableUpdate(WireModel):
    """Partial update of a table."""
    name: Optional[str] = None
    position: Optional[Position] = None


class ColumnUpdate(WireModel):
    """Partial update of a column. `constraints` replaces the whole set."""
    name: Optional[str] = None
    type: Optional[ColumnType] = None
    constraints: Optional[tuple[ColumnConstraint, ...]] = None

    @field_validator("constraints", mode="before")
    @classmethod
    def coerce_constraints(cls, value: Any) -> Any:
        if value is None:
            return None
        return normalize_constraints(value)


class RelationshipUpdate(WireModel):
    """Partial update of a relationship."""
    type: Optional[RelationshipType] = None
    source: Optional[Endpoint] = None
    target: Optional[Endpoint] = None

    @field_validator("type", mode="before")
    @classmethod
    def convert_shorthand(cls, value: Any) -> Any:
        return convert_relationship_shorthand(value)
