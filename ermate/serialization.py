"""
Schema JSON interchange.

The wire format is {"version": number, "tables": [...], "relationships": [...]}
with camelCase keys (tableId, columnId). This is what persistence, sharing and
JSON import/export exchange.
"""

import json
from typing import Any

from pydantic import ValidationError

from .errors import SchemaFormatError
from .models import Schema


def schema_to_dict(schema: Schema) -> dict:
    return schema.to_json_dict()


def to_json(schema: Schema) -> str:
    """Serialize a schema with 2-space indentation."""
    return json.dumps(schema_to_dict(schema), indent=2)


def schema_from_dict(data: Any) -> Schema:
    """
    Build a Schema from decoded JSON.

    Raises:
        SchemaFormatError: With a distinct message for a missing/invalid
            version, tables array or relationships array, and for entities
            that do not match the model
    """
    if not isinstance(data, dict):
        raise SchemaFormatError("Invalid schema: missing version")
    version = data.get("version")
    if isinstance(version, bool) or not isinstance(version, (int, float)):
        raise SchemaFormatError("Invalid schema: missing version")
    if not isinstance(data.get("tables"), list):
        raise SchemaFormatError("Invalid schema: missing tables array")
    if not isinstance(data.get("relationships"), list):
        raise SchemaFormatError("Invalid schema: missing relationships array")

    try:
        return Schema.from_json_dict(data)
    except ValidationError as err:
        raise SchemaFormatError(f"Invalid schema: {err}") from err


def from_json(text: str) -> Schema:
    """Parse schema JSON text (see schema_from_dict for the checks)."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as err:
        raise SchemaFormatError(f"Invalid JSON: {err}") from err
    return schema_from_dict(data)
