"""
Schema Store - the single authoritative holder of the current schema.

This module implements:
- One current Schema value, replaced (never edited) on every change
- Linear undo/redo history of previous Schema values
- JSON file persistence
- Change callbacks for API/UI sync

Schemas are immutable, so history entries are the Schema values themselves;
no snapshot copies are needed.
"""

import json
import logging
from pathlib import Path
from typing import Callable, Optional

from .ids import DEFAULT_IDS, IdSource
from .models import Schema
from .serialization import from_json, schema_to_dict

logger = logging.getLogger(__name__)


class SchemaStore:
    """
    Holds the current schema, its history and its file.

    Every write goes through commit(), which is what serialises edits: two
    mutations are never applied to the same base value through the store.
    """

    def __init__(
        self,
        schema: Optional[Schema] = None,
        max_history: int = 100,
        ids: IdSource = DEFAULT_IDS,
    ):
        self._schema = schema if schema is not None else Schema.empty()
        self.ids = ids
        self._file_path: Optional[Path] = None
        self._history: list[Schema] = []  # Past states
        self._future: list[Schema] = []   # Future states (for redo)
        self._max_history = max_history
        self._dirty = False  # True if unsaved changes exist
        self._on_change_callbacks: list[Callable[[Schema], None]] = []
        self._reserve_ids(self._schema)

    # --- Properties ---

    @property
    def schema(self) -> Schema:
        """Get the current schema."""
        return self._schema

    @property
    def file_path(self) -> Optional[Path]:
        return self._file_path

    @property
    def is_dirty(self) -> bool:
        """Check if there are unsaved changes."""
        return self._dirty

    @property
    def can_undo(self) -> bool:
        return len(self._history) > 0

    @property
    def can_redo(self) -> bool:
        return len(self._future) > 0

    def _reserve_ids(self, schema: Schema):
        # IDs loaded from elsewhere must never be issued again by a counting source
        reserve = getattr(self.ids, "reserve", None)
        if reserve is not None:
            reserve(schema.all_ids())

    # --- Change Callbacks ---

    def on_change(self, callback: Callable[[Schema], None]):
        """Register a callback receiving the new schema after each change."""
        self._on_change_callbacks.append(callback)

    def _notify_change(self):
        for callback in self._on_change_callbacks:
            callback(self._schema)

    # --- Writes ---

    def commit(self, schema: Schema) -> bool:
        """
        Make `schema` the current value.

        Returns False (and records nothing) when the value did not change,
        so no-op mutations leave no empty undo steps.
        """
        if schema is self._schema or schema == self._schema:
            return False

        # A new change invalidates the redo stack
        self._future.clear()
        self._history.append(self._schema)
        if len(self._history) > self._max_history:
            self._history.pop(0)

        self._reserve_ids(schema)
        self._schema = schema
        self._dirty = True
        logger.debug("Committed schema: %d tables, %d relationships",
                     len(schema.tables), len(schema.relationships))
        self._notify_change()
        return True

    def reset(self) -> bool:
        """Replace the schema by an empty one (undoable)."""
        return self.commit(Schema.empty())

    # --- Undo/Redo ---

    def undo(self, steps: int = 1) -> int:
        """Undo up to `steps` changes. Returns how many were undone."""
        done = 0
        while done < steps and self._history:
            self._future.append(self._schema)
            self._schema = self._history.pop()
            done += 1
        if done:
            self._dirty = True
            logger.debug("Undid %d step(s)", done)
            self._notify_change()
        return done

    def redo(self, steps: int = 1) -> int:
        """Redo up to `steps` undone changes. Returns how many were redone."""
        done = 0
        while done < steps and self._future:
            self._history.append(self._schema)
            self._schema = self._future.pop()
            done += 1
        if done:
            self._dirty = True
            logger.debug("Redid %d step(s)", done)
            self._notify_change()
        return done

    # --- File Operations ---

    def open(self, file_path: str | Path) -> Schema:
        """Load a schema JSON file, dropping the history."""
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Schema file not found: {path}")

        self._schema = from_json(path.read_text(encoding="utf-8"))
        self._reserve_ids(self._schema)
        self._file_path = path
        self._history.clear()
        self._future.clear()
        self._dirty = False
        self._notify_change()
        return self._schema

    def save(self, file_path: Optional[str | Path] = None) -> Path:
        """
        Save the schema to a JSON file.

        If file_path is provided, save to that path (Save As).
        Otherwise, save to the current file_path.
        """
        if file_path:
            path = Path(file_path)
        elif self._file_path:
            path = self._file_path
        else:
            raise ValueError("No file path specified and no current file path")

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(schema_to_dict(self._schema), f, indent=2)

        self._file_path = path
        self._dirty = False
        return path

    def get_state(self) -> dict:
        """Get the full current state for API responses."""
        return {
            "schema": schema_to_dict(self._schema),
            "filePath": str(self._file_path) if self._file_path else None,
            "isDirty": self._dirty,
            "canUndo": self.can_undo,
            "canRedo": self.can_redo,
        }
