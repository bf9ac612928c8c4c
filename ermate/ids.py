"""
ID generation for tables, columns and relationships.

IDs are opaque strings of the form ``<prefix>_<suffix>`` where the prefix is
``t`` (table), ``c`` (column) or ``r`` (relationship). Generators are passed
explicitly to every function that creates entities, so nothing in the
package keeps a process-wide counter.
"""

import uuid
from typing import Iterable, Protocol


TABLE_PREFIX = "t"
COLUMN_PREFIX = "c"
RELATIONSHIP_PREFIX = "r"


class IdSource(Protocol):
    """Anything that can hand out fresh IDs."""

    def new_id(self, prefix: str) -> str: ...


class UuidIdSource:
    """Stateless source backed by uuid4 (the default)."""

    def new_id(self, prefix: str) -> str:
        return f"{prefix}_{uuid.uuid4().hex[:12]}"


class SequentialIdSource:
    """
    Monotonic counter combined with a session suffix.

    Deterministic when ``session`` is given, which keeps tests readable.
    IDs that came from elsewhere (an imported JSON file, another session)
    can be reserved so the counter skips over them.
    """

    def __init__(self, session: str | None = None, start: int = 0):
        self._session = uuid.uuid4().hex[:6] if session is None else session
        self._counter = start
        self._taken: set[str] = set()

    def reserve(self, ids: Iterable[str]) -> None:
        """Never hand out any of these IDs."""
        self._taken.update(ids)

    def new_id(self, prefix: str) -> str:
        while True:
            self._counter += 1
            if self._session:
                candidate = f"{prefix}_{self._session}_{self._counter}"
            else:
                candidate = f"{prefix}_{self._counter}"
            if candidate not in self._taken:
                self._taken.add(candidate)
                return candidate


DEFAULT_IDS: IdSource = UuidIdSource()
