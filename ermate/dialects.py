"""SQL dialects understood by the parser and the generator."""

from enum import Enum
from typing import Optional, Union

from .errors import UnknownDialectError


class SQLDialect(str, Enum):
    POSTGRESQL = "PostgreSQL"
    MYSQL = "MySQL"
    SQLITE = "SQLite"

    @property
    def sqlglot_name(self) -> str:
        """Name of the dialect in sqlglot."""
        return _SQLGLOT_NAMES[self]


_SQLGLOT_NAMES = {
    SQLDialect.POSTGRESQL: "postgres",
    SQLDialect.MYSQL: "mysql",
    SQLDialect.SQLITE: "sqlite",
}

_ALIASES = {
    "postgresql": SQLDialect.POSTGRESQL,
    "postgres": SQLDialect.POSTGRESQL,
    "pg": SQLDialect.POSTGRESQL,
    "mysql": SQLDialect.MYSQL,
    "sqlite": SQLDialect.SQLITE,
    "sqlite3": SQLDialect.SQLITE,
}

# Order in which the parser tries dialects when none is given
PARSE_ORDER = (SQLDialect.POSTGRESQL, SQLDialect.MYSQL, SQLDialect.SQLITE)


def resolve_dialect(value: Union[SQLDialect, str, None]) -> Optional[SQLDialect]:
    """
    Turn a user-supplied dialect name into a SQLDialect.

    Matching is case-insensitive and accepts a few common aliases
    ("postgres", "pg"). None and empty strings mean "no dialect".

    Raises:
        UnknownDialectError: For any other name
    """
    if value is None or isinstance(value, SQLDialect):
        return value
    key = value.strip().lower()
    if not key:
        return None
    try:
        return _ALIASES[key]
    except KeyError:
        raise UnknownDialectError(value) from None
