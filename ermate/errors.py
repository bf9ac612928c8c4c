"""Exceptions raised to callers of the ermate package."""

from typing import Optional


class ErmateError(Exception):
    """Base class for all ermate errors."""


class SQLParseError(ErmateError):
    """SQL text could not be parsed in any of the attempted dialects."""

    def __init__(self, message: str, dialect: Optional[str] = None):
        super().__init__(message)
        self.message = message
        # Last dialect that was tried
        self.dialect = dialect

    def __str__(self) -> str:
        if self.dialect:
            return f"{self.message} (dialect: {self.dialect})"
        return self.message


class SchemaFormatError(ErmateError, ValueError):
    """Imported schema JSON is malformed or misses a required field."""


class UnknownDialectError(ErmateError, ValueError):
    """A dialect name that is not PostgreSQL, MySQL or SQLite."""

    def __init__(self, name: str):
        super().__init__(f"Unknown SQL dialect: {name!r}")
        self.name = name
