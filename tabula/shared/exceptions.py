"""Project-wide custom exceptions."""

from __future__ import annotations


class TabulaError(Exception):
    """Base exception for the tabula provider."""


class ConfigurationError(TabulaError):
    """Raised when configuration loading or validation fails."""


class IdentifierError(ConfigurationError):
    """Raised when a table or column name is empty after sanitization."""


class SchemaDefinitionError(ConfigurationError):
    """Raised when a declarative schema description is missing or malformed."""


class ValueShapeError(TabulaError):
    """Raised when a value cannot be rendered into SQL (non-scalar, bool, ...)."""


class DatabaseError(TabulaError):
    """Raised for database-related issues."""


class ConnectivityError(DatabaseError):
    """Raised when the server connection or database selection fails."""


class StatementError(DatabaseError):
    """Raised when the backend rejects a statement."""

    def __init__(self, message: str, *, sql: str | None = None) -> None:
        super().__init__(message)
        self.sql = sql


class SchemaSyncError(StatementError):
    """Raised when a DDL statement fails during schema synchronization."""
