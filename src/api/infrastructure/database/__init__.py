"""Database infrastructure - shared connection primitives."""

from infrastructure.database.exceptions import (
    DatabaseAdminError,
    DatabaseConnectionError,
    DatabaseError,
)

__all__ = [
    "DatabaseAdminError",
    "DatabaseConnectionError",
    "DatabaseError",
]
