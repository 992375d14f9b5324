"""Database-specific exceptions shared across bounded contexts."""


class DatabaseError(Exception):
    """Base exception for database operations."""

    pass


class DatabaseConnectionError(DatabaseError):
    """Raised when a database connection cannot be established."""

    pass


class DatabaseAdminError(DatabaseError):
    """Raised when a server-level administrative statement fails.

    Attributes:
        statement: Short name of the operation that failed (never the SQL
            text, which may contain credentials)
    """

    def __init__(self, message: str, statement: str | None = None):
        super().__init__(message)
        self.statement = statement
