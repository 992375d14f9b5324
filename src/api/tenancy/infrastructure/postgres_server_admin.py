"""PostgreSQL implementation of DatabaseServerAdmin.

Runs with the administrative credentials of the single configured
administrative URL. Role and database DDL cannot be parameterized, so
identifiers are validated and quoted, and password literals are escaped.
Statements inside a tenant database use a short-lived, unpooled engine
with administrative credentials, since the tenant role may not yet hold
schema-level rights there.
"""

from __future__ import annotations

import re
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from infrastructure.database.engines import create_ddl_engine
from infrastructure.database.exceptions import DatabaseAdminError
from tenancy.infrastructure.observability import (
    DefaultServerAdminProbe,
    ServerAdminProbe,
)
from tenancy.infrastructure.tenant_schema import tenant_metadata

if TYPE_CHECKING:
    from infrastructure.settings import AdminDatabaseSettings

_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]{0,62}$")
_preparer = postgresql.dialect().identifier_preparer


def quote_identifier(name: str) -> str:
    """Validate and double-quote a role or database name."""
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Unsafe identifier: {name!r}")
    return _preparer.quote_identifier(name)


def quote_literal(value: str) -> str:
    """Single-quote a string literal for statements that take no parameters."""
    if "\x00" in value:
        raise ValueError("Literal must not contain NUL characters")
    return "'" + value.replace("'", "''") + "'"


class PostgresServerAdmin:
    """Administers tenant roles and databases on the administrative server."""

    def __init__(
        self,
        settings: AdminDatabaseSettings,
        ddl_engine: AsyncEngine,
        database_engine_factory: Callable[..., AsyncEngine] = create_ddl_engine,
        probe: ServerAdminProbe | None = None,
    ) -> None:
        """Initialize the admin.

        Args:
            settings: Administrative database settings (source of host/port)
            ddl_engine: AUTOCOMMIT engine on the administrative database
            database_engine_factory: Builds an AUTOCOMMIT engine on another
                database of the same server
            probe: Optional domain probe for observability
        """
        self._settings = settings
        self._ddl_engine = ddl_engine
        self._database_engine_factory = database_engine_factory
        self._probe = probe or DefaultServerAdminProbe()

    @property
    def host(self) -> str:
        return self._settings.host

    @property
    def port(self) -> int:
        return self._settings.port

    async def role_exists(self, username: str) -> bool:
        return await self._exists(
            "SELECT 1 FROM pg_roles WHERE rolname = :name", username
        )

    async def create_role(self, username: str, password: str) -> None:
        await self._execute(
            "create_role",
            username,
            f"CREATE ROLE {quote_identifier(username)} "
            f"WITH LOGIN PASSWORD {quote_literal(password)}",
        )

    async def set_role_password(self, username: str, password: str) -> None:
        await self._execute(
            "set_role_password",
            username,
            f"ALTER ROLE {quote_identifier(username)} "
            f"WITH LOGIN PASSWORD {quote_literal(password)}",
        )

    async def database_exists(self, database: str) -> bool:
        return await self._exists(
            "SELECT 1 FROM pg_database WHERE datname = :name", database
        )

    async def create_database(self, database: str, owner: str) -> None:
        await self._execute(
            "create_database",
            database,
            f"CREATE DATABASE {quote_identifier(database)} "
            f"OWNER {quote_identifier(owner)}",
        )

    async def grant_database_privileges(self, database: str, username: str) -> None:
        await self._execute(
            "grant_database_privileges",
            database,
            f"GRANT ALL PRIVILEGES ON DATABASE {quote_identifier(database)} "
            f"TO {quote_identifier(username)}",
        )

    async def grant_schema_privileges(self, database: str, username: str) -> None:
        role = quote_identifier(username)
        statements = [
            f"GRANT ALL ON SCHEMA public TO {role}",
            f"ALTER DEFAULT PRIVILEGES IN SCHEMA public GRANT ALL ON TABLES TO {role}",
            f"ALTER DEFAULT PRIVILEGES IN SCHEMA public GRANT ALL ON SEQUENCES TO {role}",
        ]
        async with self._in_database("grant_schema_privileges", database) as conn:
            for statement in statements:
                await conn.execute(text(statement))

    async def apply_schema(self, database: str) -> None:
        async with self._in_database("apply_schema", database) as conn:
            await conn.run_sync(tenant_metadata.create_all, checkfirst=True)

    async def drop_database(self, database: str) -> bool:
        if not await self.database_exists(database):
            return False
        await self._execute(
            "drop_database",
            database,
            f"DROP DATABASE IF EXISTS {quote_identifier(database)} WITH (FORCE)",
        )
        return True

    async def drop_role(self, username: str) -> bool:
        if not await self.role_exists(username):
            return False
        await self._execute(
            "drop_role",
            username,
            f"DROP ROLE IF EXISTS {quote_identifier(username)}",
        )
        return True

    async def database_size(self, database: str) -> int | None:
        if not await self.database_exists(database):
            return None
        try:
            async with self._ddl_engine.connect() as conn:
                result = await conn.execute(
                    text("SELECT pg_database_size(:name)"), {"name": database}
                )
                return int(result.scalar_one())
        except SQLAlchemyError as e:
            raise self._failure("database_size", database, e) from e

    async def _exists(self, query: str, name: str) -> bool:
        try:
            async with self._ddl_engine.connect() as conn:
                result = await conn.execute(text(query), {"name": name})
                return result.first() is not None
        except SQLAlchemyError as e:
            raise self._failure("lookup", name, e) from e

    async def _execute(self, operation: str, target: str, statement: str) -> None:
        try:
            async with self._ddl_engine.connect() as conn:
                await conn.execute(text(statement))
        except SQLAlchemyError as e:
            raise self._failure(operation, target, e) from e
        self._probe.statement_executed(operation, target)

    @asynccontextmanager
    async def _in_database(
        self, operation: str, database: str
    ) -> AsyncIterator[AsyncConnection]:
        engine = self._database_engine_factory(self._settings, database=database)
        try:
            async with engine.connect() as conn:
                yield conn
        except SQLAlchemyError as e:
            raise self._failure(operation, database, e) from e
        finally:
            await engine.dispose()
        self._probe.statement_executed(operation, database)

    def _failure(
        self, operation: str, target: str, error: SQLAlchemyError
    ) -> DatabaseAdminError:
        # Only the driver message: the statement text can carry a password
        orig = getattr(error, "orig", None)
        message = str(orig) if orig is not None else type(error).__name__
        self._probe.statement_failed(operation, target, message)
        return DatabaseAdminError(
            f"{operation} failed for {target} on {self.host}:{self.port}: {message}",
            statement=operation,
        )
