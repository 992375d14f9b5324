"""Seeds the first administrative user into a tenant database.

Connects with the tenant's own credentials, which proves that the role,
database, grants and schema created earlier actually work together.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncEngine

from infrastructure.database.engines import create_tenant_engine
from tenancy.infrastructure.tenant_schema import users

if TYPE_CHECKING:
    from tenancy.domain.value_objects import AdminAccount


class PostgresTenantSeeder:
    """TenantSeeder writing through a short-lived tenant engine."""

    def __init__(
        self, engine_factory: Callable[..., AsyncEngine] = create_tenant_engine
    ) -> None:
        self._engine_factory = engine_factory

    async def create_admin_user(
        self, connection_string: str, account: AdminAccount
    ) -> bool:
        """Insert the admin user unless one with the same email exists.

        Returns:
            True if inserted, False if the email was already present
        """
        engine = self._engine_factory(connection_string, pool_size=1)
        try:
            async with engine.begin() as conn:
                stmt = (
                    insert(users)
                    .values(
                        email=account.email,
                        password_hash=account.password_hash,
                        first_name=account.first_name,
                        last_name=account.last_name,
                        role="admin",
                    )
                    .on_conflict_do_nothing(index_elements=[users.c.email])
                    .returning(users.c.id)
                )
                result = await conn.execute(stmt)
                return result.first() is not None
        finally:
            await engine.dispose()
