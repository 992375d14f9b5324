"""Self-committing tenant directory.

Each call opens its own session, so status changes written by a running
provisioning job are visible to other workers and to request-time routing
as soon as they are saved.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tenancy.domain.aggregates import Tenant
from tenancy.domain.value_objects import TenantId, TenantSlug
from tenancy.infrastructure.observability import (
    DefaultTenantRepositoryProbe,
    TenantRepositoryProbe,
)
from tenancy.infrastructure.tenant_repository import TenantRepository


class TenantDirectory:
    """ITenantDirectory backed by the administrative database."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        probe: TenantRepositoryProbe | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._probe = probe or DefaultTenantRepositoryProbe()

    async def get(self, tenant_id: TenantId) -> Tenant | None:
        async with self._session_factory() as session:
            return await TenantRepository(session, self._probe).get_by_id(tenant_id)

    async def get_by_slug(self, slug: TenantSlug) -> Tenant | None:
        async with self._session_factory() as session:
            return await TenantRepository(session, self._probe).get_by_slug(slug)

    async def save(self, tenant: Tenant) -> None:
        async with self._session_factory() as session, session.begin():
            await TenantRepository(session, self._probe).save(tenant)
