"""Repository protocols (ports) for the tenancy bounded context.

ITenantRepository shares the caller's session and transaction.
ITenantDirectory manages its own short transactions; it is used by the
provisioning engine, whose status writes must be visible while the run is
still in progress, and by the request-time router.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from tenancy.domain.aggregates import Tenant
from tenancy.domain.value_objects import TenantId, TenantSlug


@runtime_checkable
class ITenantRepository(Protocol):
    """Session-scoped repository for Tenant aggregate persistence."""

    async def save(self, tenant: Tenant) -> None:
        """Persist a tenant aggregate.

        Raises:
            DuplicateTenantSlugError: If the slug is already taken
        """
        ...

    async def get_by_id(self, tenant_id: TenantId) -> Tenant | None:
        """Retrieve a tenant by its ID."""
        ...

    async def get_by_slug(self, slug: TenantSlug) -> Tenant | None:
        """Retrieve a tenant by its slug."""
        ...

    async def list_all(self) -> list[Tenant]:
        """List all tenants, deprovisioned ones included."""
        ...


@runtime_checkable
class ITenantDirectory(Protocol):
    """Self-committing access to tenant records."""

    async def get(self, tenant_id: TenantId) -> Tenant | None:
        """Retrieve a tenant by its ID."""
        ...

    async def get_by_slug(self, slug: TenantSlug) -> Tenant | None:
        """Retrieve a tenant by its slug."""
        ...

    async def save(self, tenant: Tenant) -> None:
        """Persist a tenant and commit immediately."""
        ...
