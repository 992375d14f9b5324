"""Port for the process-wide cache of tenant database clients."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from tenancy.domain.aggregates import Tenant


@runtime_checkable
class ITenantConnectionPool(Protocol):
    """Hands out one pooled client per tenant database."""

    async def get_client(self, tenant: Tenant) -> AsyncEngine:
        """Return the tenant's client, establishing it on first use.

        Raises:
            TenantConnectionFailedError: If no client could be obtained
        """
        ...

    async def invalidate(self, tenant_id: str) -> bool:
        """Drop the tenant's cached client, if any."""
        ...

    def stats(self) -> dict[str, Any]:
        """Snapshot of the cache for health reporting."""
        ...
