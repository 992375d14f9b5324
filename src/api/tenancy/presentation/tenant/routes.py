"""HTTP routes scoped to the tenant a request is routed to."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, status

from tenancy.application.services import TenantHealthService
from tenancy.application.value_objects import RoutedTenant
from tenancy.dependencies.tenant_connection import get_tenant_connection

router = APIRouter(
    prefix="/tenant",
    tags=["tenant"],
)


@router.get("/health")
async def tenant_health(
    tenant: Annotated[RoutedTenant, Depends(get_tenant_connection)],
) -> dict[str, Any]:
    """Check the routed tenant's database connection.

    Raises:
        HTTPException: 503 if SELECT 1 fails on the tenant database
    """
    reachable, error = await TenantHealthService.check_client(tenant.client)
    if not reachable:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Tenant database unreachable: {error}",
        )
    return {
        "status": "ok",
        "tenant_id": tenant.tenant_id,
        "slug": tenant.slug,
        "db_name": tenant.db_name,
        "source": tenant.source,
    }
