"""HTTP routes for tenant registration and administration."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, status

from tenancy.application.services import (
    TenantAdminService,
    TenantHealthService,
    TenantRegistrationService,
)
from tenancy.dependencies.admin import require_admin_token
from tenancy.dependencies.tenant import (
    get_registration_service,
    get_tenant_admin_service,
    get_tenant_health_service,
)
from tenancy.domain.exceptions import (
    InvalidStatusTransitionError,
    InvalidTenantSlugError,
)
from tenancy.domain.value_objects import TenantId
from tenancy.ports.exceptions import (
    DuplicateTenantSlugError,
    TenantNotFoundError,
    TenantNotProvisionableError,
)
from tenancy.presentation.tenants.models import (
    DeprovisionResponse,
    ProvisioningStatusResponse,
    RegisterTenantRequest,
    RegisterTenantResponse,
    RetryProvisioningResponse,
)

router = APIRouter(
    prefix="/tenants",
    tags=["tenants"],
)


def _parse_tenant_id(tenant_id: str) -> TenantId:
    try:
        return TenantId.from_string(tenant_id)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid tenant ID format: {e}",
        ) from e


@router.post("/register", status_code=status.HTTP_202_ACCEPTED)
async def register_tenant(
    request: RegisterTenantRequest,
    service: Annotated[TenantRegistrationService, Depends(get_registration_service)],
) -> RegisterTenantResponse:
    """Register a tenant and queue the provisioning of its database.

    Returns as soon as the tenant record and its job are stored; poll the
    provisioning endpoint to follow progress.

    Raises:
        HTTPException: 409 if the slug is already taken
        HTTPException: 422 if the slug is malformed or reserved
    """
    try:
        tenant, job = await service.register(
            slug=request.slug,
            company_name=request.company_name,
            admin_email=request.admin_email,
            admin_password=request.admin_password,
            admin_first_name=request.admin_first_name,
            admin_last_name=request.admin_last_name,
            plan=request.plan,
        )
    except InvalidTenantSlugError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=str(e),
        ) from e
    except DuplicateTenantSlugError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A tenant with this slug already exists",
        )

    return RegisterTenantResponse.from_domain(tenant, job)


@router.get("/health", dependencies=[Depends(require_admin_token)])
async def control_plane_health(
    service: Annotated[TenantHealthService, Depends(get_tenant_health_service)],
) -> dict[str, Any]:
    """Report the administrative database check and tenant pool statistics."""
    return await service.control_plane_health()


@router.get(
    "/{tenant_id}/provisioning",
    dependencies=[Depends(require_admin_token)],
)
async def get_provisioning_status(
    tenant_id: str,
    service: Annotated[TenantAdminService, Depends(get_tenant_admin_service)],
) -> ProvisioningStatusResponse:
    """Get provisioning progress of a tenant.

    Raises:
        HTTPException: 400 if tenant ID is invalid
        HTTPException: 404 if tenant not found
    """
    tenant_id_obj = _parse_tenant_id(tenant_id)
    try:
        view = await service.get_provisioning_status(tenant_id_obj)
    except TenantNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e
    return ProvisioningStatusResponse.from_view(view)


@router.post(
    "/{tenant_id}/provisioning/retry",
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(require_admin_token)],
)
async def retry_provisioning(
    tenant_id: str,
    service: Annotated[TenantAdminService, Depends(get_tenant_admin_service)],
) -> RetryProvisioningResponse:
    """Requeue provisioning of a failed tenant.

    Raises:
        HTTPException: 400 if tenant ID is invalid
        HTTPException: 404 if tenant not found
        HTTPException: 409 if the tenant has not failed
    """
    tenant_id_obj = _parse_tenant_id(tenant_id)
    try:
        job = await service.retry_provisioning(tenant_id_obj)
    except TenantNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e
    except TenantNotProvisionableError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        ) from e

    return RetryProvisioningResponse(
        tenant_id=tenant_id_obj.value,
        job_id=str(job.id),
        job_status=job.status.value,
    )


@router.post(
    "/{tenant_id}/credentials/rotate",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin_token)],
)
async def rotate_credentials(
    tenant_id: str,
    service: Annotated[TenantAdminService, Depends(get_tenant_admin_service)],
) -> None:
    """Issue a new database password to an active tenant.

    Raises:
        HTTPException: 400 if tenant ID is invalid
        HTTPException: 404 if tenant not found
        HTTPException: 409 if the tenant is not active
    """
    tenant_id_obj = _parse_tenant_id(tenant_id)
    try:
        await service.rotate_credentials(tenant_id_obj)
    except TenantNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e
    except InvalidStatusTransitionError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        ) from e


@router.delete(
    "/{tenant_id}",
    dependencies=[Depends(require_admin_token)],
)
async def deprovision_tenant(
    tenant_id: str,
    service: Annotated[TenantAdminService, Depends(get_tenant_admin_service)],
) -> DeprovisionResponse:
    """Drop the tenant's database and role; the tenant record is kept.

    Raises:
        HTTPException: 400 if tenant ID is invalid
        HTTPException: 404 if tenant not found
    """
    tenant_id_obj = _parse_tenant_id(tenant_id)
    try:
        result = await service.deprovision(tenant_id_obj)
    except TenantNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e
    return DeprovisionResponse.from_result(result)
