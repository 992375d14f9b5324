"""FastAPI dependencies for tenant registration and administration."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.dependencies import get_admin_engine, get_admin_session
from infrastructure.jobs import JobRepository
from infrastructure.settings import (
    get_admin_database_settings,
    get_provisioning_settings,
)
from shared_kernel.jobs.value_objects import RetryPolicy
from tenancy.application.observability import (
    DefaultTenantServiceProbe,
    TenantServiceProbe,
)
from tenancy.application.services import (
    TenantAdminService,
    TenantHealthService,
    TenantRegistrationService,
)
from tenancy.dependencies.pool import get_credential_vault, get_tenant_pool
from tenancy.dependencies.provisioning import get_server_admin
from tenancy.infrastructure.tenant_repository import TenantRepository


def get_tenant_service_probe() -> TenantServiceProbe:
    """Get TenantServiceProbe instance.

    Returns:
        DefaultTenantServiceProbe instance for observability
    """
    return DefaultTenantServiceProbe()


def get_tenant_repository(
    session: Annotated[AsyncSession, Depends(get_admin_session)],
) -> TenantRepository:
    """Get TenantRepository instance sharing the request's session."""
    return TenantRepository(session=session)


def get_job_repository(
    session: Annotated[AsyncSession, Depends(get_admin_session)],
) -> JobRepository:
    """Get JobRepository instance sharing the request's session."""
    return JobRepository(session=session)


def get_retry_policy() -> RetryPolicy:
    """Get the retry policy given to provisioning jobs."""
    settings = get_provisioning_settings()
    return RetryPolicy(
        max_attempts=settings.max_attempts,
        backoff_seconds=settings.backoff_seconds,
    )


def get_registration_service(
    tenant_repo: Annotated[TenantRepository, Depends(get_tenant_repository)],
    job_repo: Annotated[JobRepository, Depends(get_job_repository)],
    session: Annotated[AsyncSession, Depends(get_admin_session)],
    retry_policy: Annotated[RetryPolicy, Depends(get_retry_policy)],
    probe: Annotated[TenantServiceProbe, Depends(get_tenant_service_probe)],
) -> TenantRegistrationService:
    """Get TenantRegistrationService instance.

    Args:
        tenant_repo: Tenant repository (shares session via FastAPI dependency caching)
        job_repo: Job repository (same session, so both writes commit together)
        session: Database session for transaction management
        retry_policy: Retry policy for the provisioning job
        probe: Tenant service probe for observability

    Returns:
        TenantRegistrationService instance
    """
    settings = get_admin_database_settings()
    return TenantRegistrationService(
        tenant_repository=tenant_repo,
        job_repository=job_repo,
        session=session,
        retry_policy=retry_policy,
        db_host=settings.host,
        db_port=settings.port,
        environment=settings.environment,
        probe=probe,
    )


def get_tenant_admin_service(
    tenant_repo: Annotated[TenantRepository, Depends(get_tenant_repository)],
    job_repo: Annotated[JobRepository, Depends(get_job_repository)],
    session: Annotated[AsyncSession, Depends(get_admin_session)],
    probe: Annotated[TenantServiceProbe, Depends(get_tenant_service_probe)],
) -> TenantAdminService:
    """Get TenantAdminService instance."""
    return TenantAdminService(
        tenant_repository=tenant_repo,
        job_repository=job_repo,
        session=session,
        server=get_server_admin(),
        vault=get_credential_vault(),
        pool=get_tenant_pool(),
        probe=probe,
    )


def get_tenant_health_service() -> TenantHealthService:
    """Get TenantHealthService instance."""
    return TenantHealthService(pool=get_tenant_pool(), admin_engine=get_admin_engine())
