"""Pydantic models for tenant API requests and responses."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from shared_kernel.jobs.value_objects import Job
from tenancy.application.value_objects import (
    DeprovisionResult,
    ProvisioningStatusView,
)
from tenancy.domain.aggregates import Tenant


class RegisterTenantRequest(BaseModel):
    """Request model for registering a tenant."""

    slug: str = Field(
        ...,
        description="Unique tenant slug, used as subdomain",
        min_length=3,
        max_length=63,
    )
    company_name: str = Field(
        ..., description="Company display name", min_length=1, max_length=255
    )
    admin_email: str = Field(
        ...,
        description="Email of the first administrative user",
        pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$",
        max_length=320,
    )
    admin_password: str = Field(
        ..., description="Password of the first administrative user", min_length=8
    )
    admin_first_name: str = Field(..., min_length=1, max_length=100)
    admin_last_name: str = Field(..., min_length=1, max_length=100)
    plan: str = Field(default="free", description="Plan label", max_length=50)


class RegisterTenantResponse(BaseModel):
    """Response model for an accepted registration."""

    tenant_id: str = Field(..., description="Tenant ID (ULID format)")
    slug: str = Field(..., description="Tenant slug")
    db_name: str = Field(..., description="Name of the tenant database")
    status: str = Field(..., description="Provisioning status")
    job_id: str = Field(..., description="Provisioning job ID")

    @classmethod
    def from_domain(cls, tenant: Tenant, job: Job) -> RegisterTenantResponse:
        return cls(
            tenant_id=tenant.id.value,
            slug=tenant.slug.value,
            db_name=tenant.db_name.value,
            status=tenant.provisioning_status.value,
            job_id=str(job.id),
        )


class ProvisioningStatusResponse(BaseModel):
    """Response model for provisioning progress."""

    tenant_id: str
    slug: str
    status: str
    progress: int = Field(..., description="Approximate completion, 0 to 100")
    is_active: bool
    attempts: int = Field(..., description="Provisioning runs started")
    error: str | None = Field(default=None, description="Last failure reason")
    job_status: str | None = None
    job_attempts: int = 0
    max_attempts: int | None = None
    next_retry_at: datetime | None = None
    provisioned_at: datetime | None = None
    deprovisioned_at: datetime | None = None

    @classmethod
    def from_view(cls, view: ProvisioningStatusView) -> ProvisioningStatusResponse:
        return cls(
            tenant_id=view.tenant_id,
            slug=view.slug,
            status=view.status,
            progress=view.progress,
            is_active=view.is_active,
            attempts=view.attempts,
            error=view.error,
            job_status=view.job_status,
            job_attempts=view.job_attempts,
            max_attempts=view.max_attempts,
            next_retry_at=view.next_retry_at,
            provisioned_at=view.provisioned_at,
            deprovisioned_at=view.deprovisioned_at,
        )


class RetryProvisioningResponse(BaseModel):
    """Response model for a requeued provisioning job."""

    tenant_id: str
    job_id: str
    job_status: str


class DeprovisionResponse(BaseModel):
    """Response model for a deprovisioned tenant."""

    tenant_id: str
    db_name: str
    database_dropped: bool
    role_dropped: bool

    @classmethod
    def from_result(cls, result: DeprovisionResult) -> DeprovisionResponse:
        return cls(
            tenant_id=result.tenant_id,
            db_name=result.db_name,
            database_dropped=result.database_dropped,
            role_dropped=result.role_dropped,
        )
