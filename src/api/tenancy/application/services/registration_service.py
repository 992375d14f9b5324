"""Tenant registration service.

Registration writes the tenant record and its provisioning job in one
transaction of the administrative database, so a tenant never exists
without the job that provisions it.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from shared_kernel.jobs.ports import IJobRepository
from shared_kernel.jobs.value_objects import Job, RetryPolicy
from tenancy.application.observability import (
    DefaultTenantServiceProbe,
    TenantServiceProbe,
)
from tenancy.application.security import hash_admin_password
from tenancy.application.services.provisioning_job_handler import PROVISIONING_QUEUE
from tenancy.application.value_objects import ProvisioningPayload
from tenancy.domain.aggregates import Tenant
from tenancy.domain.value_objects import TenantSlug
from tenancy.ports.exceptions import DuplicateTenantSlugError
from tenancy.ports.repositories import ITenantRepository


class TenantRegistrationService:
    """Application service registering new tenants."""

    def __init__(
        self,
        tenant_repository: ITenantRepository,
        job_repository: IJobRepository,
        session: AsyncSession,
        retry_policy: RetryPolicy,
        db_host: str,
        db_port: int,
        environment: str,
        probe: TenantServiceProbe | None = None,
    ):
        """Initialize TenantRegistrationService with dependencies.

        Args:
            tenant_repository: Repository for tenant persistence
            job_repository: Job queue sharing the same session
            session: Database session for transaction management
            retry_policy: Retry policy given to each provisioning job
            db_host: Host of the server tenant databases are created on
            db_port: Port of the server tenant databases are created on
            environment: Suffix of tenant database names
            probe: Optional domain probe for observability
        """
        self._tenant_repository = tenant_repository
        self._job_repository = job_repository
        self._session = session
        self._retry_policy = retry_policy
        self._db_host = db_host
        self._db_port = db_port
        self._environment = environment
        self._probe = probe or DefaultTenantServiceProbe()

    async def register(
        self,
        slug: str,
        company_name: str,
        admin_email: str,
        admin_password: str,
        admin_first_name: str,
        admin_last_name: str,
        plan: str = "free",
    ) -> tuple[Tenant, Job]:
        """Register a tenant in status pending and enqueue its provisioning.

        Args:
            slug: Requested slug; normalized to lowercase
            company_name: Display name of the tenant
            admin_email: Email of the first administrative user
            admin_password: Plaintext password; only its bcrypt hash is queued
            admin_first_name: First name of the administrative user
            admin_last_name: Last name of the administrative user
            plan: Plan label

        Returns:
            The new tenant and its provisioning job

        Raises:
            InvalidTenantSlugError: If the slug is malformed or reserved
            DuplicateTenantSlugError: If the slug is already taken
        """
        tenant_slug = TenantSlug.from_string(slug)
        password_hash = hash_admin_password(admin_password)

        async with self._session.begin():
            if await self._tenant_repository.get_by_slug(tenant_slug) is not None:
                self._probe.duplicate_tenant_slug(tenant_slug.value)
                raise DuplicateTenantSlugError(
                    f"Slug '{tenant_slug}' is already taken"
                )

            try:
                tenant = Tenant.register(
                    slug=tenant_slug,
                    name=company_name,
                    db_host=self._db_host,
                    db_port=self._db_port,
                    environment=self._environment,
                    plan=plan,
                )
                await self._tenant_repository.save(tenant)
            except DuplicateTenantSlugError:
                self._probe.duplicate_tenant_slug(tenant_slug.value)
                raise

            payload = ProvisioningPayload(
                tenant_id=tenant.id.value,
                slug=tenant.slug.value,
                db_name=tenant.db_name.value,
                admin_email=admin_email.strip().lower(),
                admin_password_hash=password_hash,
                admin_first_name=admin_first_name,
                admin_last_name=admin_last_name,
                company_name=company_name,
            )
            job = await self._job_repository.enqueue(
                queue=PROVISIONING_QUEUE,
                dedupe_key=tenant.id.value,
                payload=payload.to_dict(),
                retry_policy=self._retry_policy,
            )

        self._probe.tenant_registered(
            tenant_id=tenant.id.value,
            slug=tenant.slug.value,
            db_name=tenant.db_name.value,
        )
        return tenant, job
