"""Tenant administration service.

Operator actions on existing tenants: inspecting provisioning progress,
retrying a failed provisioning, rotating database credentials, and
deprovisioning.
"""

from __future__ import annotations

from collections.abc import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from shared_kernel.jobs.exceptions import JobNotRetryableError
from shared_kernel.jobs.ports import IJobRepository
from shared_kernel.jobs.value_objects import Job
from tenancy.application.observability import (
    DefaultTenantServiceProbe,
    TenantServiceProbe,
)
from tenancy.application.security import generate_database_password
from tenancy.application.services.provisioning_job_handler import PROVISIONING_QUEUE
from tenancy.application.value_objects import (
    DeprovisionResult,
    ProvisioningStatusView,
)
from tenancy.domain.aggregates import Tenant
from tenancy.domain.exceptions import InvalidStatusTransitionError
from tenancy.domain.value_objects import TenantId
from tenancy.ports.connections import ITenantConnectionPool
from tenancy.ports.exceptions import (
    CredentialDecryptionError,
    TenantNotFoundError,
    TenantNotProvisionableError,
)
from tenancy.ports.provisioning import DatabaseServerAdmin, ICredentialVault
from tenancy.ports.repositories import ITenantRepository


class TenantAdminService:
    """Application service for operator actions on tenants."""

    def __init__(
        self,
        tenant_repository: ITenantRepository,
        job_repository: IJobRepository,
        session: AsyncSession,
        server: DatabaseServerAdmin,
        vault: ICredentialVault,
        pool: ITenantConnectionPool,
        probe: TenantServiceProbe | None = None,
        password_generator: Callable[[], str] = generate_database_password,
    ):
        """Initialize TenantAdminService with dependencies.

        Args:
            tenant_repository: Repository for tenant persistence
            job_repository: Job queue sharing the same session
            session: Database session for transaction management
            server: Administration of the server tenants live on
            vault: Encrypts rotated passwords
            pool: Tenant client cache, invalidated on credential changes
            probe: Optional domain probe for observability
            password_generator: Source of new database passwords
        """
        self._tenant_repository = tenant_repository
        self._job_repository = job_repository
        self._session = session
        self._server = server
        self._vault = vault
        self._pool = pool
        self._probe = probe or DefaultTenantServiceProbe()
        self._generate_password = password_generator

    async def get_provisioning_status(
        self, tenant_id: TenantId
    ) -> ProvisioningStatusView:
        """Describe how far provisioning got and what the queue will do next.

        Raises:
            TenantNotFoundError: If the tenant does not exist
        """
        async with self._session.begin():
            tenant = await self._get_tenant(tenant_id)
            job = await self._job_repository.get_by_dedupe_key(
                PROVISIONING_QUEUE, tenant.id.value
            )

        return ProvisioningStatusView(
            tenant_id=tenant.id.value,
            slug=tenant.slug.value,
            status=tenant.provisioning_status.value,
            progress=tenant.provisioning_status.progress,
            is_active=tenant.is_active,
            attempts=tenant.provisioning_attempts,
            error=tenant.provisioning_error,
            job_status=job.status.value if job is not None else None,
            job_attempts=job.attempts if job is not None else 0,
            max_attempts=job.retry_policy.max_attempts if job is not None else None,
            next_retry_at=job.next_retry_at if job is not None else None,
            provisioned_at=tenant.provisioned_at,
            deprovisioned_at=tenant.deprovisioned_at,
        )

    async def retry_provisioning(self, tenant_id: TenantId) -> Job:
        """Send a failed tenant through provisioning again.

        The existing job is requeued with a fresh attempt budget; its
        attempt log is kept.

        Raises:
            TenantNotFoundError: If the tenant does not exist
            TenantNotProvisionableError: If the tenant has not failed, or its
                job is still pending or running
        """
        async with self._session.begin():
            tenant = await self._get_tenant(tenant_id)
            try:
                tenant.reset_for_retry()
            except InvalidStatusTransitionError as e:
                raise TenantNotProvisionableError(str(e)) from e

            job = await self._job_repository.get_by_dedupe_key(
                PROVISIONING_QUEUE, tenant.id.value
            )
            if job is None:
                raise TenantNotProvisionableError(
                    f"Tenant {tenant.id} has no provisioning job to retry"
                )
            try:
                job = await self._job_repository.requeue(job.id)
            except JobNotRetryableError as e:
                raise TenantNotProvisionableError(str(e)) from e

            await self._tenant_repository.save(tenant)

        self._probe.provisioning_requeued(tenant.id.value)
        return job

    async def rotate_credentials(self, tenant_id: TenantId) -> None:
        """Issue a new database password to an active tenant.

        The role password is changed first and the stored ciphertext second;
        the cached client is then dropped so the next request connects with
        the new password. If storing the ciphertext fails after the role
        changed, the previous password is put back on the role.

        Raises:
            TenantNotFoundError: If the tenant does not exist
            InvalidStatusTransitionError: If the tenant is not active
        """
        password = self._generate_password()
        tenant: Tenant | None = None
        previous: str | None = None
        role_changed = False
        try:
            async with self._session.begin():
                tenant = await self._get_tenant(tenant_id)
                previous = self._stored_password(tenant)
                tenant.rotate_credentials(self._vault.encrypt(password))
                await self._server.set_role_password(tenant.db_username.value, password)
                role_changed = True
                await self._tenant_repository.save(tenant)
        except Exception:
            if role_changed:
                await self._restore_role_password(tenant, previous)
            raise

        await self._pool.invalidate(tenant.id.value)
        self._probe.credentials_rotated(tenant.id.value)

    def _stored_password(self, tenant: Tenant) -> str | None:
        if tenant.db_password_encrypted is None:
            return None
        try:
            return self._vault.decrypt(tenant.db_password_encrypted)
        except CredentialDecryptionError:
            return None

    async def _restore_role_password(
        self, tenant: Tenant, previous: str | None
    ) -> None:
        if previous is None:
            self._probe.credentials_rotation_reverted(
                tenant.id.value, restored=False, error="no readable previous password"
            )
            return
        try:
            await self._server.set_role_password(tenant.db_username.value, previous)
        except Exception as e:
            self._probe.credentials_rotation_reverted(
                tenant.id.value, restored=False, error=str(e)
            )
            return
        self._probe.credentials_rotation_reverted(tenant.id.value, restored=True)

    async def deprovision(self, tenant_id: TenantId) -> DeprovisionResult:
        """Drop the tenant's database and role and close the tenant for good.

        The tenant record is kept so that its slug and database name are
        never handed out again. The cached client is dropped before the
        database goes and again once the tenant is stored as deprovisioned.
        Repeating the call is harmless.

        Raises:
            TenantNotFoundError: If the tenant does not exist
        """
        async with self._session.begin():
            tenant = await self._get_tenant(tenant_id)

            await self._pool.invalidate(tenant.id.value)
            database_dropped = await self._server.drop_database(tenant.db_name.value)
            role_dropped = await self._server.drop_role(tenant.db_username.value)

            tenant.mark_deprovisioned()
            await self._tenant_repository.save(tenant)

        # A request routed before the commit may have cached a client again
        await self._pool.invalidate(tenant.id.value)
        self._probe.tenant_deprovisioned(
            tenant_id=tenant.id.value,
            db_name=tenant.db_name.value,
            database_dropped=database_dropped,
            role_dropped=role_dropped,
        )
        return DeprovisionResult(
            tenant_id=tenant.id.value,
            db_name=tenant.db_name.value,
            database_dropped=database_dropped,
            role_dropped=role_dropped,
        )

    async def _get_tenant(self, tenant_id: TenantId) -> Tenant:
        tenant = await self._tenant_repository.get_by_id(tenant_id)
        if tenant is None:
            self._probe.tenant_not_found(tenant_id.value)
            raise TenantNotFoundError(
                f"Tenant {tenant_id} not found", tenant_ref=tenant_id.value
            )
        return tenant
