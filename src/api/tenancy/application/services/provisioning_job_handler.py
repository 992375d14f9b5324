"""Job handler connecting the provisioning queue to the provisioning engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tenancy.application.observability import (
    DefaultTenantServiceProbe,
    TenantServiceProbe,
)
from tenancy.application.value_objects import ProvisioningPayload
from tenancy.domain.value_objects import ProvisioningStatus, TenantId
from tenancy.ports.exceptions import ProvisioningStepError
from tenancy.ports.repositories import ITenantDirectory

if TYPE_CHECKING:
    from shared_kernel.jobs.value_objects import Job
    from tenancy.application.services.provisioning_engine import ProvisioningEngine

PROVISIONING_QUEUE = "tenant-provisioning"


class ProvisioningJobHandler:
    """Runs one provisioning attempt per claimed job.

    A failed report is raised as ProvisioningStepError so that the queue's
    retry policy applies. When the last attempt fails the tenant is marked
    failed; it is never marked failed earlier.
    """

    queue = PROVISIONING_QUEUE

    def __init__(
        self,
        engine: ProvisioningEngine,
        directory: ITenantDirectory,
        probe: TenantServiceProbe | None = None,
    ):
        self._engine = engine
        self._directory = directory
        self._probe = probe or DefaultTenantServiceProbe()

    async def handle(self, job: Job) -> None:
        payload = ProvisioningPayload.from_dict(job.payload)
        report = await self._engine.provision(
            TenantId.from_string(payload.tenant_id), payload.admin_account
        )

        failed = report.failed_step
        if failed is not None:
            raise ProvisioningStepError(failed.step, failed.detail, fatal=failed.fatal)

    async def on_exhausted(self, job: Job, error: str) -> None:
        payload = ProvisioningPayload.from_dict(job.payload)
        tenant = await self._directory.get(TenantId.from_string(payload.tenant_id))
        if tenant is None:
            self._probe.tenant_not_found(payload.tenant_id)
            return
        if tenant.provisioning_status == ProvisioningStatus.ACTIVE:
            return

        tenant.mark_failed(error)
        await self._directory.save(tenant)
        self._probe.provisioning_exhausted(tenant.id.value, error)
