"""Unit tests for ProvisioningJobHandler and its use by the job worker."""

from __future__ import annotations

from itertools import count
from unittest.mock import Mock

import pytest

from infrastructure.jobs.worker import JobWorker
from shared_kernel.jobs.observability import DefaultJobWorkerProbe
from shared_kernel.jobs.value_objects import JobStatus
from tenancy.application.observability import TenantServiceProbe
from tenancy.application.services import (
    PROVISIONING_QUEUE,
    ProvisioningEngine,
    ProvisioningJobHandler,
)
from tenancy.application.value_objects import ProvisioningPayload
from tenancy.domain.value_objects import ProvisioningStatus, TenantId
from tenancy.ports.exceptions import ProvisioningStepError
from tests.unit.fakes import InMemoryJobStore, InMemoryTenantDirectory, build_tenant


def payload_for(tenant, account) -> dict:
    return ProvisioningPayload(
        tenant_id=tenant.id.value,
        slug=tenant.slug.value,
        db_name=tenant.db_name.value,
        admin_email=account.email,
        admin_password_hash=account.password_hash,
        admin_first_name=account.first_name,
        admin_last_name=account.last_name,
        company_name=tenant.name,
    ).to_dict()


@pytest.fixture
def directory(pending_tenant):
    return InMemoryTenantDirectory(pending_tenant)


@pytest.fixture
def probe():
    return Mock(spec=TenantServiceProbe)


@pytest.fixture
def handler(directory, server, seeder, vault, probe):
    counter = count(1)
    engine = ProvisioningEngine(
        directory=directory,
        server=server,
        seeder=seeder,
        vault=vault,
        password_generator=lambda: f"pw-{next(counter)}",
    )
    return ProvisioningJobHandler(engine=engine, directory=directory, probe=probe)


@pytest.fixture
def store(clock):
    return InMemoryJobStore(clock)


class TestProvisioningJobHandler:
    """Tests for one attempt run by the handler."""

    def test_serves_provisioning_queue(self, handler):
        assert handler.queue == PROVISIONING_QUEUE == "tenant-provisioning"

    @pytest.mark.asyncio
    async def test_successful_attempt_returns(
        self, handler, store, directory, pending_tenant, admin_account
    ):
        job = store.add(PROVISIONING_QUEUE, payload_for(pending_tenant, admin_account))

        await handler.handle(job)

        assert directory.stored(pending_tenant.id).is_routable

    @pytest.mark.asyncio
    async def test_failed_step_raises_for_retry(
        self, handler, store, server, pending_tenant, admin_account
    ):
        server.failures["create_database"] = RuntimeError("out of disk")
        job = store.add(PROVISIONING_QUEUE, payload_for(pending_tenant, admin_account))

        with pytest.raises(ProvisioningStepError) as exc_info:
            await handler.handle(job)

        assert exc_info.value.step == "creating_database"
        assert exc_info.value.reason == "out of disk"
        assert exc_info.value.fatal is False

    @pytest.mark.asyncio
    async def test_exhaustion_marks_tenant_failed(
        self, handler, store, directory, probe, pending_tenant, admin_account
    ):
        job = store.add(PROVISIONING_QUEUE, payload_for(pending_tenant, admin_account))

        await handler.on_exhausted(job, "creating_user: timeout")

        stored = directory.stored(pending_tenant.id)
        assert stored.provisioning_status == ProvisioningStatus.FAILED
        assert stored.provisioning_error == "creating_user: timeout"
        probe.provisioning_exhausted.assert_called_once_with(
            pending_tenant.id.value, "creating_user: timeout"
        )

    @pytest.mark.asyncio
    async def test_exhaustion_never_fails_an_active_tenant(
        self, store, server, seeder, vault, probe, admin_account
    ):
        tenant = build_tenant(status=ProvisioningStatus.ACTIVE, password_encrypted="00:11")
        directory = InMemoryTenantDirectory(tenant)
        handler = ProvisioningJobHandler(
            engine=ProvisioningEngine(directory, server, seeder, vault),
            directory=directory,
            probe=probe,
        )
        job = store.add(PROVISIONING_QUEUE, payload_for(tenant, admin_account))

        await handler.on_exhausted(job, "late")

        assert directory.stored(tenant.id).provisioning_status == ProvisioningStatus.ACTIVE
        probe.provisioning_exhausted.assert_not_called()

    @pytest.mark.asyncio
    async def test_exhaustion_for_missing_tenant_is_reported(
        self, handler, store, probe, pending_tenant, admin_account
    ):
        payload = payload_for(pending_tenant, admin_account)
        payload["tenant_id"] = TenantId.generate().value
        job = store.add(PROVISIONING_QUEUE, payload)

        await handler.on_exhausted(job, "gone")

        probe.tenant_not_found.assert_called_once_with(payload["tenant_id"])


class TestProvisioningThroughTheQueue:
    """End-to-end: registration payload, worker retries, active tenant."""

    @pytest.mark.asyncio
    async def test_transient_failures_are_retried_until_active(
        self, handler, store, clock, seeder, directory, pending_tenant, admin_account
    ):
        seeder.failures.extend([OSError("refused"), OSError("refused")])
        job = store.add(PROVISIONING_QUEUE, payload_for(pending_tenant, admin_account))
        worker = JobWorker(store, [handler], DefaultJobWorkerProbe(), clock=clock)

        await worker.run_once()
        stored = directory.stored(pending_tenant.id)
        assert stored.provisioning_status == ProvisioningStatus.CREATING_ADMIN_RECORD
        assert "refused" in stored.provisioning_error

        clock.advance(5)
        await worker.run_once()
        clock.advance(10)
        await worker.run_once()

        stored = directory.stored(pending_tenant.id)
        assert stored.is_routable
        assert stored.provisioning_attempts == 3
        assert store.jobs[job.id].status == JobStatus.COMPLETED
        assert store.jobs[job.id].attempts == 3

    @pytest.mark.asyncio
    async def test_persistent_failure_marks_tenant_failed_after_three_attempts(
        self, handler, store, clock, server, directory, pending_tenant, admin_account
    ):
        server.ignore_creates = True
        job = store.add(PROVISIONING_QUEUE, payload_for(pending_tenant, admin_account))
        worker = JobWorker(store, [handler], DefaultJobWorkerProbe(), clock=clock)

        await worker.run_once()
        assert directory.stored(pending_tenant.id).provisioning_status == (
            ProvisioningStatus.CREATING_USER
        )
        clock.advance(5)
        await worker.run_once()
        clock.advance(10)
        await worker.run_once()

        stored = directory.stored(pending_tenant.id)
        assert stored.provisioning_status == ProvisioningStatus.FAILED
        assert "creating_user" in stored.provisioning_error
        assert stored.is_active is False
        assert store.jobs[job.id].status == JobStatus.FAILED
        assert len(store.jobs[job.id].attempt_log) == 3
