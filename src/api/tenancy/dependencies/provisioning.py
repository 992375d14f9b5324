"""Wiring of the provisioning engine and the job worker that drives it."""

from __future__ import annotations

from infrastructure.database.dependencies import (
    get_admin_sessionmaker,
    get_ddl_engine,
)
from infrastructure.database.engines import build_listen_dsn
from infrastructure.jobs import JobWorker, PostgresJobStore
from infrastructure.settings import (
    get_admin_database_settings,
    get_provisioning_settings,
)
from shared_kernel.jobs.observability import DefaultJobWorkerProbe
from tenancy.application.services import ProvisioningEngine, ProvisioningJobHandler
from tenancy.dependencies.pool import get_credential_vault, get_tenant_directory
from tenancy.infrastructure.postgres_server_admin import PostgresServerAdmin
from tenancy.infrastructure.tenant_seeder import PostgresTenantSeeder


def get_server_admin() -> PostgresServerAdmin:
    """Get the administrator of the server tenant databases live on."""
    return PostgresServerAdmin(
        settings=get_admin_database_settings(),
        ddl_engine=get_ddl_engine(),
    )


def build_provisioning_engine() -> ProvisioningEngine:
    """Build a provisioning engine against the administrative server."""
    return ProvisioningEngine(
        directory=get_tenant_directory(),
        server=get_server_admin(),
        seeder=PostgresTenantSeeder(),
        vault=get_credential_vault(),
    )


def build_job_worker() -> JobWorker:
    """Build the worker serving the tenant provisioning queue."""
    settings = get_provisioning_settings()
    handler = ProvisioningJobHandler(
        engine=build_provisioning_engine(),
        directory=get_tenant_directory(),
    )
    return JobWorker(
        store=PostgresJobStore(get_admin_sessionmaker()),
        handlers=[handler],
        probe=DefaultJobWorkerProbe(),
        listen_dsn=build_listen_dsn(get_admin_database_settings()),
        poll_interval_seconds=settings.poll_interval_seconds,
        concurrency=settings.concurrency,
        job_timeout_seconds=settings.job_timeout_seconds,
        lease_seconds=settings.lease_seconds,
    )
