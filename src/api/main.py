"""Main FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from infrastructure.database.dependencies import close_database_connections
from infrastructure.logging import configure_logging
from infrastructure.observability import DefaultStartupProbe
from infrastructure.settings import ConfigurationError, get_settings
from infrastructure.version import __version__
from tenancy.dependencies.pool import close_tenant_pool, get_tenant_pool
from tenancy.dependencies.provisioning import build_job_worker
from tenancy.presentation import router as tenancy_router


@asynccontextmanager
async def silo_lifespan(app: FastAPI):
    """Application lifespan context.

    Manages:
    - Configuration validation (fails startup on a missing admin URL or
      vault passphrase)
    - Tenant connection pool and its idle reaper
    - Provisioning job worker (when enabled)
    - Administrative engines (created lazily, closed on shutdown)
    """
    configure_logging()
    probe = DefaultStartupProbe()

    try:
        settings = get_settings()
        admin_settings = settings.admin_database
        provisioning_settings = settings.provisioning
        pool = get_tenant_pool()
    except ConfigurationError as e:
        probe.configuration_invalid(str(e))
        raise

    probe.application_starting(version=__version__, admin_server=admin_settings.server)
    pool.start_reaper()

    worker = None
    if provisioning_settings.worker_enabled:
        worker = build_job_worker()
        await worker.start()
        probe.provisioning_worker_started(concurrency=provisioning_settings.concurrency)
    else:
        probe.provisioning_worker_disabled()

    try:
        yield
    finally:
        if worker is not None:
            await worker.stop()
        await close_tenant_pool()
        await close_database_connections()
        probe.application_stopped()


app = FastAPI(
    title="Silo API",
    description="Tenant provisioning and connection routing for database-per-tenant SaaS",
    version=__version__,
    lifespan=silo_lifespan,
)

# Include Tenancy bounded context routes
app.include_router(tenancy_router)


@app.get("/health")
def health():
    """Basic health check endpoint."""
    return {"status": "ok"}
