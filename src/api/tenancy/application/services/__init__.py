"""Application services for the tenancy bounded context."""

from tenancy.application.services.connection_router import (
    TenantConnectionRouter,
    subdomain_from_host,
)
from tenancy.application.services.provisioning_engine import ProvisioningEngine
from tenancy.application.services.provisioning_job_handler import (
    PROVISIONING_QUEUE,
    ProvisioningJobHandler,
)
from tenancy.application.services.registration_service import (
    TenantRegistrationService,
)
from tenancy.application.services.tenant_admin_service import TenantAdminService
from tenancy.application.services.tenant_health_service import TenantHealthService

__all__ = [
    "PROVISIONING_QUEUE",
    "ProvisioningEngine",
    "ProvisioningJobHandler",
    "TenantAdminService",
    "TenantConnectionRouter",
    "TenantHealthService",
    "TenantRegistrationService",
    "subdomain_from_host",
]
