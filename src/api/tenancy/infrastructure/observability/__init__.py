"""Observability probes for tenancy infrastructure."""

from tenancy.infrastructure.observability.pool_probe import (
    DefaultTenantPoolProbe,
    TenantPoolProbe,
)
from tenancy.infrastructure.observability.repository_probe import (
    DefaultTenantRepositoryProbe,
    TenantRepositoryProbe,
)
from tenancy.infrastructure.observability.server_admin_probe import (
    DefaultServerAdminProbe,
    ServerAdminProbe,
)

__all__ = [
    "DefaultServerAdminProbe",
    "DefaultTenantPoolProbe",
    "DefaultTenantRepositoryProbe",
    "ServerAdminProbe",
    "TenantPoolProbe",
    "TenantRepositoryProbe",
]
