"""Domain-Oriented Observability for the tenancy application layer."""

from tenancy.application.observability.provisioning_probe import (
    DefaultProvisioningProbe,
    ProvisioningProbe,
)
from tenancy.application.observability.routing_probe import (
    DefaultRoutingProbe,
    RoutingProbe,
)
from tenancy.application.observability.tenant_service_probe import (
    DefaultTenantServiceProbe,
    TenantServiceProbe,
)

__all__ = [
    "DefaultProvisioningProbe",
    "DefaultRoutingProbe",
    "DefaultTenantServiceProbe",
    "ProvisioningProbe",
    "RoutingProbe",
    "TenantServiceProbe",
]
