"""Resolves requests to tenant database clients.

The router only reads the tenant directory and asks the pool for a
client. It rejects tenants that are not open for routing before the pool
is touched, so no tenant database I/O happens for them.
"""

from __future__ import annotations

import ipaddress

from tenancy.application.observability import DefaultRoutingProbe, RoutingProbe
from tenancy.application.value_objects import RoutedTenant, TenantIdentity
from tenancy.domain.aggregates import Tenant
from tenancy.domain.exceptions import InvalidTenantSlugError
from tenancy.domain.value_objects import (
    RESERVED_HOST_LABELS,
    TenantId,
    TenantSlug,
)
from tenancy.ports.connections import ITenantConnectionPool
from tenancy.ports.exceptions import (
    TenantInactiveError,
    TenantNotFoundError,
    TenantNotReadyError,
)
from tenancy.ports.repositories import ITenantDirectory


def subdomain_from_host(host: str | None) -> str | None:
    """Extract the tenant label from a Host header value.

    ``acme.app.example.com:8443`` yields ``acme``. Hosts with fewer than
    three labels, localhost, IP addresses and reserved labels yield None.
    """
    if not host:
        return None

    hostname = host.strip().lower()
    if hostname.startswith("[") or hostname.count(":") > 1:
        return None
    hostname = hostname.split(":", 1)[0]
    hostname = hostname.rstrip(".")

    if hostname == "localhost" or hostname.endswith(".localhost"):
        return None
    try:
        ipaddress.ip_address(hostname)
        return None
    except ValueError:
        pass

    labels = hostname.split(".")
    if len(labels) < 3 or not labels[0]:
        return None
    if labels[0] in RESERVED_HOST_LABELS:
        return None
    return labels[0]


class TenantConnectionRouter:
    """Turns request identity signals into a routed tenant and its client."""

    def __init__(
        self,
        directory: ITenantDirectory,
        pool: ITenantConnectionPool,
        probe: RoutingProbe | None = None,
    ):
        self._directory = directory
        self._pool = pool
        self._probe = probe or DefaultRoutingProbe()

    async def resolve(self, identity: TenantIdentity) -> Tenant:
        """Find the tenant a request is for and check it may be routed.

        Precedence: explicit tenant id, then explicit slug, then the
        subdomain of the host. Lower-precedence signals are ignored once a
        higher one is present.

        Raises:
            TenantNotFoundError: No signal, no such tenant, or a token whose
                tenant or dbName claim does not match the tenant record
            TenantNotReadyError: The tenant is still being provisioned
            TenantInactiveError: The tenant failed, was deactivated, or was
                deprovisioned
        """
        tenant, ref = await self._lookup(identity)
        if tenant is None:
            self._probe.routing_rejected("not_found", ref, identity.source)
            raise TenantNotFoundError(
                "Tenant not found" if ref else "No tenant identifier in request",
                tenant_ref=ref,
            )

        token_slug = identity.token_tenant_slug
        if token_slug is not None and token_slug.strip().lower() != tenant.slug.value:
            self._probe.token_tenant_mismatch(tenant.id.value, token_slug)
            raise TenantNotFoundError("Tenant not found", tenant_ref=ref)

        if identity.db_name is not None and identity.db_name != tenant.db_name.value:
            self._probe.db_name_mismatch(tenant.id.value, identity.db_name)
            raise TenantNotFoundError("Tenant not found", tenant_ref=ref)

        status = tenant.provisioning_status
        if status.is_in_progress and not tenant.is_deprovisioned:
            self._probe.routing_rejected("not_ready", ref, identity.source)
            raise TenantNotReadyError(
                "Tenant is still being provisioned",
                tenant_ref=ref,
                status=status.value,
            )

        if not tenant.is_routable:
            self._probe.routing_rejected("inactive", ref, identity.source)
            raise TenantInactiveError("Tenant is not active", tenant_ref=ref)

        return tenant

    async def route(self, identity: TenantIdentity) -> RoutedTenant:
        """Resolve the tenant and return its pooled database client.

        Raises:
            TenantNotFoundError, TenantNotReadyError, TenantInactiveError:
                See resolve()
            TenantConnectionFailedError: If the pool cannot provide a client
        """
        tenant = await self.resolve(identity)
        client = await self._pool.get_client(tenant)

        self._probe.tenant_routed(tenant.id.value, tenant.db_name.value, identity.source)
        return RoutedTenant(
            tenant_id=tenant.id.value,
            slug=tenant.slug.value,
            db_name=tenant.db_name.value,
            role=identity.role,
            source=identity.source,
            client=client,
        )

    async def _lookup(self, identity: TenantIdentity) -> tuple[Tenant | None, str | None]:
        if identity.tenant_id:
            ref = identity.tenant_id.strip()
            try:
                tenant_id = TenantId.from_string(ref)
            except ValueError:
                return None, ref
            return await self._directory.get(tenant_id), ref

        slug = identity.tenant_slug or subdomain_from_host(identity.host)
        if not slug:
            return None, None
        try:
            tenant_slug = TenantSlug.from_string(slug)
        except InvalidTenantSlugError:
            return None, slug
        return await self._directory.get_by_slug(tenant_slug), tenant_slug.value
