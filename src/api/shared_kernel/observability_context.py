"""Observation context for domain-oriented observability.

Observation contexts collect and manage contextual metadata for instrumentation,
following the Domain Oriented Observability pattern.

See: https://martinfowler.com/articles/domain-oriented-observability.html
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any


@dataclass(frozen=True)
class ObservationContext:
    """Immutable context containing metadata for observability.

    Captures request-scoped and tenant-relevant metadata that should be
    included with all instrumentation events, so that a failure such as
    "database does not exist" can be traced to the tenant and the server
    it was routed to.

    Attributes:
        request_id: Unique identifier for the current request/operation.
        tenant_id: Tenant the operation acts on (if applicable).
        db_name: Tenant database name (if applicable).
        server: Target database server as host:port (if applicable).
        extra: Additional contextual metadata.

    Example:
        context = ObservationContext(
            tenant_id="01J9Z...",
            db_name="tenant_01j9z..._prod",
            server="db.internal:5432",
        )
        probe = DefaultProvisioningProbe().with_context(context)
    """

    request_id: str | None = None
    tenant_id: str | None = None
    db_name: str | None = None
    server: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        """Convert context to a dictionary for logging.

        Only includes non-None values to keep logs clean.
        """
        result: dict[str, Any] = {}
        if self.request_id is not None:
            result["request_id"] = self.request_id
        if self.tenant_id is not None:
            result["tenant_id"] = self.tenant_id
        if self.db_name is not None:
            result["db_name"] = self.db_name
        if self.server is not None:
            result["server"] = self.server
        result.update(self.extra)
        return result

    def with_tenant(
        self, tenant_id: str, db_name: str | None = None
    ) -> ObservationContext:
        """Create a new context bound to a tenant and its database."""
        return replace(self, tenant_id=tenant_id, db_name=db_name)

    def with_extra(self, **kwargs: Any) -> ObservationContext:
        """Create a new context with additional metadata."""
        return replace(self, extra={**self.extra, **kwargs})
