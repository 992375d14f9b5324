"""Tenant context value object for resolved tenant identification.

This module contains the pure value object that represents a resolved
tenant context. It is framework-agnostic and contains no business logic,
making it safe for the shared kernel.

The resolution logic (token, header and host extraction, routing) lives
in the tenancy bounded context's dependency layer.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TenantContext:
    """Resolved tenant context for the current request.

    Attributes:
        tenant_id: The resolved tenant identifier.
        db_name: Name of the tenant's database.
        role: Role claim of the bearer token, if any.
        source: Which signal identified the tenant - 'token', 'header' or 'host'.
    """

    tenant_id: str
    db_name: str
    role: str | None
    source: str
