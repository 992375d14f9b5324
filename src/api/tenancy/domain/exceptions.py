"""Domain exceptions for the tenancy context."""

from __future__ import annotations


class InvalidTenantSlugError(ValueError):
    """Raised when a slug does not satisfy the naming rules."""

    pass


class InvalidStatusTransitionError(Exception):
    """Raised when a lifecycle change is not allowed from the current status."""

    def __init__(self, tenant_id: str, current: str, requested: str):
        super().__init__(
            f"Tenant {tenant_id} cannot move from '{current}' to '{requested}'"
        )
        self.tenant_id = tenant_id
        self.current = current
        self.requested = requested
