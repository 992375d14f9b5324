"""ORM models for the tenancy context's administrative tables."""

from tenancy.infrastructure.models.tenant import TenantModel

__all__ = ["TenantModel"]
