"""Aggregates for the tenancy domain."""

from tenancy.domain.aggregates.tenant import Tenant

__all__ = ["Tenant"]
