"""Tenancy presentation layer - aggregate-based organization.

Each package contains its own routes and models: ``tenants`` for
registration and operator endpoints, ``tenant`` for endpoints served on
the database of the tenant a request is routed to.
"""

from __future__ import annotations

from fastapi import APIRouter

from tenancy.presentation import tenant, tenants

router = APIRouter()

router.include_router(tenants.router)
router.include_router(tenant.router)

__all__ = ["router"]
