"""Shared middleware for cross-cutting concerns.

This module contains values and probes shared across bounded contexts. The
tenant context is attached to ``request.state.tenant`` once a request has
been routed to its tenant database.
"""

from shared_kernel.middleware.tenant_context import TenantContext

__all__ = ["TenantContext"]
