"""Routes served on a routed tenant's own database."""

from tenancy.presentation.tenant.routes import router

__all__ = ["router"]
