"""Domain probe for tenant context resolution.

Following Domain-Oriented Observability patterns, this probe captures
domain-significant events of attaching a tenant to a request, or turning
a request away with an HTTP error.

See: https://martinfowler.com/articles/domain-oriented-observability.html
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class TenantContextProbe(Protocol):
    """Domain probe for tenant context resolution operations."""

    def tenant_context_attached(self, tenant_id: str, source: str) -> None:
        """Record that a request was bound to a tenant."""
        ...

    def tenant_context_rejected(
        self,
        reason: str,
        status_code: int,
        tenant_ref: str | None,
    ) -> None:
        """Record that a request could not be bound to a tenant."""
        ...

    def invalid_token(self, reason: str) -> None:
        """Record that the bearer token was rejected."""
        ...

    def with_context(self, context: ObservationContext) -> TenantContextProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultTenantContextProbe:
    """Default implementation of TenantContextProbe using structlog."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        """Get context metadata as kwargs for logging."""
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(self, context: ObservationContext) -> DefaultTenantContextProbe:
        """Create a new probe with observation context bound."""
        return DefaultTenantContextProbe(logger=self._logger, context=context)

    def tenant_context_attached(self, tenant_id: str, source: str) -> None:
        self._logger.debug(
            "tenant_context_attached",
            tenant_id=tenant_id,
            source=source,
            **self._get_context_kwargs(),
        )

    def tenant_context_rejected(
        self,
        reason: str,
        status_code: int,
        tenant_ref: str | None,
    ) -> None:
        self._logger.info(
            "tenant_context_rejected",
            reason=reason,
            status_code=status_code,
            tenant_ref=tenant_ref,
            **self._get_context_kwargs(),
        )

    def invalid_token(self, reason: str) -> None:
        self._logger.warning(
            "tenant_context_invalid_token",
            reason=reason,
            **self._get_context_kwargs(),
        )
