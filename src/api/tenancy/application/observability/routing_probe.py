"""Domain probe for request-time tenant routing."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class RoutingProbe(Protocol):
    """Domain probe for the connection router."""

    def tenant_routed(self, tenant_id: str, db_name: str, source: str) -> None:
        ...

    def routing_rejected(self, reason: str, tenant_ref: str | None, source: str) -> None:
        ...

    def db_name_mismatch(self, tenant_id: str, claimed: str) -> None:
        """Record that a token's dbName claim disagrees with the tenant record."""
        ...

    def token_tenant_mismatch(self, tenant_id: str, token_slug: str) -> None:
        """Record that a header named a tenant other than the token's own."""
        ...

    def with_context(self, context: ObservationContext) -> RoutingProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultRoutingProbe:
    """Default implementation of RoutingProbe using structlog."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(self, context: ObservationContext) -> DefaultRoutingProbe:
        return DefaultRoutingProbe(logger=self._logger, context=context)

    def tenant_routed(self, tenant_id: str, db_name: str, source: str) -> None:
        self._logger.debug(
            "tenant_routed",
            tenant_id=tenant_id,
            db_name=db_name,
            source=source,
            **self._get_context_kwargs(),
        )

    def routing_rejected(self, reason: str, tenant_ref: str | None, source: str) -> None:
        self._logger.info(
            "tenant_routing_rejected",
            reason=reason,
            tenant_ref=tenant_ref,
            source=source,
            **self._get_context_kwargs(),
        )

    def db_name_mismatch(self, tenant_id: str, claimed: str) -> None:
        self._logger.warning(
            "tenant_db_name_claim_mismatch",
            tenant_id=tenant_id,
            claimed=claimed,
            **self._get_context_kwargs(),
        )

    def token_tenant_mismatch(self, tenant_id: str, token_slug: str) -> None:
        self._logger.warning(
            "tenant_token_tenant_mismatch",
            tenant_id=tenant_id,
            token_slug=token_slug,
            **self._get_context_kwargs(),
        )
