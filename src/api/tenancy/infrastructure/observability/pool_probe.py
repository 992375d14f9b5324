"""Domain probe for the tenant connection pool cache."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class TenantPoolProbe(Protocol):
    """Domain probe for per-tenant client caching."""

    def cache_hit(self, tenant_id: str) -> None:
        ...

    def establishment_started(self, tenant_id: str, db_name: str, server: str) -> None:
        ...

    def establishment_joined(self, tenant_id: str) -> None:
        """Record that a caller is waiting on an establishment already in flight."""
        ...

    def client_established(self, tenant_id: str, db_name: str, server: str) -> None:
        ...

    def establishment_failed(
        self, tenant_id: str, db_name: str, server: str, error: str
    ) -> None:
        ...

    def credentials_unusable(self, tenant_id: str, reason: str) -> None:
        """Record that stored credentials could not be used (fail closed)."""
        ...

    def acquisition_timed_out(self, tenant_id: str, timeout_seconds: float) -> None:
        ...

    def stale_client_discarded(self, tenant_id: str) -> None:
        """Record that a client finished establishing after an invalidation."""
        ...

    def client_evicted(self, tenant_id: str, reason: str) -> None:
        ...

    def pool_closed(self, count: int) -> None:
        ...

    def reaper_error(self, error: str) -> None:
        ...

    def with_context(self, context: ObservationContext) -> TenantPoolProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultTenantPoolProbe:
    """Default implementation of TenantPoolProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultTenantPoolProbe:
        return DefaultTenantPoolProbe(logger=self._logger, context=context)

    def cache_hit(self, tenant_id: str) -> None:
        self._logger.debug(
            "tenant_client_cache_hit", tenant_id=tenant_id, **self._get_context_kwargs()
        )

    def establishment_started(self, tenant_id: str, db_name: str, server: str) -> None:
        self._logger.info(
            "tenant_client_establishing",
            tenant_id=tenant_id,
            db_name=db_name,
            server=server,
            **self._get_context_kwargs(),
        )

    def establishment_joined(self, tenant_id: str) -> None:
        self._logger.debug(
            "tenant_client_establishment_joined",
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def client_established(self, tenant_id: str, db_name: str, server: str) -> None:
        self._logger.info(
            "tenant_client_established",
            tenant_id=tenant_id,
            db_name=db_name,
            server=server,
            **self._get_context_kwargs(),
        )

    def establishment_failed(
        self, tenant_id: str, db_name: str, server: str, error: str
    ) -> None:
        self._logger.error(
            "tenant_client_establishment_failed",
            tenant_id=tenant_id,
            db_name=db_name,
            server=server,
            error=error,
            **self._get_context_kwargs(),
        )

    def credentials_unusable(self, tenant_id: str, reason: str) -> None:
        self._logger.error(
            "tenant_credentials_unusable",
            tenant_id=tenant_id,
            reason=reason,
            **self._get_context_kwargs(),
        )

    def acquisition_timed_out(self, tenant_id: str, timeout_seconds: float) -> None:
        self._logger.warning(
            "tenant_client_acquisition_timed_out",
            tenant_id=tenant_id,
            timeout_seconds=timeout_seconds,
            **self._get_context_kwargs(),
        )

    def stale_client_discarded(self, tenant_id: str) -> None:
        self._logger.info(
            "tenant_client_stale_discarded",
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def client_evicted(self, tenant_id: str, reason: str) -> None:
        self._logger.info(
            "tenant_client_evicted",
            tenant_id=tenant_id,
            reason=reason,
            **self._get_context_kwargs(),
        )

    def pool_closed(self, count: int) -> None:
        self._logger.info(
            "tenant_pool_closed", count=count, **self._get_context_kwargs()
        )

    def reaper_error(self, error: str) -> None:
        self._logger.error(
            "tenant_pool_reaper_error", error=error, **self._get_context_kwargs()
        )
