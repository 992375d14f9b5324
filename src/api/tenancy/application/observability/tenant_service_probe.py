"""Domain probe for tenant registration and administration."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class TenantServiceProbe(Protocol):
    """Domain probe for tenant application service operations."""

    def tenant_registered(self, tenant_id: str, slug: str, db_name: str) -> None:
        ...

    def duplicate_tenant_slug(self, slug: str) -> None:
        ...

    def tenant_not_found(self, tenant_id: str) -> None:
        ...

    def provisioning_exhausted(self, tenant_id: str, error: str) -> None:
        """Record that a tenant was marked failed after its last attempt."""
        ...

    def provisioning_requeued(self, tenant_id: str) -> None:
        ...

    def credentials_rotated(self, tenant_id: str) -> None:
        ...

    def credentials_rotation_reverted(
        self, tenant_id: str, restored: bool, error: str | None = None
    ) -> None:
        """Record that a rotation failed after the role password was changed.

        restored is False when the previous password could not be put back;
        the tenant then needs another rotation before it can connect.
        """
        ...

    def tenant_deprovisioned(
        self, tenant_id: str, db_name: str, database_dropped: bool, role_dropped: bool
    ) -> None:
        ...

    def with_context(self, context: ObservationContext) -> TenantServiceProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultTenantServiceProbe:
    """Default implementation of TenantServiceProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultTenantServiceProbe:
        return DefaultTenantServiceProbe(logger=self._logger, context=context)

    def tenant_registered(self, tenant_id: str, slug: str, db_name: str) -> None:
        self._logger.info(
            "tenant_registered",
            tenant_id=tenant_id,
            slug=slug,
            db_name=db_name,
            **self._get_context_kwargs(),
        )

    def duplicate_tenant_slug(self, slug: str) -> None:
        self._logger.warning(
            "duplicate_tenant_slug", slug=slug, **self._get_context_kwargs()
        )

    def tenant_not_found(self, tenant_id: str) -> None:
        self._logger.debug(
            "tenant_not_found", tenant_id=tenant_id, **self._get_context_kwargs()
        )

    def provisioning_exhausted(self, tenant_id: str, error: str) -> None:
        self._logger.error(
            "tenant_provisioning_failed",
            tenant_id=tenant_id,
            error=error,
            **self._get_context_kwargs(),
        )

    def provisioning_requeued(self, tenant_id: str) -> None:
        self._logger.info(
            "tenant_provisioning_requeued",
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def credentials_rotated(self, tenant_id: str) -> None:
        self._logger.info(
            "tenant_credentials_rotated",
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def credentials_rotation_reverted(
        self, tenant_id: str, restored: bool, error: str | None = None
    ) -> None:
        self._logger.error(
            "tenant_credentials_rotation_reverted",
            tenant_id=tenant_id,
            restored=restored,
            error=error,
            **self._get_context_kwargs(),
        )

    def tenant_deprovisioned(
        self, tenant_id: str, db_name: str, database_dropped: bool, role_dropped: bool
    ) -> None:
        self._logger.info(
            "tenant_deprovisioned",
            tenant_id=tenant_id,
            db_name=db_name,
            database_dropped=database_dropped,
            role_dropped=role_dropped,
            **self._get_context_kwargs(),
        )
