"""Domain probe for server-level administration of tenant databases."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class ServerAdminProbe(Protocol):
    """Domain probe for administrative DDL."""

    def statement_executed(self, operation: str, target: str) -> None:
        """Record that an administrative statement succeeded."""
        ...

    def statement_failed(self, operation: str, target: str, error: str) -> None:
        """Record that an administrative statement failed."""
        ...

    def with_context(self, context: ObservationContext) -> ServerAdminProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultServerAdminProbe:
    """Default implementation of ServerAdminProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultServerAdminProbe:
        return DefaultServerAdminProbe(logger=self._logger, context=context)

    def statement_executed(self, operation: str, target: str) -> None:
        self._logger.debug(
            "admin_statement_executed",
            operation=operation,
            target=target,
            **self._get_context_kwargs(),
        )

    def statement_failed(self, operation: str, target: str, error: str) -> None:
        self._logger.error(
            "admin_statement_failed",
            operation=operation,
            target=target,
            error=error,
            **self._get_context_kwargs(),
        )
