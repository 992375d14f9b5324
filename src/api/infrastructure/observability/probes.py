"""Domain probes for administrative database connections."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class ConnectionProbe(Protocol):
    """Domain probe for administrative engine lifecycle."""

    def engine_created(self, server: str, purpose: str) -> None:
        """Record that an administrative engine was created."""
        ...

    def pool_closed(self, purpose: str) -> None:
        """Record that an administrative engine's pool was closed."""
        ...

    def with_context(self, context: ObservationContext) -> ConnectionProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultConnectionProbe:
    """Default implementation of ConnectionProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultConnectionProbe:
        """Create a new probe with observation context bound."""
        return DefaultConnectionProbe(logger=self._logger, context=context)

    def engine_created(self, server: str, purpose: str) -> None:
        self._logger.info(
            "admin_engine_created",
            server=server,
            purpose=purpose,
            **self._get_context_kwargs(),
        )

    def pool_closed(self, purpose: str) -> None:
        self._logger.info(
            "admin_engine_closed",
            purpose=purpose,
            **self._get_context_kwargs(),
        )
