"""Domain probe for application startup and lifecycle events.

Following Domain-Oriented Observability patterns, this probe captures
domain-significant events during application initialization and shutdown.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class StartupProbe(Protocol):
    """Domain probe for application startup operations."""

    def application_starting(self, version: str, admin_server: str) -> None:
        """Record that the application is starting against an admin server."""
        ...

    def configuration_invalid(self, error: str) -> None:
        """Record that startup configuration failed validation."""
        ...

    def provisioning_worker_started(self, concurrency: int) -> None:
        """Record that the provisioning worker was started in-process."""
        ...

    def provisioning_worker_disabled(self) -> None:
        """Record that the provisioning worker is disabled by configuration."""
        ...

    def application_stopped(self) -> None:
        """Record that shutdown released all resources."""
        ...

    def with_context(self, context: ObservationContext) -> StartupProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultStartupProbe:
    """Default implementation of StartupProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultStartupProbe:
        """Create a new probe with observation context bound."""
        return DefaultStartupProbe(logger=self._logger, context=context)

    def application_starting(self, version: str, admin_server: str) -> None:
        self._logger.info(
            "application_starting",
            version=version,
            admin_server=admin_server,
            **self._get_context_kwargs(),
        )

    def configuration_invalid(self, error: str) -> None:
        self._logger.critical(
            "configuration_invalid",
            error=error,
            **self._get_context_kwargs(),
        )

    def provisioning_worker_started(self, concurrency: int) -> None:
        self._logger.info(
            "provisioning_worker_started",
            concurrency=concurrency,
            **self._get_context_kwargs(),
        )

    def provisioning_worker_disabled(self) -> None:
        self._logger.info(
            "provisioning_worker_disabled",
            **self._get_context_kwargs(),
        )

    def application_stopped(self) -> None:
        self._logger.info(
            "application_stopped",
            **self._get_context_kwargs(),
        )
