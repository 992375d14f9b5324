"""Domain probe for provisioning runs.

Every event is expected to carry tenant_id, db_name and server through the
bound ObservationContext; "database does not exist" failures are almost
always a tenant provisioned on one server and looked up on another.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class ProvisioningProbe(Protocol):
    """Domain probe for the provisioning engine."""

    def run_started(self, attempt: int) -> None:
        """Record that a provisioning run started."""
        ...

    def run_short_circuited(self, reason: str) -> None:
        """Record that a run found nothing to do."""
        ...

    def server_coordinates_corrected(self, previous: str, current: str) -> None:
        """Record that stored host/port diverged from the administrative URL."""
        ...

    def step_started(self, step: str) -> None:
        ...

    def step_finished(self, step: str, outcome: str, detail: str) -> None:
        ...

    def step_failed(self, step: str, reason: str, fatal: bool) -> None:
        ...

    def run_completed(self) -> None:
        """Record that the tenant became active."""
        ...

    def with_context(self, context: ObservationContext) -> ProvisioningProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultProvisioningProbe:
    """Default implementation of ProvisioningProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultProvisioningProbe:
        return DefaultProvisioningProbe(logger=self._logger, context=context)

    def run_started(self, attempt: int) -> None:
        self._logger.info(
            "provisioning_run_started", attempt=attempt, **self._get_context_kwargs()
        )

    def run_short_circuited(self, reason: str) -> None:
        self._logger.info(
            "provisioning_run_short_circuited",
            reason=reason,
            **self._get_context_kwargs(),
        )

    def server_coordinates_corrected(self, previous: str, current: str) -> None:
        self._logger.warning(
            "tenant_server_coordinates_corrected",
            previous=previous,
            current=current,
            **self._get_context_kwargs(),
        )

    def step_started(self, step: str) -> None:
        self._logger.info(
            "provisioning_step_started", step=step, **self._get_context_kwargs()
        )

    def step_finished(self, step: str, outcome: str, detail: str) -> None:
        self._logger.info(
            "provisioning_step_finished",
            step=step,
            outcome=outcome,
            detail=detail,
            **self._get_context_kwargs(),
        )

    def step_failed(self, step: str, reason: str, fatal: bool) -> None:
        self._logger.error(
            "provisioning_step_failed",
            step=step,
            reason=reason,
            fatal=fatal,
            **self._get_context_kwargs(),
        )

    def run_completed(self) -> None:
        self._logger.info("provisioning_run_completed", **self._get_context_kwargs())
