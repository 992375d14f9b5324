"""Unit tests for the TenantContext shared value object and TenantContextProbe.

Tests the pure value object from the shared kernel and the domain probe
protocol + default implementation.
"""

from __future__ import annotations

from unittest.mock import Mock

import pytest

from shared_kernel.middleware.observability.tenant_context_probe import (
    DefaultTenantContextProbe,
)
from shared_kernel.middleware.tenant_context import TenantContext
from shared_kernel.observability_context import ObservationContext


def make_context(**overrides) -> TenantContext:
    values = {
        "tenant_id": "01ARZ3NDEKTSV4RRFFQ69G5FAV",
        "db_name": "tenant_01arz3ndektsv4rrffq69g5fav_prod",
        "role": None,
        "source": "header",
    }
    values.update(overrides)
    return TenantContext(**values)


class TestTenantContext:
    """Tests for the TenantContext value object."""

    def test_tenant_context_is_immutable(self) -> None:
        """TenantContext should be a frozen dataclass."""
        context = make_context()
        with pytest.raises(AttributeError):
            context.tenant_id = "something-else"  # type: ignore[misc]

    def test_stores_routing_fields(self) -> None:
        context = make_context(role="admin", source="token")

        assert context.tenant_id == "01ARZ3NDEKTSV4RRFFQ69G5FAV"
        assert context.db_name == "tenant_01arz3ndektsv4rrffq69g5fav_prod"
        assert context.role == "admin"
        assert context.source == "token"

    def test_tenant_context_equality(self) -> None:
        """Two TenantContext instances with same values should be equal."""
        assert make_context() == make_context()

    def test_tenant_context_inequality(self) -> None:
        """Contexts resolved from different signals are not equal."""
        assert make_context(source="header") != make_context(source="host")


class TestDefaultTenantContextProbe:
    """Tests for the DefaultTenantContextProbe implementation."""

    def test_with_context_returns_new_instance(self) -> None:
        """with_context should return a new probe instance with context bound."""
        probe = DefaultTenantContextProbe()
        new_probe = probe.with_context(ObservationContext(request_id="req-123"))

        assert new_probe is not probe
        assert isinstance(new_probe, DefaultTenantContextProbe)

    def test_attached_logs_at_debug(self) -> None:
        logger = Mock()
        probe = DefaultTenantContextProbe(logger=logger)

        probe.tenant_context_attached(tenant_id="t1", source="host")

        logger.debug.assert_called_once_with(
            "tenant_context_attached", tenant_id="t1", source="host"
        )

    def test_rejection_includes_bound_context(self) -> None:
        logger = Mock()
        probe = DefaultTenantContextProbe(logger=logger).with_context(
            ObservationContext(request_id="req-123")
        )

        probe.tenant_context_rejected(
            reason="Tenant not found", status_code=404, tenant_ref="acme"
        )

        logger.info.assert_called_once_with(
            "tenant_context_rejected",
            reason="Tenant not found",
            status_code=404,
            tenant_ref="acme",
            request_id="req-123",
        )

    def test_invalid_token_logs_warning(self) -> None:
        logger = Mock()
        probe = DefaultTenantContextProbe(logger=logger)

        probe.invalid_token(reason="Token has expired")

        logger.warning.assert_called_once_with(
            "tenant_context_invalid_token", reason="Token has expired"
        )
