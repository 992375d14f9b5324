"""Unit tests for TenantHealthService."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, Mock

import pytest
from sqlalchemy.exc import OperationalError

from tenancy.application.services import TenantHealthService
from tenancy.ports.connections import ITenantConnectionPool


def make_engine(error: Exception | None = None) -> MagicMock:
    """Mock AsyncEngine whose connect() yields a connection."""
    conn = AsyncMock()
    if error is not None:
        conn.execute.side_effect = error

    ctx_manager = AsyncMock()
    ctx_manager.__aenter__ = AsyncMock(return_value=conn)
    ctx_manager.__aexit__ = AsyncMock(return_value=None)

    engine = MagicMock()
    engine.connect = Mock(return_value=ctx_manager)
    engine.conn = conn
    return engine


@pytest.fixture
def mock_pool():
    pool = Mock(spec=ITenantConnectionPool)
    pool.stats.return_value = {"cached": 2, "in_flight": 0}
    return pool


class TestCheckClient:
    @pytest.mark.asyncio
    async def test_reachable_client(self):
        engine = make_engine()

        assert await TenantHealthService.check_client(engine) == (True, None)
        engine.conn.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unreachable_client_reports_error(self):
        engine = make_engine(OperationalError("SELECT 1", {}, Exception("refused")))

        reachable, error = await TenantHealthService.check_client(engine)

        assert reachable is False
        assert "refused" in error

    @pytest.mark.asyncio
    async def test_socket_error_is_reported(self):
        engine = make_engine(ConnectionRefusedError("connection refused"))

        reachable, error = await TenantHealthService.check_client(engine)

        assert reachable is False
        assert error == "connection refused"


class TestControlPlaneHealth:
    @pytest.mark.asyncio
    async def test_healthy_report_includes_pool_stats(self, mock_pool):
        service = TenantHealthService(pool=mock_pool, admin_engine=make_engine())

        report = await service.control_plane_health()

        assert report == {
            "status": "ok",
            "admin_database": "ok",
            "pool": {"cached": 2, "in_flight": 0},
        }

    @pytest.mark.asyncio
    async def test_unreachable_admin_database_is_degraded(self, mock_pool):
        service = TenantHealthService(
            pool=mock_pool, admin_engine=make_engine(OSError("no route to host"))
        )

        report = await service.control_plane_health()

        assert report["status"] == "degraded"
        assert report["admin_database"] == "unreachable"
        assert report["error"] == "no route to host"
