"""Health reporting for the control plane and routed tenant databases."""

from __future__ import annotations

from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from tenancy.ports.connections import ITenantConnectionPool


class TenantHealthService:
    """Checks the administrative database and tenant clients."""

    def __init__(self, pool: ITenantConnectionPool, admin_engine: AsyncEngine):
        self._pool = pool
        self._admin_engine = admin_engine

    async def control_plane_health(self) -> dict[str, Any]:
        """Report the administrative database check and pool statistics."""
        admin_ok, admin_error = await self.check_client(self._admin_engine)
        report: dict[str, Any] = {
            "status": "ok" if admin_ok else "degraded",
            "admin_database": "ok" if admin_ok else "unreachable",
            "pool": self._pool.stats(),
        }
        if admin_error is not None:
            report["error"] = admin_error
        return report

    @staticmethod
    async def check_client(client: AsyncEngine) -> tuple[bool, str | None]:
        """Run SELECT 1 on a client.

        Returns:
            Tuple of (reachable, error message)
        """
        try:
            async with client.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            return False, str(e)
        return True, None
