"""Process-wide cache of pooled clients for tenant databases.

Holds at most one engine per tenant. Concurrent cache misses for the same
tenant share a single establishment task, so a burst of requests for a cold
tenant opens one pool rather than one per request. A failed establishment
is never cached; the next request starts a fresh attempt.

The maps are guarded by a lock held only for short synchronous sections,
never across an await, and never across tenants' I/O.
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from infrastructure.database.engines import create_tenant_engine
from tenancy.infrastructure.observability import (
    DefaultTenantPoolProbe,
    TenantPoolProbe,
)
from tenancy.ports.exceptions import (
    CredentialDecryptionError,
    TenantConnectionFailedError,
)

if TYPE_CHECKING:
    from infrastructure.settings import TenantPoolSettings
    from tenancy.domain.aggregates import Tenant
    from tenancy.ports.provisioning import ICredentialVault


async def verify_engine(engine: AsyncEngine) -> None:
    """Open one connection and run SELECT 1."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


@dataclass
class _PoolEntry:
    engine: AsyncEngine
    db_name: str
    server: str
    last_used_at: float


class TenantConnectionPool:
    """Injectable single-flight cache of tenant engines."""

    def __init__(
        self,
        vault: ICredentialVault,
        settings: TenantPoolSettings,
        engine_factory: Callable[..., AsyncEngine] = create_tenant_engine,
        verifier: Callable[[AsyncEngine], Awaitable[None]] = verify_engine,
        probe: TenantPoolProbe | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the pool.

        Args:
            vault: Decrypts stored tenant passwords
            settings: Pool sizing, idle and connect timeouts
            engine_factory: Builds an engine from a tenant connection string
            verifier: Proves a new engine can reach its database
            probe: Optional domain probe for observability
            clock: Monotonic clock used for idle tracking
        """
        self._vault = vault
        self._settings = settings
        self._engine_factory = engine_factory
        self._verifier = verifier
        self._probe = probe or DefaultTenantPoolProbe()
        self._clock = clock

        self._lock = threading.Lock()
        self._entries: dict[str, _PoolEntry] = {}
        self._in_flight: dict[str, asyncio.Task[_PoolEntry]] = {}
        self._generations: dict[str, int] = {}
        self._establishments = 0
        self._background: set[asyncio.Task] = set()
        self._reaper: asyncio.Task | None = None

    async def get_client(self, tenant: Tenant) -> AsyncEngine:
        """Return the cached engine for a tenant, establishing it on first use.

        Raises:
            TenantConnectionFailedError: If the engine cannot be established
                within the connect timeout, or the stored credentials are
                unusable (not retryable)
        """
        key = tenant.id.value
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                entry.last_used_at = self._clock()
                self._probe.cache_hit(key)
                return entry.engine

            task = self._in_flight.get(key)
            if task is None:
                generation = self._generations.get(key, 0)
                task = asyncio.get_running_loop().create_task(self._establish(tenant))
                task.add_done_callback(partial(self._settle, key, generation))
                self._in_flight[key] = task
                self._establishments += 1
            else:
                self._probe.establishment_joined(key)

        timeout = self._settings.connect_timeout_seconds
        try:
            entry = await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
        except TimeoutError as e:
            self._probe.acquisition_timed_out(key, timeout)
            raise TenantConnectionFailedError(
                f"Timed out after {timeout}s connecting to tenant database",
                tenant_ref=key,
            ) from e
        return entry.engine

    async def invalidate(self, tenant_id: str) -> bool:
        """Drop a tenant's cached engine, e.g. after a credential rotation.

        An establishment already in flight is discarded when it completes.

        Returns:
            True if a cached engine was disposed
        """
        with self._lock:
            self._generations[tenant_id] = self._generations.get(tenant_id, 0) + 1
            entry = self._entries.pop(tenant_id, None)

        if entry is None:
            return False
        await entry.engine.dispose()
        self._probe.client_evicted(tenant_id, reason="invalidated")
        return True

    async def evict_idle(self) -> int:
        """Dispose engines idle for longer than the idle timeout.

        Returns:
            Number of engines evicted
        """
        cutoff = self._clock() - self._settings.idle_timeout_seconds
        with self._lock:
            idle = [
                (tenant_id, entry)
                for tenant_id, entry in self._entries.items()
                if entry.last_used_at < cutoff
            ]
            for tenant_id, _ in idle:
                del self._entries[tenant_id]

        for tenant_id, entry in idle:
            await entry.engine.dispose()
            self._probe.client_evicted(tenant_id, reason="idle")
        return len(idle)

    def start_reaper(self) -> None:
        """Start the background task evicting idle engines."""
        if self._reaper is None:
            self._reaper = asyncio.get_running_loop().create_task(self._reap_loop())

    async def stop_reaper(self) -> None:
        if self._reaper is None:
            return
        self._reaper.cancel()
        try:
            await self._reaper
        except asyncio.CancelledError:
            pass
        self._reaper = None

    async def close_all(self) -> None:
        """Dispose every cached engine; used on shutdown."""
        await self.stop_reaper()
        with self._lock:
            entries = list(self._entries.values())
            self._entries.clear()
            for tenant_id in list(self._in_flight):
                self._generations[tenant_id] = self._generations.get(tenant_id, 0) + 1

        for entry in entries:
            await entry.engine.dispose()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        self._probe.pool_closed(len(entries))

    def stats(self) -> dict[str, Any]:
        """Snapshot of the cache for health reporting."""
        now = self._clock()
        with self._lock:
            return {
                "cached": len(self._entries),
                "in_flight": len(self._in_flight),
                "establishments": self._establishments,
                "tenants": [
                    {
                        "tenant_id": tenant_id,
                        "db_name": entry.db_name,
                        "idle_seconds": round(now - entry.last_used_at, 3),
                    }
                    for tenant_id, entry in self._entries.items()
                ],
            }

    def is_cached(self, tenant_id: str) -> bool:
        with self._lock:
            return tenant_id in self._entries

    async def _establish(self, tenant: Tenant) -> _PoolEntry:
        tenant_id = tenant.id.value
        self._probe.establishment_started(tenant_id, tenant.db_name.value, tenant.server)

        password = self._decrypt_password(tenant)
        try:
            engine = self._engine_factory(
                tenant.connection_string(password),
                pool_size=self._settings.pool_size,
                max_overflow=self._settings.max_overflow,
                connect_timeout_seconds=self._settings.connect_timeout_seconds,
            )
        except (SQLAlchemyError, ValueError) as e:
            self._probe.establishment_failed(
                tenant_id, tenant.db_name.value, tenant.server, str(e)
            )
            raise TenantConnectionFailedError(
                f"Could not build a client for tenant database {tenant.db_name} "
                f"on {tenant.server}",
                tenant_ref=tenant_id,
                retryable=False,
            ) from e

        try:
            await self._verifier(engine)
        except (SQLAlchemyError, OSError, TimeoutError) as e:
            await engine.dispose()
            self._probe.establishment_failed(
                tenant_id, tenant.db_name.value, tenant.server, str(e)
            )
            raise TenantConnectionFailedError(
                f"Could not connect to tenant database {tenant.db_name} "
                f"on {tenant.server}",
                tenant_ref=tenant_id,
            ) from e
        except asyncio.CancelledError:
            await engine.dispose()
            raise

        self._probe.client_established(tenant_id, tenant.db_name.value, tenant.server)
        return _PoolEntry(
            engine=engine,
            db_name=tenant.db_name.value,
            server=tenant.server,
            last_used_at=self._clock(),
        )

    def _decrypt_password(self, tenant: Tenant) -> str:
        """Decrypt the stored password, failing closed."""
        tenant_id = tenant.id.value
        if not tenant.db_password_encrypted:
            self._probe.credentials_unusable(tenant_id, "no stored credentials")
            raise TenantConnectionFailedError(
                "Tenant has no stored database credentials",
                tenant_ref=tenant_id,
                retryable=False,
            )
        try:
            password = self._vault.decrypt(tenant.db_password_encrypted)
        except CredentialDecryptionError as e:
            self._probe.credentials_unusable(tenant_id, str(e))
            raise TenantConnectionFailedError(
                "Tenant database credentials could not be decrypted",
                tenant_ref=tenant_id,
                retryable=False,
            ) from e
        if not password:
            self._probe.credentials_unusable(tenant_id, "empty password")
            raise TenantConnectionFailedError(
                "Tenant database credentials are empty",
                tenant_ref=tenant_id,
                retryable=False,
            )
        return password

    def _settle(self, key: str, generation: int, task: asyncio.Task[_PoolEntry]) -> None:
        """Cache a successful establishment unless it was invalidated meanwhile."""
        with self._lock:
            if self._in_flight.get(key) is task:
                del self._in_flight[key]
            if task.cancelled() or task.exception() is not None:
                return
            entry = task.result()
            if self._generations.get(key, 0) == generation:
                self._entries[key] = entry
                return

        self._probe.stale_client_discarded(key)
        disposal = asyncio.get_running_loop().create_task(entry.engine.dispose())
        self._background.add(disposal)
        disposal.add_done_callback(self._background.discard)

    async def _reap_loop(self) -> None:
        while True:
            await asyncio.sleep(self._settings.reap_interval_seconds)
            try:
                await self.evict_idle()
            except SQLAlchemyError as e:
                self._probe.reaper_error(str(e))
