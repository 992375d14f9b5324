"""Unit tests for the tenant connection pool.

Engines are replaced by fakes and connection verification is gated by an
asyncio.Event, so tests control exactly when an establishment finishes.
"""

from __future__ import annotations

import asyncio

import pytest
from sqlalchemy.exc import ArgumentError

from infrastructure.settings import TenantPoolSettings
from tenancy.domain.value_objects import ProvisioningStatus
from tenancy.infrastructure.tenant_pool import TenantConnectionPool
from tenancy.ports.connections import ITenantConnectionPool
from tenancy.ports.exceptions import TenantConnectionFailedError
from tests.unit.fakes import build_tenant


class FakeEngine:
    def __init__(self, connection_string: str, **kwargs) -> None:
        self.connection_string = connection_string
        self.kwargs = kwargs
        self.disposed = False

    async def dispose(self) -> None:
        self.disposed = True


class EngineFactory:
    def __init__(self) -> None:
        self.engines: list[FakeEngine] = []

    def __call__(self, connection_string: str, **kwargs) -> FakeEngine:
        engine = FakeEngine(connection_string, **kwargs)
        self.engines.append(engine)
        return engine


class GatedVerifier:
    """Verifier that waits for its gate, then raises queued errors in order."""

    def __init__(self) -> None:
        self.gate = asyncio.Event()
        self.gate.set()
        self.errors: list[Exception] = []
        self.calls = 0

    async def __call__(self, engine: FakeEngine) -> None:
        self.calls += 1
        await self.gate.wait()
        if self.errors:
            raise self.errors.pop(0)


class MonotonicClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def settings():
    return TenantPoolSettings(
        pool_size=3,
        max_overflow=1,
        idle_timeout_seconds=60,
        connect_timeout_seconds=0.5,
    )


@pytest.fixture
def factory():
    return EngineFactory()


@pytest.fixture
def verifier():
    return GatedVerifier()


@pytest.fixture
def monotonic():
    return MonotonicClock()


@pytest.fixture
def pool(vault, settings, factory, verifier, monotonic):
    return TenantConnectionPool(
        vault=vault,
        settings=settings,
        engine_factory=factory,
        verifier=verifier,
        clock=monotonic,
    )


@pytest.fixture
def tenant(vault):
    return build_tenant(
        status=ProvisioningStatus.ACTIVE,
        password_encrypted=vault.encrypt("tenant-db-password"),
    )


async def until(predicate, attempts: int = 100) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0.001)
    raise AssertionError("condition not reached")


class TestTenantPoolCaching:
    """Tests for establishing and reusing tenant engines."""

    def test_implements_port(self, pool):
        assert isinstance(pool, ITenantConnectionPool)

    @pytest.mark.asyncio
    async def test_builds_engine_from_decrypted_credentials(self, pool, factory, tenant):
        engine = await pool.get_client(tenant)

        assert engine is factory.engines[0]
        assert engine.connection_string == tenant.connection_string("tenant-db-password")
        assert engine.kwargs == {
            "pool_size": 3,
            "max_overflow": 1,
            "connect_timeout_seconds": 0.5,
        }

    @pytest.mark.asyncio
    async def test_second_request_hits_cache(self, pool, factory, verifier, tenant):
        first = await pool.get_client(tenant)
        second = await pool.get_client(tenant)

        assert first is second
        assert len(factory.engines) == 1
        assert verifier.calls == 1

    @pytest.mark.asyncio
    async def test_tenants_get_separate_engines(self, pool, factory, vault, tenant):
        other = build_tenant(
            "globex",
            status=ProvisioningStatus.ACTIVE,
            password_encrypted=vault.encrypt("other-password"),
        )

        first = await pool.get_client(tenant)
        second = await pool.get_client(other)

        assert first is not second
        assert len(factory.engines) == 2


class TestTenantPoolSingleFlight:
    """Concurrent misses for one tenant share a single establishment."""

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_establishment(
        self, pool, factory, verifier, tenant
    ):
        verifier.gate.clear()
        callers = [asyncio.create_task(pool.get_client(tenant)) for _ in range(20)]
        await until(lambda: verifier.calls == 1)
        assert pool.stats()["in_flight"] == 1

        verifier.gate.set()
        engines = await asyncio.gather(*callers)

        assert len(factory.engines) == 1
        assert all(engine is factory.engines[0] for engine in engines)
        assert pool.stats()["establishments"] == 1
        assert pool.stats()["in_flight"] == 0

    @pytest.mark.asyncio
    async def test_failed_establishment_is_not_cached(
        self, pool, factory, verifier, tenant
    ):
        verifier.gate.clear()
        verifier.errors.append(OSError("connection refused"))
        callers = [asyncio.create_task(pool.get_client(tenant)) for _ in range(5)]
        await until(lambda: verifier.calls == 1)

        verifier.gate.set()
        results = await asyncio.gather(*callers, return_exceptions=True)

        assert all(isinstance(r, TenantConnectionFailedError) for r in results)
        assert all(r.retryable for r in results)
        assert factory.engines[0].disposed
        assert not pool.is_cached(tenant.id.value)

        engine = await pool.get_client(tenant)
        assert engine is factory.engines[1]
        assert pool.is_cached(tenant.id.value)

    @pytest.mark.asyncio
    async def test_slow_tenant_does_not_block_others(self, vault, settings, factory):
        slow_gate = asyncio.Event()

        async def verifier(engine):
            if "slow" in engine.connection_string:
                await slow_gate.wait()

        pool = TenantConnectionPool(
            vault=vault, settings=settings, engine_factory=factory, verifier=verifier
        )
        slow = build_tenant(
            "slow-co",
            status=ProvisioningStatus.ACTIVE,
            password_encrypted=vault.encrypt("slow"),
        )
        fast = build_tenant(
            "fast-co",
            status=ProvisioningStatus.ACTIVE,
            password_encrypted=vault.encrypt("fast"),
        )

        slow_caller = asyncio.create_task(pool.get_client(slow))
        await asyncio.sleep(0)
        fast_engine = await pool.get_client(fast)

        assert "fast" in fast_engine.connection_string
        assert not slow_caller.done()
        slow_gate.set()
        await slow_caller

    @pytest.mark.asyncio
    async def test_acquisition_times_out(self, pool, verifier, settings, tenant):
        verifier.gate.clear()
        settings.connect_timeout_seconds = 0.05

        with pytest.raises(TenantConnectionFailedError, match="Timed out"):
            await pool.get_client(tenant)

        verifier.gate.set()
        await until(lambda: pool.is_cached(tenant.id.value))


class TestTenantPoolCredentials:
    """The pool fails closed on unusable stored credentials."""

    @pytest.mark.asyncio
    async def test_missing_credentials(self, pool, factory):
        tenant = build_tenant(status=ProvisioningStatus.ACTIVE)

        with pytest.raises(TenantConnectionFailedError) as exc_info:
            await pool.get_client(tenant)

        assert exc_info.value.retryable is False
        assert factory.engines == []

    @pytest.mark.asyncio
    async def test_undecryptable_credentials(self, pool, factory):
        tenant = build_tenant(
            status=ProvisioningStatus.ACTIVE, password_encrypted="zz:" + "00" * 16
        )

        with pytest.raises(TenantConnectionFailedError) as exc_info:
            await pool.get_client(tenant)

        assert exc_info.value.retryable is False
        assert factory.engines == []

    @pytest.mark.asyncio
    async def test_empty_password(self, pool, factory, vault):
        tenant = build_tenant(
            status=ProvisioningStatus.ACTIVE, password_encrypted=vault.encrypt("")
        )

        with pytest.raises(TenantConnectionFailedError, match="empty"):
            await pool.get_client(tenant)

        assert factory.engines == []

    @pytest.mark.asyncio
    async def test_tampered_credentials_never_reach_the_factory(
        self, pool, factory, vault
    ):
        nonce_hex, ciphertext_hex = vault.encrypt("tenant-db-password").split(":")
        flipped = f"{int(nonce_hex[:2], 16) ^ 0x01:02x}{nonce_hex[2:]}"
        tenant = build_tenant(
            status=ProvisioningStatus.ACTIVE,
            password_encrypted=f"{flipped}:{ciphertext_hex}",
        )

        with pytest.raises(TenantConnectionFailedError) as exc_info:
            await pool.get_client(tenant)

        assert exc_info.value.retryable is False
        assert factory.engines == []

    @pytest.mark.asyncio
    async def test_factory_error_becomes_connection_failure(
        self, vault, settings, verifier, tenant
    ):
        def broken_factory(connection_string: str, **kwargs):
            raise ArgumentError("Could not parse SQLAlchemy URL")

        pool = TenantConnectionPool(
            vault=vault,
            settings=settings,
            engine_factory=broken_factory,
            verifier=verifier,
        )

        with pytest.raises(TenantConnectionFailedError) as exc_info:
            await pool.get_client(tenant)

        assert exc_info.value.retryable is False
        assert isinstance(exc_info.value.__cause__, ArgumentError)
        assert verifier.calls == 0
        assert not pool.is_cached(tenant.id.value)


class TestTenantPoolEviction:
    """Tests for invalidation, idle eviction and shutdown."""

    @pytest.mark.asyncio
    async def test_invalidate_disposes_cached_engine(self, pool, factory, tenant):
        engine = await pool.get_client(tenant)

        assert await pool.invalidate(tenant.id.value) is True

        assert engine.disposed
        assert not pool.is_cached(tenant.id.value)
        assert await pool.get_client(tenant) is factory.engines[1]

    @pytest.mark.asyncio
    async def test_invalidate_unknown_tenant(self, pool):
        assert await pool.invalidate("01ARZ3NDEKTSV4RRFFQ69G5FAV") is False

    @pytest.mark.asyncio
    async def test_invalidate_discards_in_flight_establishment(
        self, pool, factory, verifier, tenant
    ):
        """A client opened with rotated-away credentials is never cached."""
        verifier.gate.clear()
        caller = asyncio.create_task(pool.get_client(tenant))
        await until(lambda: verifier.calls == 1)

        await pool.invalidate(tenant.id.value)
        verifier.gate.set()
        await caller

        assert not pool.is_cached(tenant.id.value)
        await until(lambda: factory.engines[0].disposed)

    @pytest.mark.asyncio
    async def test_idle_engines_are_evicted(self, pool, monotonic, tenant):
        engine = await pool.get_client(tenant)

        monotonic.now += 30
        assert await pool.evict_idle() == 0
        monotonic.now += 31
        assert await pool.evict_idle() == 1

        assert engine.disposed
        assert not pool.is_cached(tenant.id.value)

    @pytest.mark.asyncio
    async def test_use_refreshes_idle_timer(self, pool, monotonic, tenant):
        await pool.get_client(tenant)
        monotonic.now += 50
        await pool.get_client(tenant)
        monotonic.now += 50

        assert await pool.evict_idle() == 0

    @pytest.mark.asyncio
    async def test_close_all_disposes_everything(self, pool, factory, vault, tenant):
        other = build_tenant(
            "globex",
            status=ProvisioningStatus.ACTIVE,
            password_encrypted=vault.encrypt("other"),
        )
        await pool.get_client(tenant)
        await pool.get_client(other)
        pool.start_reaper()

        await pool.close_all()

        assert all(engine.disposed for engine in factory.engines)
        assert pool.stats()["cached"] == 0

    @pytest.mark.asyncio
    async def test_stats_lists_cached_tenants(self, pool, monotonic, tenant):
        await pool.get_client(tenant)
        monotonic.now += 12

        stats = pool.stats()

        assert stats["cached"] == 1
        assert stats["tenants"] == [
            {
                "tenant_id": tenant.id.value,
                "db_name": tenant.db_name.value,
                "idle_seconds": 12.0,
            }
        ]
