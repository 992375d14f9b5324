"""Unit tests for TenantRegistrationService."""

from unittest.mock import AsyncMock, Mock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from shared_kernel.jobs.ports import IJobRepository
from shared_kernel.jobs.value_objects import RetryPolicy
from tenancy.application.observability import TenantServiceProbe
from tenancy.application.security import verify_admin_password
from tenancy.application.services import PROVISIONING_QUEUE, TenantRegistrationService
from tenancy.domain.exceptions import InvalidTenantSlugError
from tenancy.domain.value_objects import ProvisioningStatus
from tenancy.ports.exceptions import DuplicateTenantSlugError
from tenancy.ports.repositories import ITenantRepository
from tests.unit.fakes import InMemoryJobStore, build_tenant


@pytest.fixture
def mock_tenant_repo():
    """Mock TenantRepository with no existing tenants."""
    repo = Mock(spec=ITenantRepository)
    repo.get_by_slug = AsyncMock(return_value=None)
    repo.save = AsyncMock()
    return repo


@pytest.fixture
def job_repo(clock):
    """In-memory job repository."""
    return InMemoryJobStore(clock)


@pytest.fixture
def mock_session():
    """Mock AsyncSession."""
    session = Mock(spec=AsyncSession)

    # Create async context manager mock
    ctx_manager = AsyncMock()
    ctx_manager.__aenter__ = AsyncMock(return_value=None)
    ctx_manager.__aexit__ = AsyncMock(return_value=None)

    session.begin = Mock(return_value=ctx_manager)
    return session


@pytest.fixture
def mock_probe():
    return Mock(spec=TenantServiceProbe)


@pytest.fixture
def registration_service(mock_tenant_repo, job_repo, mock_session, mock_probe):
    """Create TenantRegistrationService with mocked dependencies."""
    return TenantRegistrationService(
        tenant_repository=mock_tenant_repo,
        job_repository=job_repo,
        session=mock_session,
        retry_policy=RetryPolicy(max_attempts=3, backoff_seconds=5),
        db_host="db.internal",
        db_port=5432,
        environment="prod",
        probe=mock_probe,
    )


async def register(service, slug="acme", **overrides):
    arguments = {
        "slug": slug,
        "company_name": "Acme Corp",
        "admin_email": "Admin@Acme.test ",
        "admin_password": "correct horse battery",
        "admin_first_name": "Ada",
        "admin_last_name": "Admin",
    }
    arguments.update(overrides)
    return await service.register(**arguments)


class TestRegister:
    """Tests for TenantRegistrationService.register()."""

    @pytest.mark.asyncio
    async def test_creates_pending_tenant(self, registration_service, mock_tenant_repo):
        tenant, _ = await register(registration_service)

        assert tenant.slug.value == "acme"
        assert tenant.name == "Acme Corp"
        assert tenant.provisioning_status == ProvisioningStatus.PENDING
        assert tenant.is_active is False
        assert tenant.server == "db.internal:5432"
        assert tenant.db_name.value.endswith("_prod")
        mock_tenant_repo.save.assert_awaited_once_with(tenant)

    @pytest.mark.asyncio
    async def test_enqueues_provisioning_job_keyed_by_tenant(
        self, registration_service, job_repo
    ):
        tenant, job = await register(registration_service)

        assert job.queue == PROVISIONING_QUEUE
        assert job.dedupe_key == tenant.id.value
        assert job.retry_policy == RetryPolicy(max_attempts=3, backoff_seconds=5)
        assert job_repo.jobs[job.id] == job

    @pytest.mark.asyncio
    async def test_payload_carries_hash_not_plaintext(self, registration_service):
        tenant, job = await register(registration_service)

        payload = job.payload
        assert payload["tenant_id"] == tenant.id.value
        assert payload["db_name"] == tenant.db_name.value
        assert payload["admin_email"] == "admin@acme.test"
        assert "correct horse battery" not in payload.values()
        assert verify_admin_password("correct horse battery", payload["admin_password_hash"])

    @pytest.mark.asyncio
    async def test_writes_happen_in_one_transaction(
        self, registration_service, mock_session
    ):
        await register(registration_service)
        mock_session.begin.assert_called_once()

    @pytest.mark.asyncio
    async def test_normalizes_slug(self, registration_service):
        tenant, _ = await register(registration_service, slug="  ACME-Corp ")
        assert tenant.slug.value == "acme-corp"

    @pytest.mark.asyncio
    async def test_reports_registration(self, registration_service, mock_probe):
        tenant, _ = await register(registration_service)
        mock_probe.tenant_registered.assert_called_once_with(
            tenant_id=tenant.id.value,
            slug="acme",
            db_name=tenant.db_name.value,
        )


class TestRegisterRejections:
    @pytest.mark.asyncio
    async def test_invalid_slug_rejected_before_any_write(
        self, registration_service, mock_session, mock_tenant_repo
    ):
        with pytest.raises(InvalidTenantSlugError):
            await register(registration_service, slug="admin")

        mock_session.begin.assert_not_called()
        mock_tenant_repo.save.assert_not_called()

    @pytest.mark.asyncio
    async def test_taken_slug_rejected(
        self, registration_service, mock_tenant_repo, job_repo, mock_probe
    ):
        mock_tenant_repo.get_by_slug = AsyncMock(return_value=build_tenant("acme"))

        with pytest.raises(DuplicateTenantSlugError):
            await register(registration_service)

        mock_tenant_repo.save.assert_not_called()
        assert job_repo.jobs == {}
        mock_probe.duplicate_tenant_slug.assert_called_once_with("acme")

    @pytest.mark.asyncio
    async def test_slug_of_deprovisioned_tenant_stays_taken(
        self, registration_service, mock_tenant_repo
    ):
        old = build_tenant("acme")
        old.mark_deprovisioned()
        mock_tenant_repo.get_by_slug = AsyncMock(return_value=old)

        with pytest.raises(DuplicateTenantSlugError):
            await register(registration_service)

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_detected_on_save(
        self, registration_service, mock_tenant_repo, job_repo
    ):
        """The unique constraint catches a race the pre-check misses."""
        mock_tenant_repo.save = AsyncMock(
            side_effect=DuplicateTenantSlugError("Slug 'acme' is already taken")
        )

        with pytest.raises(DuplicateTenantSlugError):
            await register(registration_service)

        assert job_repo.jobs == {}
