"""Unit tests for routing requests to tenant databases over HTTP.

Exercises the get_tenant_connection dependency through GET /tenant/health
with an in-memory tenant directory and a mocked connection pool.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, Mock, patch

import pytest
from fastapi import FastAPI, status
from fastapi.testclient import TestClient
from jose import jwt

from shared_kernel.auth import JWTValidator, TokenClaims
from shared_kernel.middleware.observability import TenantContextProbe
from tenancy.application.services import TenantConnectionRouter, TenantHealthService
from tenancy.dependencies.tenant_connection import (
    build_identity,
    get_connection_router,
    get_jwt_validator,
    get_tenant_context_probe,
)
from tenancy.domain.value_objects import ProvisioningStatus
from tenancy.ports.connections import ITenantConnectionPool
from tenancy.ports.exceptions import TenantConnectionFailedError
from tenancy.presentation import router
from tests.unit.fakes import InMemoryTenantDirectory, build_tenant

JWT_SECRET = "tenant-token-secret"


def sign(claims: dict) -> str:
    payload = {"exp": datetime.now(UTC) + timedelta(hours=1), **claims}
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


@pytest.fixture
def acme():
    return build_tenant("acme", status=ProvisioningStatus.ACTIVE, password_encrypted="00:11")


@pytest.fixture
def globex():
    return build_tenant("globex", status=ProvisioningStatus.ACTIVE, password_encrypted="22:33")


@pytest.fixture
def pending():
    return build_tenant("initech", status=ProvisioningStatus.CREATING_DATABASE)


@pytest.fixture
def failed():
    return build_tenant("hooli", status=ProvisioningStatus.FAILED)


@pytest.fixture
def mock_pool() -> Mock:
    pool = Mock(spec=ITenantConnectionPool)
    pool.get_client = AsyncMock(return_value=Mock(name="engine"))
    return pool


@pytest.fixture
def mock_probe() -> Mock:
    return Mock(spec=TenantContextProbe)


@pytest.fixture
def check_client():
    """Stub the SELECT 1 round trip on the routed client."""
    with patch.object(
        TenantHealthService,
        "check_client",
        AsyncMock(return_value=(True, None)),
    ) as stub:
        yield stub


def create_client(
    pool: Mock,
    probe: Mock,
    *tenants,
    validator: JWTValidator | None = None,
) -> TestClient:
    """Create a TestClient routing over the given tenants."""
    app = FastAPI()
    directory = InMemoryTenantDirectory(*tenants)
    app.dependency_overrides[get_connection_router] = lambda: TenantConnectionRouter(
        directory=directory, pool=pool
    )
    app.dependency_overrides[get_jwt_validator] = lambda: validator
    app.dependency_overrides[get_tenant_context_probe] = lambda: probe
    app.include_router(router)
    return TestClient(app)


@pytest.fixture
def validator() -> JWTValidator:
    return JWTValidator(secret=JWT_SECRET, probe=Mock())


class TestBuildIdentity:
    """Tests for combining token claims and headers."""

    def test_token_claims_win_over_headers(self) -> None:
        claims = TokenClaims(
            sub="u1",
            tenant_id="01ARZ3NDEKTSV4RRFFQ69G5FAV",
            tenant_slug="acme",
            db_name="tenant_x_prod",
            role="admin",
        )

        identity = build_identity(
            claims, "01BX5ZZKBKACTAV9WEVGEMMVRZ", "globex", "h.example.com"
        )

        assert identity.tenant_id == "01ARZ3NDEKTSV4RRFFQ69G5FAV"
        assert identity.tenant_slug == "acme"
        assert identity.db_name == "tenant_x_prod"
        assert identity.role == "admin"
        assert identity.source == "token"

    def test_header_id_outranks_token_slug(self) -> None:
        claims = TokenClaims(
            sub=None, tenant_id=None, tenant_slug="acme", db_name=None, role="admin"
        )

        identity = build_identity(claims, "01BX5ZZKBKACTAV9WEVGEMMVRZ", None, None)

        assert identity.tenant_id == "01BX5ZZKBKACTAV9WEVGEMMVRZ"
        assert identity.source == "header"
        assert identity.token_tenant_slug == "acme"

    def test_no_token_binds_no_tenant(self) -> None:
        identity = build_identity(None, "01BX5ZZKBKACTAV9WEVGEMMVRZ", "acme", None)
        assert identity.token_tenant_slug is None

    def test_headers_without_token(self) -> None:
        identity = build_identity(None, None, "globex", "acme.example.com")

        assert identity.tenant_slug == "globex"
        assert identity.host == "acme.example.com"
        assert identity.source == "header"

    def test_host_only(self) -> None:
        identity = build_identity(None, None, None, "acme.example.com")
        assert identity.source == "host"


class TestTenantHealthRouting:
    """Requests reach the tenant chosen by id, then slug, then subdomain."""

    def test_routes_by_subdomain(
        self, mock_pool, mock_probe, acme, globex, check_client
    ) -> None:
        client = create_client(mock_pool, mock_probe, acme, globex)

        response = client.get("/tenant/health", headers={"Host": "globex.app.example.com"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "status": "ok",
            "tenant_id": globex.id.value,
            "slug": "globex",
            "db_name": globex.db_name.value,
            "source": "host",
        }
        mock_probe.tenant_context_attached.assert_called_once_with(
            tenant_id=globex.id.value, source="host"
        )

    def test_tenant_id_header_wins(
        self, mock_pool, mock_probe, acme, globex, check_client
    ) -> None:
        client = create_client(mock_pool, mock_probe, acme, globex)

        response = client.get(
            "/tenant/health",
            headers={
                "X-Tenant-ID": acme.id.value,
                "X-Tenant-Slug": "globex",
                "Host": "globex.app.example.com",
            },
        )

        assert response.json()["tenant_id"] == acme.id.value

    def test_bearer_token_routes(
        self, mock_pool, mock_probe, acme, globex, validator, check_client
    ) -> None:
        client = create_client(mock_pool, mock_probe, acme, globex, validator=validator)
        token = sign({"tenantSlug": "acme", "dbName": acme.db_name.value})

        response = client.get(
            "/tenant/health",
            headers={"Authorization": f"Bearer {token}", "X-Tenant-Slug": "globex"},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["slug"] == "acme"
        assert response.json()["source"] == "token"

    def test_unhealthy_tenant_database_returns_503(
        self, mock_pool, mock_probe, acme, check_client
    ) -> None:
        check_client.return_value = (False, "connection reset")
        client = create_client(mock_pool, mock_probe, acme)

        response = client.get("/tenant/health", headers={"X-Tenant-Slug": "acme"})

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE


class TestTenantHealthRejections:
    """Routing failures map to distinct HTTP errors."""

    def test_unknown_tenant_returns_404(self, mock_pool, mock_probe, acme) -> None:
        client = create_client(mock_pool, mock_probe, acme)

        response = client.get("/tenant/health", headers={"X-Tenant-Slug": "nobody"})

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert "Retry-After" not in response.headers
        mock_probe.tenant_context_rejected.assert_called_once()
        assert mock_probe.tenant_context_rejected.call_args.kwargs["status_code"] == 404

    def test_no_signal_returns_404(self, mock_pool, mock_probe, acme) -> None:
        client = create_client(mock_pool, mock_probe, acme)
        response = client.get("/tenant/health", headers={"Host": "localhost:8000"})
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_provisioning_tenant_returns_409(self, mock_pool, mock_probe, pending) -> None:
        client = create_client(mock_pool, mock_probe, pending)

        response = client.get("/tenant/health", headers={"X-Tenant-Slug": "initech"})

        assert response.status_code == status.HTTP_409_CONFLICT
        mock_pool.get_client.assert_not_called()

    def test_failed_tenant_returns_403(self, mock_pool, mock_probe, failed) -> None:
        client = create_client(mock_pool, mock_probe, failed)

        response = client.get("/tenant/health", headers={"X-Tenant-Slug": "hooli"})

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_connection_failure_returns_503_with_retry_after(
        self, mock_pool, mock_probe, acme
    ) -> None:
        mock_pool.get_client.side_effect = TenantConnectionFailedError(
            "connection refused", tenant_ref=acme.id.value
        )
        client = create_client(mock_pool, mock_probe, acme)

        response = client.get("/tenant/health", headers={"X-Tenant-Slug": "acme"})

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.headers["Retry-After"] == "5"

    def test_credential_failure_returns_503_without_retry_after(
        self, mock_pool, mock_probe, acme
    ) -> None:
        mock_pool.get_client.side_effect = TenantConnectionFailedError(
            "stored credentials are unusable",
            tenant_ref=acme.id.value,
            retryable=False,
        )
        client = create_client(mock_pool, mock_probe, acme)

        response = client.get("/tenant/health", headers={"X-Tenant-Slug": "acme"})

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert "Retry-After" not in response.headers

    def test_invalid_token_returns_401(
        self, mock_pool, mock_probe, acme, validator
    ) -> None:
        client = create_client(mock_pool, mock_probe, acme, validator=validator)
        token = jwt.encode({"tenantSlug": "acme"}, "wrong-secret", algorithm="HS256")

        response = client.get(
            "/tenant/health", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.headers["WWW-Authenticate"] == "Bearer"
        mock_probe.invalid_token.assert_called_once()
        mock_pool.get_client.assert_not_called()

    def test_token_without_configured_secret_returns_401(
        self, mock_pool, mock_probe, acme
    ) -> None:
        client = create_client(mock_pool, mock_probe, acme, validator=None)

        response = client.get(
            "/tenant/health",
            headers={"Authorization": f"Bearer {sign({'tenantSlug': 'acme'})}"},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_header_naming_another_tenant_than_token_returns_404(
        self, mock_pool, mock_probe, acme, globex, validator, check_client
    ) -> None:
        client = create_client(mock_pool, mock_probe, acme, globex, validator=validator)
        token = sign({"tenantSlug": "acme", "role": "admin"})

        response = client.get(
            "/tenant/health",
            headers={"Authorization": f"Bearer {token}", "X-Tenant-ID": globex.id.value},
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        mock_pool.get_client.assert_not_called()
        mock_probe.tenant_context_attached.assert_not_called()

    def test_header_id_matching_token_slug_keeps_role(
        self, mock_pool, mock_probe, acme, globex, validator, check_client
    ) -> None:
        client = create_client(mock_pool, mock_probe, acme, globex, validator=validator)
        token = sign({"tenantSlug": "acme", "role": "admin"})

        response = client.get(
            "/tenant/health",
            headers={"Authorization": f"Bearer {token}", "X-Tenant-ID": acme.id.value},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["tenant_id"] == acme.id.value

    def test_db_name_claim_mismatch_returns_404(
        self, mock_pool, mock_probe, acme, validator
    ) -> None:
        client = create_client(mock_pool, mock_probe, acme, validator=validator)
        token = sign({"tenantSlug": "acme", "dbName": "tenant_someone_else_prod"})

        response = client.get(
            "/tenant/health", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
