"""Unit test fixtures with in-memory stand-ins for the database server."""

from __future__ import annotations

import pytest

from tenancy.domain.aggregates import Tenant
from tenancy.domain.value_objects import AdminAccount
from tenancy.infrastructure.credential_vault import CredentialVault
from tests.unit.fakes import (
    TEST_PASSPHRASE,
    FakeClock,
    FakeServerAdmin,
    FakeTenantSeeder,
    build_tenant,
)


@pytest.fixture(scope="session")
def vault() -> CredentialVault:
    """Credential vault keyed from a fixed test passphrase.

    Session scoped: deriving the key is slow on purpose.
    """
    return CredentialVault(TEST_PASSPHRASE)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def server() -> FakeServerAdmin:
    return FakeServerAdmin()


@pytest.fixture
def seeder() -> FakeTenantSeeder:
    return FakeTenantSeeder()


@pytest.fixture
def admin_account() -> AdminAccount:
    return AdminAccount(
        email="admin@acme.test",
        password_hash="$2b$12$abcdefghijklmnopqrstuuuuuuuuuuuuuuuuuuuuuuuuuuuuuuuuu",
        first_name="Ada",
        last_name="Admin",
    )


@pytest.fixture
def pending_tenant() -> Tenant:
    return build_tenant()
