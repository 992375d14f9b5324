"""Unit tests for tenancy value objects."""

import pytest

from tenancy.domain.exceptions import InvalidTenantSlugError
from tenancy.domain.value_objects import (
    AdminAccount,
    DatabaseName,
    DatabaseUsername,
    ProvisioningStatus,
    TenantId,
    TenantSlug,
)


class TestTenantId:
    """Tests for TenantId value object."""

    def test_generates_valid_ulid(self):
        """Generated ids should round-trip through from_string."""
        tenant_id = TenantId.generate()
        assert len(tenant_id.value) == 26
        assert TenantId.from_string(tenant_id.value) == tenant_id

    def test_from_string_normalizes_to_uppercase(self):
        """Lowercase ULIDs should resolve to the same id."""
        tenant_id = TenantId.generate()
        assert TenantId.from_string(tenant_id.value.lower()) == tenant_id

    def test_rejects_invalid_ulid(self):
        """Should raise ValueError for non-ULID strings."""
        with pytest.raises(ValueError, match="Invalid TenantId"):
            TenantId.from_string("not-a-ulid")


class TestTenantSlug:
    """Tests for slug naming rules."""

    @pytest.mark.parametrize("value", ["acme", "acme-corp", "a1b", "x" * 63])
    def test_accepts_valid_slugs(self, value):
        assert TenantSlug(value).value == value

    @pytest.mark.parametrize(
        "value",
        ["ab", "x" * 64, "-acme", "acme-", "Acme", "ac me", "acme_corp", ""],
    )
    def test_rejects_malformed_slugs(self, value):
        with pytest.raises(InvalidTenantSlugError):
            TenantSlug(value)

    @pytest.mark.parametrize("value", ["www", "api", "admin"])
    def test_rejects_reserved_host_labels(self, value):
        """Reserved labels would collide with subdomain routing."""
        with pytest.raises(InvalidTenantSlugError, match="reserved"):
            TenantSlug(value)

    def test_from_string_normalizes(self):
        assert TenantSlug.from_string("  ACME ").value == "acme"

    def test_slug_errors_are_value_errors(self):
        """Callers catching ValueError should see slug errors too."""
        with pytest.raises(ValueError):
            TenantSlug("!")


class TestDerivedNames:
    """Tests for names derived from the tenant id."""

    def test_database_name_uses_lowercased_id_and_environment(self):
        tenant_id = TenantId.generate()
        name = DatabaseName.for_tenant(tenant_id, "staging")
        assert name.value == f"tenant_{tenant_id.value.lower()}_staging"

    def test_username_uses_lowercased_id(self):
        tenant_id = TenantId.generate()
        username = DatabaseUsername.for_tenant(tenant_id)
        assert username.value == f"tenant_{tenant_id.value.lower()}_user"

    def test_derivation_is_deterministic(self):
        """A retried run must target the same database and role."""
        tenant_id = TenantId.generate()
        assert DatabaseName.for_tenant(tenant_id, "prod") == DatabaseName.for_tenant(
            tenant_id, "prod"
        )
        assert DatabaseUsername.for_tenant(tenant_id) == DatabaseUsername.for_tenant(
            tenant_id
        )


class TestProvisioningStatus:
    """Tests for ProvisioningStatus helpers."""

    @pytest.mark.parametrize(
        "status",
        [
            ProvisioningStatus.CREATING_USER,
            ProvisioningStatus.CREATING_DATABASE,
            ProvisioningStatus.GRANTING_PRIVILEGES,
            ProvisioningStatus.APPLYING_SCHEMA,
            ProvisioningStatus.CREATING_ADMIN_RECORD,
        ],
    )
    def test_step_statuses(self, status):
        assert status.is_step
        assert status.is_in_progress

    @pytest.mark.parametrize(
        "status", [ProvisioningStatus.PENDING, ProvisioningStatus.PROVISIONING]
    )
    def test_pre_step_statuses_are_in_progress(self, status):
        assert not status.is_step
        assert status.is_in_progress

    @pytest.mark.parametrize(
        "status", [ProvisioningStatus.ACTIVE, ProvisioningStatus.FAILED]
    )
    def test_terminal_statuses_are_not_in_progress(self, status):
        assert not status.is_step
        assert not status.is_in_progress

    def test_progress_increases_through_the_steps(self):
        ordered = [
            ProvisioningStatus.PENDING,
            ProvisioningStatus.PROVISIONING,
            ProvisioningStatus.CREATING_USER,
            ProvisioningStatus.CREATING_DATABASE,
            ProvisioningStatus.GRANTING_PRIVILEGES,
            ProvisioningStatus.APPLYING_SCHEMA,
            ProvisioningStatus.CREATING_ADMIN_RECORD,
            ProvisioningStatus.ACTIVE,
        ]
        progress = [status.progress for status in ordered]
        assert progress == sorted(progress)
        assert progress[-1] == 100

    def test_every_status_has_progress(self):
        for status in ProvisioningStatus:
            assert 0 <= status.progress <= 100


class TestAdminAccount:
    def test_repr_hides_password_hash(self):
        account = AdminAccount(
            email="admin@acme.test",
            password_hash="$2b$12$secret",
            first_name="Ada",
            last_name="Admin",
        )
        assert "secret" not in repr(account)
        assert "admin@acme.test" in repr(account)
