"""Value objects for the tenancy domain.

Database names and usernames are derived deterministically from the tenant
id so that a retried provisioning run always targets the same objects.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum

from ulid import ULID

from tenancy.domain.exceptions import InvalidTenantSlugError

RESERVED_HOST_LABELS = frozenset({"www", "api", "admin"})

_SLUG_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]{1,61}[a-z0-9])$")


@dataclass(frozen=True)
class TenantId:
    """Identifier for a Tenant aggregate.

    Uses ULID for sortability and distribution-friendly generation.
    """

    value: str

    def __str__(self) -> str:
        """Return string representation."""
        return self.value

    @classmethod
    def generate(cls) -> TenantId:
        """Generate a new TenantId using ULID."""
        return cls(value=str(ULID()))

    @classmethod
    def from_string(cls, value: str) -> TenantId:
        """Create TenantId from string value.

        Raises:
            ValueError: If value is not a valid ULID
        """
        try:
            ULID.from_str(value)
        except ValueError as e:
            raise ValueError(f"Invalid TenantId: {value}") from e

        return cls(value=value.upper())


@dataclass(frozen=True)
class TenantSlug:
    """Human-readable unique tenant identifier, used as a host label.

    Lowercase letters, digits and hyphens; 3 to 63 characters; starts and
    ends with a letter or digit; never a reserved host label.
    """

    value: str

    def __post_init__(self) -> None:
        if not _SLUG_PATTERN.match(self.value):
            raise InvalidTenantSlugError(
                f"Invalid slug '{self.value}': use 3-63 lowercase letters, "
                "digits or hyphens, starting and ending with a letter or digit"
            )
        if self.value in RESERVED_HOST_LABELS:
            raise InvalidTenantSlugError(f"Slug '{self.value}' is reserved")

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_string(cls, value: str) -> TenantSlug:
        """Normalize and validate a slug."""
        return cls(value=value.strip().lower())


@dataclass(frozen=True)
class DatabaseName:
    """Name of a tenant's physical database: tenant_<id>_<environment>."""

    value: str

    def __str__(self) -> str:
        return self.value

    @classmethod
    def for_tenant(cls, tenant_id: TenantId, environment: str) -> DatabaseName:
        return cls(value=f"tenant_{tenant_id.value.lower()}_{environment}")


@dataclass(frozen=True)
class DatabaseUsername:
    """Login role owning a tenant's database: tenant_<id>_user."""

    value: str

    def __str__(self) -> str:
        return self.value

    @classmethod
    def for_tenant(cls, tenant_id: TenantId) -> DatabaseUsername:
        return cls(value=f"tenant_{tenant_id.value.lower()}_user")


class ProvisioningStatus(StrEnum):
    """Lifecycle status of a tenant's database.

    Sub-states between provisioning and active name the step that is
    running, or that failed when the record carries a provisioning error.
    """

    PENDING = "pending"
    PROVISIONING = "provisioning"
    CREATING_USER = "creating_user"
    CREATING_DATABASE = "creating_database"
    GRANTING_PRIVILEGES = "granting_privileges"
    APPLYING_SCHEMA = "applying_schema"
    CREATING_ADMIN_RECORD = "creating_admin_record"
    ACTIVE = "active"
    FAILED = "failed"

    @property
    def is_step(self) -> bool:
        """Check whether this status names a provisioning step."""
        return self in _STEP_STATUSES

    @property
    def is_in_progress(self) -> bool:
        """Check whether the tenant is still on its way to active."""
        if self in (ProvisioningStatus.PENDING, ProvisioningStatus.PROVISIONING):
            return True
        return self.is_step

    @property
    def progress(self) -> int:
        """Approximate completion percentage for status reporting."""
        return _PROGRESS[self]


_STEP_STATUSES = frozenset(
    {
        ProvisioningStatus.CREATING_USER,
        ProvisioningStatus.CREATING_DATABASE,
        ProvisioningStatus.GRANTING_PRIVILEGES,
        ProvisioningStatus.APPLYING_SCHEMA,
        ProvisioningStatus.CREATING_ADMIN_RECORD,
    }
)

_PROGRESS = {
    ProvisioningStatus.PENDING: 0,
    ProvisioningStatus.PROVISIONING: 5,
    ProvisioningStatus.CREATING_USER: 15,
    ProvisioningStatus.CREATING_DATABASE: 30,
    ProvisioningStatus.GRANTING_PRIVILEGES: 45,
    ProvisioningStatus.APPLYING_SCHEMA: 60,
    ProvisioningStatus.CREATING_ADMIN_RECORD: 80,
    ProvisioningStatus.ACTIVE: 100,
    ProvisioningStatus.FAILED: 0,
}


@dataclass(frozen=True)
class AdminAccount:
    """First administrative user seeded into a new tenant database.

    The password arrives already hashed; plaintext never reaches the queue.
    """

    email: str
    password_hash: str
    first_name: str
    last_name: str

    def __repr__(self) -> str:
        return f"AdminAccount(email={self.email!r})"
