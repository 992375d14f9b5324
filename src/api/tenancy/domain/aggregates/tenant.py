"""Tenant aggregate for the tenancy context."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from urllib.parse import quote

from tenancy.domain.exceptions import InvalidStatusTransitionError
from tenancy.domain.value_objects import (
    DatabaseName,
    DatabaseUsername,
    ProvisioningStatus,
    TenantId,
    TenantSlug,
)


@dataclass
class Tenant:
    """Tenant aggregate representing a customer with its own database.

    Business rules:
    - Slugs are globally unique and never change
    - Database name and username are derived from the id at registration
    - A tenant is routable only once provisioning completed, and never
      again after it has been deprovisioned
    - A failed provisioning never marks the tenant active
    """

    id: TenantId
    slug: TenantSlug
    name: str
    db_host: str
    db_port: int
    db_name: DatabaseName
    db_username: DatabaseUsername
    db_password_encrypted: str | None = None
    provisioning_status: ProvisioningStatus = ProvisioningStatus.PENDING
    provisioning_error: str | None = None
    provisioning_attempts: int = 0
    is_active: bool = False
    plan: str = "free"
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    provisioned_at: datetime | None = None
    deprovisioned_at: datetime | None = None

    @classmethod
    def register(
        cls,
        slug: TenantSlug,
        name: str,
        db_host: str,
        db_port: int,
        environment: str,
        plan: str = "free",
    ) -> Tenant:
        """Factory method for a newly registered tenant in status pending.

        Args:
            slug: Unique slug chosen at registration
            name: Company display name
            db_host: Host of the server the database will live on
            db_port: Port of the server the database will live on
            environment: Environment suffix for the database name
            plan: Plan label

        Returns:
            A new Tenant aggregate, not yet active
        """
        tenant_id = TenantId.generate()
        return cls(
            id=tenant_id,
            slug=slug,
            name=name,
            db_host=db_host,
            db_port=db_port,
            db_name=DatabaseName.for_tenant(tenant_id, environment),
            db_username=DatabaseUsername.for_tenant(tenant_id),
            plan=plan,
        )

    @property
    def server(self) -> str:
        """Database server coordinates as host:port."""
        return f"{self.db_host}:{self.db_port}"

    def connection_string(self, password: str) -> str:
        """Build the tenant connection string for the given plaintext password.

        The string is constructed on demand and never stored.

        Returns:
            ``postgresql://{username}:{password}@{host}:{port}/{db_name}?schema=public``
            with the password percent-encoded
        """
        return (
            f"postgresql://{self.db_username.value}:{quote(password, safe='')}"
            f"@{self.db_host}:{self.db_port}/{self.db_name.value}?schema=public"
        )

    @property
    def is_deprovisioned(self) -> bool:
        return self.deprovisioned_at is not None

    @property
    def is_routable(self) -> bool:
        """Check whether requests may be routed to this tenant's database."""
        return (
            self.is_active
            and self.provisioning_status == ProvisioningStatus.ACTIVE
            and not self.is_deprovisioned
        )

    def begin_provisioning(self) -> None:
        """Start a provisioning run; counts the attempt and clears the last error."""
        self._ensure_provisionable(ProvisioningStatus.PROVISIONING)
        self.provisioning_attempts += 1
        self.provisioning_status = ProvisioningStatus.PROVISIONING
        self.provisioning_error = None

    def assign_server(self, host: str, port: int) -> bool:
        """Pin the database coordinates to the administrative server.

        Returns:
            True if the stored coordinates differed and were corrected
        """
        if (self.db_host, self.db_port) == (host, port):
            return False
        self.db_host = host
        self.db_port = port
        return True

    def enter_step(self, status: ProvisioningStatus) -> None:
        """Record that a provisioning step is starting."""
        if not status.is_step:
            raise ValueError(f"'{status}' is not a provisioning step")
        self._ensure_provisionable(status)
        self.provisioning_status = status

    def store_credentials(self, password_encrypted: str) -> None:
        """Store the encrypted database password."""
        if not password_encrypted:
            raise ValueError("Encrypted password must not be empty")
        self.db_password_encrypted = password_encrypted

    def record_step_failure(self, step: str, reason: str) -> None:
        """Record why a step failed; the status stays on the failed step."""
        self.provisioning_error = f"{step}: {reason}"

    def activate(self) -> None:
        """Mark provisioning complete and open the tenant for routing."""
        self._ensure_provisionable(ProvisioningStatus.ACTIVE)
        if self.db_password_encrypted is None:
            raise InvalidStatusTransitionError(
                self.id.value, self.provisioning_status, ProvisioningStatus.ACTIVE
            )
        self.provisioning_status = ProvisioningStatus.ACTIVE
        self.provisioning_error = None
        self.is_active = True
        self.provisioned_at = datetime.now(UTC)

    def mark_failed(self, reason: str) -> None:
        """Mark provisioning as permanently failed after retries are exhausted."""
        if self.provisioning_status == ProvisioningStatus.ACTIVE:
            raise InvalidStatusTransitionError(
                self.id.value, self.provisioning_status, ProvisioningStatus.FAILED
            )
        self.provisioning_status = ProvisioningStatus.FAILED
        self.provisioning_error = reason
        self.is_active = False

    def reset_for_retry(self) -> None:
        """Return a failed tenant to pending for an operator-requested retry."""
        if self.provisioning_status != ProvisioningStatus.FAILED or self.is_deprovisioned:
            raise InvalidStatusTransitionError(
                self.id.value, self.provisioning_status, ProvisioningStatus.PENDING
            )
        self.provisioning_status = ProvisioningStatus.PENDING

    def rotate_credentials(self, password_encrypted: str) -> None:
        """Replace the stored password of a routable tenant."""
        if not self.is_routable:
            raise InvalidStatusTransitionError(
                self.id.value, self.provisioning_status, "credentials_rotated"
            )
        self.store_credentials(password_encrypted)

    def mark_deprovisioned(self) -> None:
        """Close the tenant for good. The record and its db_name are kept."""
        if self.is_deprovisioned:
            return
        self.is_active = False
        self.db_password_encrypted = None
        self.deprovisioned_at = datetime.now(UTC)

    def _ensure_provisionable(self, requested: ProvisioningStatus) -> None:
        if self.is_deprovisioned or self.provisioning_status == ProvisioningStatus.ACTIVE:
            raise InvalidStatusTransitionError(
                self.id.value, self.provisioning_status, requested
            )
