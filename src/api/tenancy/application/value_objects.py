"""Application-layer value objects for the tenancy context.

Step results drive the provisioning pipeline: each step reports an
inspectable outcome and the engine stops at the first failure, instead of
unwinding through nested exception handlers.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from tenancy.domain.value_objects import AdminAccount

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


class StepOutcome(StrEnum):
    COMPLETED = "completed"
    ALREADY_DONE = "already_done"
    FAILED = "failed"


@dataclass(frozen=True)
class StepResult:
    """Outcome of one provisioning step.

    Attributes:
        step: Step name (the status the tenant is in while it runs)
        outcome: Completed, already done, or failed
        detail: Human-readable detail or failure reason
        fatal: For failures, whether the step found a server-level problem
            that retrying within the same run would not fix
    """

    step: str
    outcome: StepOutcome
    detail: str = ""
    fatal: bool = False

    @classmethod
    def completed(cls, step: str, detail: str = "") -> StepResult:
        return cls(step=step, outcome=StepOutcome.COMPLETED, detail=detail)

    @classmethod
    def already_done(cls, step: str, detail: str = "") -> StepResult:
        return cls(step=step, outcome=StepOutcome.ALREADY_DONE, detail=detail)

    @classmethod
    def failed(cls, step: str, reason: str, fatal: bool = False) -> StepResult:
        return cls(step=step, outcome=StepOutcome.FAILED, detail=reason, fatal=fatal)

    @property
    def succeeded(self) -> bool:
        return self.outcome != StepOutcome.FAILED


@dataclass(frozen=True)
class ProvisioningReport:
    """Results of one provisioning run, in step order."""

    tenant_id: str
    db_name: str
    server: str
    results: tuple[StepResult, ...]

    @property
    def succeeded(self) -> bool:
        return all(result.succeeded for result in self.results)

    @property
    def failed_step(self) -> StepResult | None:
        return next((r for r in self.results if not r.succeeded), None)


@dataclass(frozen=True)
class ProvisioningPayload:
    """Job payload carrying everything a provisioning run needs."""

    tenant_id: str
    slug: str
    db_name: str
    admin_email: str
    admin_password_hash: str
    admin_first_name: str
    admin_last_name: str
    company_name: str

    @property
    def admin_account(self) -> AdminAccount:
        return AdminAccount(
            email=self.admin_email,
            password_hash=self.admin_password_hash,
            first_name=self.admin_first_name,
            last_name=self.admin_last_name,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "slug": self.slug,
            "db_name": self.db_name,
            "admin_email": self.admin_email,
            "admin_password_hash": self.admin_password_hash,
            "admin_first_name": self.admin_first_name,
            "admin_last_name": self.admin_last_name,
            "company_name": self.company_name,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProvisioningPayload:
        return cls(
            tenant_id=data["tenant_id"],
            slug=data["slug"],
            db_name=data["db_name"],
            admin_email=data["admin_email"],
            admin_password_hash=data["admin_password_hash"],
            admin_first_name=data["admin_first_name"],
            admin_last_name=data["admin_last_name"],
            company_name=data["company_name"],
        )


@dataclass(frozen=True)
class TenantIdentity:
    """Identifying signals extracted from a request.

    Precedence when several are present: tenant_id, then tenant_slug, then
    the subdomain of host. db_name and role come from a bearer token and are
    checked against the resolved tenant rather than used for lookup.

    token_tenant_slug is the tenant a bearer token was issued for when the
    lookup itself uses another signal; the resolved tenant must match it.
    """

    tenant_id: str | None = None
    tenant_slug: str | None = None
    host: str | None = None
    db_name: str | None = None
    role: str | None = None
    source: str = "unknown"
    token_tenant_slug: str | None = None


@dataclass(frozen=True)
class RoutedTenant:
    """A request resolved to a tenant and a ready-to-use database client."""

    tenant_id: str
    slug: str
    db_name: str
    role: str | None
    source: str
    client: AsyncEngine


@dataclass(frozen=True)
class ProvisioningStatusView:
    """Read-only view of a tenant's provisioning progress."""

    tenant_id: str
    slug: str
    status: str
    progress: int
    is_active: bool
    attempts: int
    error: str | None
    job_status: str | None
    job_attempts: int
    max_attempts: int | None
    next_retry_at: datetime | None
    provisioned_at: datetime | None
    deprovisioned_at: datetime | None


@dataclass(frozen=True)
class DeprovisionResult:
    tenant_id: str
    db_name: str
    database_dropped: bool
    role_dropped: bool
