"""PostgreSQL implementation of ITenantRepository.

This repository manages tenant records in the administrative database.
It shares the caller's session and never commits; the calling service
owns the transaction boundary.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tenancy.domain.aggregates import Tenant
from tenancy.domain.value_objects import (
    DatabaseName,
    DatabaseUsername,
    ProvisioningStatus,
    TenantId,
    TenantSlug,
)
from tenancy.infrastructure.models import TenantModel
from tenancy.infrastructure.observability import (
    DefaultTenantRepositoryProbe,
    TenantRepositoryProbe,
)
from tenancy.ports.exceptions import DuplicateTenantSlugError
from tenancy.ports.repositories import ITenantRepository


class TenantRepository(ITenantRepository):
    """Repository managing PostgreSQL storage for Tenant aggregates."""

    def __init__(
        self,
        session: AsyncSession,
        probe: TenantRepositoryProbe | None = None,
    ) -> None:
        """Initialize repository with database session.

        Args:
            session: AsyncSession from FastAPI dependency injection
            probe: Optional domain probe for observability
        """
        self._session = session
        self._probe = probe or DefaultTenantRepositoryProbe()

    async def save(self, tenant: Tenant) -> None:
        """Insert or update a tenant record.

        Args:
            tenant: The Tenant aggregate to persist

        Raises:
            DuplicateTenantSlugError: If the slug belongs to another tenant
        """
        existing = await self._get_model_by_slug(tenant.slug.value)
        if existing is not None and existing.id != tenant.id.value:
            self._probe.duplicate_tenant_slug(tenant.slug.value)
            raise DuplicateTenantSlugError(f"Slug '{tenant.slug}' is already taken")

        try:
            model = await self._session.get(TenantModel, tenant.id.value)
            if model is None:
                model = TenantModel(
                    id=tenant.id.value,
                    slug=tenant.slug.value,
                    db_name=tenant.db_name.value,
                    db_username=tenant.db_username.value,
                    created_at=tenant.created_at,
                )
                self._session.add(model)

            model.name = tenant.name
            model.db_host = tenant.db_host
            model.db_port = tenant.db_port
            model.db_password_encrypted = tenant.db_password_encrypted
            model.provisioning_status = tenant.provisioning_status.value
            model.provisioning_error = tenant.provisioning_error
            model.provisioning_attempts = tenant.provisioning_attempts
            model.is_active = tenant.is_active
            model.plan = tenant.plan
            model.provisioned_at = tenant.provisioned_at
            model.deprovisioned_at = tenant.deprovisioned_at

            await self._session.flush()
            self._probe.tenant_saved(tenant.id.value, tenant.provisioning_status.value)

        except IntegrityError as e:
            if "slug" in str(e.orig):
                self._probe.duplicate_tenant_slug(tenant.slug.value)
                raise DuplicateTenantSlugError(
                    f"Slug '{tenant.slug}' is already taken"
                ) from e
            raise

    async def get_by_id(self, tenant_id: TenantId) -> Tenant | None:
        """Fetch a tenant by id."""
        model = await self._session.get(TenantModel, tenant_id.value)
        if model is None:
            self._probe.tenant_not_found(f"id={tenant_id.value}")
            return None

        self._probe.tenant_retrieved(model.id)
        return self._to_domain(model)

    async def get_by_slug(self, slug: TenantSlug) -> Tenant | None:
        """Fetch a tenant by slug."""
        model = await self._get_model_by_slug(slug.value)
        if model is None:
            self._probe.tenant_not_found(f"slug={slug.value}")
            return None

        self._probe.tenant_retrieved(model.id)
        return self._to_domain(model)

    async def list_all(self) -> list[Tenant]:
        """Fetch all tenants ordered by id (registration order)."""
        result = await self._session.execute(select(TenantModel).order_by(TenantModel.id))
        tenants = [self._to_domain(model) for model in result.scalars().all()]
        self._probe.tenants_listed(len(tenants))
        return tenants

    async def _get_model_by_slug(self, slug: str) -> TenantModel | None:
        stmt = select(TenantModel).where(TenantModel.slug == slug)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    def _to_domain(model: TenantModel) -> Tenant:
        """Reconstitute a Tenant aggregate from its row."""
        return Tenant(
            id=TenantId(value=model.id),
            slug=TenantSlug(value=model.slug),
            name=model.name,
            db_host=model.db_host,
            db_port=model.db_port,
            db_name=DatabaseName(value=model.db_name),
            db_username=DatabaseUsername(value=model.db_username),
            db_password_encrypted=model.db_password_encrypted,
            provisioning_status=ProvisioningStatus(model.provisioning_status),
            provisioning_error=model.provisioning_error,
            provisioning_attempts=model.provisioning_attempts,
            is_active=model.is_active,
            plan=model.plan,
            created_at=model.created_at,
            provisioned_at=model.provisioned_at,
            deprovisioned_at=model.deprovisioned_at,
        )
