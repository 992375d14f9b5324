"""SQLAlchemy ORM model for the tenants table.

Stores each tenant's connection coordinates and lifecycle status in the
administrative database. Rows are never deleted, so a database name is
never handed out twice.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from infrastructure.database.models import Base, TimestampMixin


class TenantModel(Base, TimestampMixin):
    """ORM model for tenants table.

    Note: slug and db_name are globally unique, deprovisioned rows included.
    """

    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(String(26), primary_key=True)
    slug: Mapped[str] = mapped_column(String(63), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    db_host: Mapped[str] = mapped_column(String(255), nullable=False)
    db_port: Mapped[int] = mapped_column(Integer, nullable=False)
    db_name: Mapped[str] = mapped_column(String(63), nullable=False, unique=True)
    db_username: Mapped[str] = mapped_column(String(63), nullable=False)
    db_password_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)
    provisioning_status: Mapped[str] = mapped_column(
        String(32), nullable=False, index=True
    )
    provisioning_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    provisioning_attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default="0"
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default="false"
    )
    plan: Mapped[str] = mapped_column(String(50), nullable=False, server_default="free")
    provisioned_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    deprovisioned_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"<TenantModel(id={self.id}, slug={self.slug}, "
            f"status={self.provisioning_status}, is_active={self.is_active})>"
        )
