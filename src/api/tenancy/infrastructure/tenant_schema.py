"""Fixed business schema applied to every tenant database.

Only the administrative users table is defined here; business tables are
owned by the services that consume tenant databases.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import Boolean, Column, DateTime, MetaData, String, Table
from ulid import ULID

tenant_metadata = MetaData()


def _new_user_id() -> str:
    return str(ULID())


def _utc_now() -> datetime:
    return datetime.now(UTC)


users = Table(
    "users",
    tenant_metadata,
    Column("id", String(26), primary_key=True, default=_new_user_id),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", String(255), nullable=False),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("role", String(50), nullable=False, default="admin"),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True), nullable=False, default=_utc_now),
)
