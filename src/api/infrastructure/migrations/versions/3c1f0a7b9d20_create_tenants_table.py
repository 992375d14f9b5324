"""create_tenants_table

Create the tenants table holding each tenant's database coordinates,
encrypted credentials and provisioning status. Rows are never deleted.

Revision ID: 3c1f0a7b9d20
Revises:
Create Date: 2026-09-02 10:14:52.118304

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "3c1f0a7b9d20"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "tenants",
        sa.Column("id", sa.String(length=26), nullable=False),
        sa.Column("slug", sa.String(length=63), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("db_host", sa.String(length=255), nullable=False),
        sa.Column("db_port", sa.Integer(), nullable=False),
        sa.Column("db_name", sa.String(length=63), nullable=False),
        sa.Column("db_username", sa.String(length=63), nullable=False),
        sa.Column("db_password_encrypted", sa.Text(), nullable=True),
        sa.Column("provisioning_status", sa.String(length=32), nullable=False),
        sa.Column("provisioning_error", sa.Text(), nullable=True),
        sa.Column(
            "provisioning_attempts",
            sa.Integer(),
            nullable=False,
            server_default="0",
        ),
        sa.Column(
            "is_active", sa.Boolean(), nullable=False, server_default="false"
        ),
        sa.Column(
            "plan", sa.String(length=50), nullable=False, server_default="free"
        ),
        sa.Column("provisioned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deprovisioned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
        sa.UniqueConstraint("db_name"),
    )
    op.create_index(
        op.f("ix_tenants_provisioning_status"),
        "tenants",
        ["provisioning_status"],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f("ix_tenants_provisioning_status"), table_name="tenants")
    op.drop_table("tenants")
