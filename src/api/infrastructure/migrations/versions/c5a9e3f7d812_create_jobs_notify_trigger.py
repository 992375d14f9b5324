"""create_jobs_notify_trigger

Create a PostgreSQL trigger that sends NOTIFY when a job is enqueued, so
the worker picks up new provisioning jobs without waiting for its next
poll.

Revision ID: c5a9e3f7d812
Revises: 8e2d4b6a1c57
Create Date: 2026-09-02 12:03:44.208175

"""

from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = "c5a9e3f7d812"
down_revision: Union[str, Sequence[str], None] = "8e2d4b6a1c57"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.execute("""
        CREATE OR REPLACE FUNCTION notify_job_enqueued()
        RETURNS TRIGGER AS $$
        BEGIN
            PERFORM pg_notify('jobs_enqueued', NEW.id::text);
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)

    # Requeued jobs go back to 'queued' through an UPDATE
    op.execute("""
        CREATE TRIGGER jobs_after_enqueue
            AFTER INSERT OR UPDATE OF status ON jobs
            FOR EACH ROW
            WHEN (NEW.status = 'queued')
            EXECUTE FUNCTION notify_job_enqueued();
    """)


def downgrade() -> None:
    """Downgrade schema."""
    op.execute("DROP TRIGGER IF EXISTS jobs_after_enqueue ON jobs;")
    op.execute("DROP FUNCTION IF EXISTS notify_job_enqueued();")
