"""Initial schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # Create enums with conditional check (Postgres doesn't support IF NOT EXISTS for TYPE)
    op.execute("""
        DO $$ BEGIN
            CREATE TYPE job_severity AS ENUM ('low', 'medium', 'high');
        EXCEPTION WHEN duplicate_object THEN NULL;
        END $$;
    """)
    op.execute("""
        DO $$ BEGIN
            CREATE TYPE run_status AS ENUM ('started', 'success', 'failed', 'missed');
        EXCEPTION WHEN duplicate_object THEN NULL;
        END $$;
    """)

    # Reference enums without auto-creating them
    job_severity_enum = postgresql.ENUM("low", "medium", "high", name="job_severity", create_type=False)
    run_status_enum = postgresql.ENUM(
        "started", "success", "failed", "missed", name="run_status", create_type=False
    )

    # Jobs table
    op.create_table(
        "jobs",
        sa.Column("name", sa.String(100), primary_key=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("schedule", sa.String(100), nullable=True),
        sa.Column("expected_every_s", sa.Integer(), nullable=False),
        sa.Column("max_runtime_s", sa.Integer(), nullable=True),
        sa.Column("manual_trigger_url", sa.String(500), nullable=True),
        sa.Column("severity", job_severity_enum, nullable=False, server_default="medium"),
        sa.Column("alert_target", sa.String(100), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("expected_every_s > 0", name="ck_jobs_expected_every_positive"),
        sa.CheckConstraint(
            "max_runtime_s IS NULL OR max_runtime_s > 0", name="ck_jobs_max_runtime_positive"
        ),
    )
    op.create_index("ix_jobs_active", "jobs", ["active"])
    op.create_index("ix_jobs_created_at", "jobs", ["created_at"])

    # Run ledger
    op.create_table(
        "job_runs",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "job_name",
            sa.String(100),
            sa.ForeignKey("jobs.name", onupdate="CASCADE", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", run_status_enum, nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("duration_s", sa.Float(), nullable=True),
        sa.Column("triggered_by", sa.String(100), nullable=False, server_default="schedule"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_job_runs_job_name", "job_runs", ["job_name"])
    op.create_index("ix_job_runs_status", "job_runs", ["status"])
    op.create_index("ix_job_runs_created_at", "job_runs", ["created_at"])
    op.create_index("ix_job_runs_job_name_created_at", "job_runs", ["job_name", "created_at"])

    # Maintainers
    op.create_table(
        "job_maintainers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "job_name",
            sa.String(100),
            sa.ForeignKey("jobs.name", onupdate="CASCADE", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(50), nullable=False),
        sa.Column("added_by", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("job_name", "user_id", name="uq_job_maintainer"),
    )
    op.create_index("ix_job_maintainers_job_name", "job_maintainers", ["job_name"])
    op.create_index("ix_job_maintainers_user_id", "job_maintainers", ["user_id"])
    op.create_index("ix_job_maintainers_created_at", "job_maintainers", ["created_at"])

    # Admins
    op.create_table(
        "admins",
        sa.Column("user_id", sa.String(50), primary_key=True),
        sa.Column("is_super_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("added_at", sa.DateTime(), nullable=False),
    )

    # Activity log
    op.create_table(
        "activity_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "job_name",
            sa.String(100),
            sa.ForeignKey("jobs.name", onupdate="CASCADE", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("actor", sa.String(100), nullable=True),
        sa.Column("detail", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_activity_log_job_name", "activity_log", ["job_name"])
    op.create_index("ix_activity_log_event_type", "activity_log", ["event_type"])
    op.create_index("ix_activity_log_actor", "activity_log", ["actor"])
    op.create_index("ix_activity_log_created_at", "activity_log", ["created_at"])


def downgrade() -> None:
    op.drop_table("activity_log")
    op.drop_table("admins")
    op.drop_table("job_maintainers")
    op.drop_table("job_runs")
    op.drop_table("jobs")

    op.execute("DROP TYPE IF EXISTS run_status")
    op.execute("DROP TYPE IF EXISTS job_severity")
