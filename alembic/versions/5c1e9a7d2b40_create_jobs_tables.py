"""Create jobs and job provider request tables.

Revision ID: 5c1e9a7d2b40
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "5c1e9a7d2b40"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  """Upgrade schema."""
  op.create_table(
    "jobs",
    sa.Column("job_id", sa.String(length=64), nullable=False),
    sa.Column("kind", sa.String(length=16), nullable=False),
    sa.Column("parent_id", sa.String(length=255), nullable=True),
    sa.Column("status", sa.String(length=16), nullable=False),
    sa.Column("input_json", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("result_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("error", sa.Text(), nullable=True),
    sa.Column("external_ref", sa.String(length=200), nullable=True),
    sa.Column("created_at", sa.String(length=32), nullable=False),
    sa.Column("updated_at", sa.String(length=32), nullable=False),
    sa.Column("completed_at", sa.String(length=32), nullable=True),
    sa.CheckConstraint("kind IN ('audio', 'video')", name="ck_jobs_kind"),
    sa.CheckConstraint("status IN ('pending', 'in_progress', 'completed', 'failed')", name="ck_jobs_status"),
    sa.PrimaryKeyConstraint("job_id"),
  )
  op.create_index(op.f("ix_jobs_parent_id"), "jobs", ["parent_id"], unique=False)
  op.create_index(op.f("ix_jobs_external_ref"), "jobs", ["external_ref"], unique=False)
  op.create_index("ix_jobs_kind_status_created", "jobs", ["kind", "status", "created_at"], unique=False)
  op.create_index("ix_jobs_status_updated", "jobs", ["status", "updated_at"], unique=False)

  op.create_table(
    "job_provider_requests",
    sa.Column("external_ref", sa.String(length=200), nullable=False),
    sa.Column("job_id", sa.String(length=64), nullable=False),
    sa.Column("chunk_index", sa.Integer(), nullable=False),
    sa.Column("state", sa.String(length=16), nullable=False),
    sa.Column("result_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("error", sa.Text(), nullable=True),
    sa.Column("created_at", sa.String(length=32), nullable=False),
    sa.Column("updated_at", sa.String(length=32), nullable=False),
    sa.ForeignKeyConstraint(["job_id"], ["jobs.job_id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("external_ref"),
  )
  op.create_index(op.f("ix_job_provider_requests_job_id"), "job_provider_requests", ["job_id"], unique=False)


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_index(op.f("ix_job_provider_requests_job_id"), table_name="job_provider_requests")
  op.drop_table("job_provider_requests")
  op.drop_index("ix_jobs_status_updated", table_name="jobs")
  op.drop_index("ix_jobs_kind_status_created", table_name="jobs")
  op.drop_index(op.f("ix_jobs_external_ref"), table_name="jobs")
  op.drop_index(op.f("ix_jobs_parent_id"), table_name="jobs")
  op.drop_table("jobs")
