from __future__ import annotations

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from voxcast.core.database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Job(Base):
  __tablename__ = "jobs"
  __table_args__ = (Index("ix_jobs_kind_status_created", "kind", "status", "created_at"), Index("ix_jobs_status_updated", "status", "updated_at"))

  job_id: Mapped[str] = mapped_column(String(64), primary_key=True)
  kind: Mapped[str] = mapped_column(String(16), nullable=False)
  parent_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
  status: Mapped[str] = mapped_column(String(16), nullable=False)
  input_json: Mapped[dict] = mapped_column(JSONType, nullable=False)
  result_json: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
  error: Mapped[str | None] = mapped_column(Text, nullable=True)
  external_ref: Mapped[str | None] = mapped_column(String(200), nullable=True, index=True)
  created_at: Mapped[str] = mapped_column(String(32), nullable=False)
  updated_at: Mapped[str] = mapped_column(String(32), nullable=False)
  completed_at: Mapped[str | None] = mapped_column(String(32), nullable=True)


class JobProviderRequest(Base):
  __tablename__ = "job_provider_requests"

  external_ref: Mapped[str] = mapped_column(String(200), primary_key=True)
  job_id: Mapped[str] = mapped_column(ForeignKey("jobs.job_id", ondelete="CASCADE"), nullable=False, index=True)
  chunk_index: Mapped[int] = mapped_column(Integer, nullable=False)
  state: Mapped[str] = mapped_column(String(16), nullable=False)
  result_json: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
  error: Mapped[str | None] = mapped_column(Text, nullable=True)
  created_at: Mapped[str] = mapped_column(String(32), nullable=False)
  updated_at: Mapped[str] = mapped_column(String(32), nullable=False)
