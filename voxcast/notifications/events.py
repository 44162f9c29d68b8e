"""Typed job events pushed to streaming clients."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from voxcast.jobs.models import JobRecord, utc_timestamp

EventType = Literal["connected", "job_created", "job_completed", "job_failed", "ping"]


class Event(BaseModel):
  """One ephemeral notification; never persisted."""

  type: EventType
  timestamp: str = Field(default_factory=utc_timestamp)
  job_id: str | None = None
  job_kind: str | None = None
  parent_id: str | None = None
  data: dict[str, Any] | None = None
  error: str | None = None

  def to_sse(self) -> str:
    """Encode the event as one Server-Sent Events frame."""
    return f"data: {self.model_dump_json(exclude_none=True)}\n\n"


def connected_event(connection_id: str, parent_id: str | None) -> Event:
  return Event(type="connected", parent_id=parent_id, data={"connection_id": connection_id})


def ping_event() -> Event:
  return Event(type="ping")


def job_created_event(job: JobRecord) -> Event:
  return Event(type="job_created", job_id=job.job_id, job_kind=job.kind, parent_id=job.parent_id, data={"status": job.status})


def job_completed_event(job: JobRecord) -> Event:
  return Event(type="job_completed", job_id=job.job_id, job_kind=job.kind, parent_id=job.parent_id, data=job.result or {})


def job_failed_event(job: JobRecord) -> Event:
  return Event(type="job_failed", job_id=job.job_id, job_kind=job.kind, parent_id=job.parent_id, error=job.error or "Unknown error")
