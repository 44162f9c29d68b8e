"""Domain models for asynchronous media generation jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

JobStatus = Literal["pending", "in_progress", "completed", "failed"]
JobKind = Literal["audio", "video"]
RequestState = Literal["submitted", "completed", "failed"]

# Legal status moves; the reconciler owns in_progress -> pending.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
  "pending": frozenset({"in_progress"}),
  "in_progress": frozenset({"completed", "failed", "pending"}),
  "completed": frozenset(),
  "failed": frozenset(),
}

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_timestamp(moment: datetime | None = None) -> str:
  """Return a fixed-width UTC timestamp that sorts lexicographically."""
  return (moment or datetime.now(UTC)).astimezone(UTC).strftime(TIMESTAMP_FORMAT)


def source_statuses(target: str) -> tuple[str, ...]:
  """Return the statuses a job may hold right before moving to target."""
  return tuple(sorted(status for status, targets in ALLOWED_TRANSITIONS.items() if target in targets))


class JobNotFoundError(LookupError):
  """Raised when a referenced job does not exist."""

  def __init__(self, job_id: str) -> None:
    super().__init__(f"Job {job_id} not found.")
    self.job_id = job_id


class InvalidJobTransitionError(Exception):
  """Raised when a status change would break the job state machine."""

  def __init__(self, job_id: str, current: str, target: str) -> None:
    super().__init__(f"Job {job_id} cannot move from {current} to {target}.")
    self.job_id = job_id
    self.current = current
    self.target = target


@dataclass
class JobRecord:
  """Represents a media generation job."""

  job_id: str
  kind: JobKind
  status: JobStatus
  input: dict[str, Any]
  created_at: str
  updated_at: str
  parent_id: str | None = None
  result: dict[str, Any] | None = None
  error: str | None = None
  external_ref: str | None = None
  completed_at: str | None = None


@dataclass
class ProviderRequestRecord:
  """One asynchronous submission to the generation provider."""

  external_ref: str
  job_id: str
  chunk_index: int
  state: RequestState
  created_at: str
  updated_at: str
  result: dict[str, Any] | None = None
  error: str | None = None


@dataclass(frozen=True)
class ProcessOutcome:
  """Result of one claim-and-process invocation."""

  job: JobRecord | None
  submitted_refs: list[str] = field(default_factory=list)
  has_more: bool = False
