"""Storage interfaces for generation jobs."""

from __future__ import annotations

from typing import Any, Protocol

from voxcast.jobs.models import JobKind, JobRecord, JobStatus, ProviderRequestRecord


class JobsRepository(Protocol):
  """Repository contract for job persistence.

  Every status change goes through one guarded UPDATE, so a failed write never
  leaves a job in an intermediate state. Mutations return None when the job
  does not exist and raise InvalidJobTransitionError when the current status
  does not allow the move.
  """

  async def create_job(self, record: JobRecord) -> None:
    """Persist a new pending job."""

  async def get_job(self, job_id: str) -> JobRecord | None:
    """Fetch a job by identifier."""

  async def list_jobs(self, *, kind: JobKind | None = None, parent_id: str | None = None, status: JobStatus | None = None, limit: int = 100, offset: int = 0) -> tuple[list[JobRecord], int]:
    """Return jobs ordered by creation time, and the total count for the filters."""

  async def has_pending(self, kind: JobKind) -> bool:
    """Return whether any job of a kind is waiting to be claimed."""

  async def claim_next_pending(self, kind: JobKind, *, max_attempts: int = 5) -> JobRecord | None:
    """Move the oldest pending job of a kind to in_progress, dropping requests of any earlier claim."""

  async def complete_job(self, job_id: str, result: dict[str, Any]) -> JobRecord | None:
    """Move an in_progress job to completed with its result."""

  async def fail_job(self, job_id: str, error: str) -> JobRecord | None:
    """Move an in_progress job to failed with an error message."""

  async def record_provider_request(self, job_id: str, external_ref: str, chunk_index: int) -> tuple[JobRecord, ProviderRequestRecord] | None:
    """Record one provider request of an in_progress job; a request id already on file is returned unchanged."""

  async def find_by_external_ref(self, external_ref: str) -> tuple[JobRecord, ProviderRequestRecord] | None:
    """Resolve a provider request id back to its job."""

  async def record_request_result(self, external_ref: str, *, result: dict[str, Any] | None = None, error: str | None = None) -> list[ProviderRequestRecord]:
    """Store one provider outcome and return every request of the owning job."""

  async def list_requests(self, job_id: str) -> list[ProviderRequestRecord]:
    """List provider requests for a job ordered by chunk index."""

  async def reset_stale(self, *, cutoff: str, note: str) -> list[JobRecord]:
    """Reset in_progress jobs last updated before cutoff back to pending."""
