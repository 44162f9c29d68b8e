"""Job lifecycle operations shared by the API, the worker and provider callbacks.

Every status change that clients can observe goes through this module so the
persisted transition and the dispatched event never diverge.
"""

from __future__ import annotations

import logging
from typing import Any

from voxcast.jobs.models import JobKind, JobNotFoundError, JobRecord, JobStatus, utc_timestamp
from voxcast.notifications.dispatch import notify_job_completed, notify_job_created, notify_job_failed
from voxcast.notifications.registry import NotificationRegistry
from voxcast.storage.jobs_repo import JobsRepository
from voxcast.utils.ids import generate_job_id

logger = logging.getLogger(__name__)


async def create_job(repo: JobsRepository, registry: NotificationRegistry, *, kind: JobKind, input: dict[str, Any], parent_id: str | None = None, external_ref: str | None = None) -> JobRecord:  # noqa: A002
  """Persist a new pending job and announce it to subscribers."""
  timestamp = utc_timestamp()
  record = JobRecord(job_id=generate_job_id(), kind=kind, status="pending", input=input, created_at=timestamp, updated_at=timestamp, parent_id=parent_id, external_ref=external_ref)
  await repo.create_job(record)
  logger.info("Created %s job %s (parent: %s)", kind, record.job_id, parent_id or "none")
  notify_job_created(registry, record)
  return record


async def get_job(repo: JobsRepository, job_id: str) -> JobRecord:
  record = await repo.get_job(job_id)
  if record is None:
    raise JobNotFoundError(job_id)
  return record


async def list_jobs(repo: JobsRepository, *, kind: JobKind | None = None, parent_id: str | None = None, status: JobStatus | None = None, limit: int = 100, offset: int = 0) -> tuple[list[JobRecord], int]:
  return await repo.list_jobs(kind=kind, parent_id=parent_id, status=status, limit=limit, offset=offset)


async def complete_job(repo: JobsRepository, registry: NotificationRegistry, job_id: str, result: dict[str, Any]) -> JobRecord:
  """Mark an in_progress job completed and emit job_completed.

  Raises JobNotFoundError for unknown ids and InvalidJobTransitionError when the
  job is not in_progress.
  """
  record = await repo.complete_job(job_id, result)
  if record is None:
    raise JobNotFoundError(job_id)
  logger.info("Completed %s job %s", record.kind, job_id)
  notify_job_completed(registry, record)
  return record


async def fail_job(repo: JobsRepository, registry: NotificationRegistry, job_id: str, error: str) -> JobRecord:
  """Mark an in_progress job failed and emit job_failed."""
  record = await repo.fail_job(job_id, error)
  if record is None:
    raise JobNotFoundError(job_id)
  logger.info("Failed %s job %s: %s", record.kind, job_id, error)
  notify_job_failed(registry, record)
  return record
