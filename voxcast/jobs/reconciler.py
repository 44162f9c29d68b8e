"""Reset jobs that have been in progress for too long."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from voxcast.jobs.models import JobRecord, utc_timestamp
from voxcast.storage.jobs_repo import JobsRepository

logger = logging.getLogger(__name__)

DEFAULT_STALE_TIMEOUT_SECONDS = 15 * 60


def stale_note(timeout_seconds: int) -> str:
  return f"Job was stale (in progress longer than {timeout_seconds}s), reset for retry"


async def reconcile_stale(repo: JobsRepository, timeout_seconds: int = DEFAULT_STALE_TIMEOUT_SECONDS, *, now: datetime | None = None) -> list[JobRecord]:
  """Move every in_progress job last updated before now - timeout back to pending.

  Running the sweep twice in a row resets nothing the second time.
  """
  if timeout_seconds <= 0:
    raise ValueError("timeout_seconds must be positive.")

  cutoff = utc_timestamp((now or datetime.now(UTC)) - timedelta(seconds=timeout_seconds))
  reset = await repo.reset_stale(cutoff=cutoff, note=stale_note(timeout_seconds))
  for job in reset:
    logger.warning("Reset stale %s job %s to pending (last update before %s)", job.kind, job.job_id, cutoff)
  logger.info("Stale job sweep finished: %s reset", len(reset))
  return reset
