"""Repository factory functions."""

from __future__ import annotations

from voxcast.config import Settings
from voxcast.storage.jobs_repo import JobsRepository
from voxcast.storage.postgres_jobs_repo import PostgresJobsRepository


def _get_jobs_repo(settings: Settings) -> JobsRepository:
  """Return the active jobs repository."""

  # Jobs are only ever persisted in Postgres.
  if not settings.pg_dsn:
    raise ValueError("VOXCAST_PG_DSN must be set to enable Postgres persistence.")

  return PostgresJobsRepository()
