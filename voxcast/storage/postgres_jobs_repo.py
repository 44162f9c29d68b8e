"""SQLAlchemy-backed repository for generation jobs."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from voxcast.core.database import get_session_factory
from voxcast.jobs.models import InvalidJobTransitionError, JobKind, JobRecord, JobStatus, ProviderRequestRecord, source_statuses, utc_timestamp
from voxcast.schema.jobs import Job, JobProviderRequest
from voxcast.storage.jobs_repo import JobsRepository

logger = logging.getLogger(__name__)


class PostgresJobsRepository(JobsRepository):
  """Persist jobs and provider requests with SQLAlchemy.

  Only portable SQL is used, so the same repository runs against SQLite in tests.
  """

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory or get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def create_job(self, record: JobRecord) -> None:
    async with self._session_factory() as session:
      session.add(
        Job(
          job_id=record.job_id,
          kind=record.kind,
          parent_id=record.parent_id,
          status=record.status,
          input_json=record.input,
          result_json=record.result,
          error=record.error,
          external_ref=record.external_ref,
          created_at=record.created_at,
          updated_at=record.updated_at,
          completed_at=record.completed_at,
        )
      )
      await session.commit()

  async def get_job(self, job_id: str) -> JobRecord | None:
    async with self._session_factory() as session:
      row = await session.get(Job, job_id)
      return None if row is None else _job_to_record(row)

  async def list_jobs(self, *, kind: JobKind | None = None, parent_id: str | None = None, status: JobStatus | None = None, limit: int = 100, offset: int = 0) -> tuple[list[JobRecord], int]:
    filters = []
    if kind is not None:
      filters.append(Job.kind == kind)
    if parent_id is not None:
      filters.append(Job.parent_id == parent_id)
    if status is not None:
      filters.append(Job.status == status)

    async with self._session_factory() as session:
      total = (await session.execute(select(func.count()).select_from(Job).where(*filters))).scalar_one()
      stmt = select(Job).where(*filters).order_by(Job.created_at.asc(), Job.job_id.asc()).limit(limit).offset(offset)
      rows = (await session.execute(stmt)).scalars().all()
      return [_job_to_record(row) for row in rows], int(total)

  async def has_pending(self, kind: JobKind) -> bool:
    async with self._session_factory() as session:
      stmt = select(Job.job_id).where(Job.kind == kind, Job.status == "pending").limit(1)
      return (await session.execute(stmt)).first() is not None

  async def claim_next_pending(self, kind: JobKind, *, max_attempts: int = 5) -> JobRecord | None:
    claimable = source_statuses("in_progress")
    async with self._session_factory() as session:
      for attempt in range(1, max_attempts + 1):
        candidate_stmt = select(Job.job_id).where(Job.kind == kind, Job.status.in_(claimable)).order_by(Job.created_at.asc(), Job.job_id.asc()).limit(1)
        job_id = (await session.execute(candidate_stmt)).scalar_one_or_none()
        if job_id is None:
          return None

        # The claim only wins if the row is still pending when the UPDATE runs.
        claim_stmt = update(Job).where(Job.job_id == job_id, Job.status.in_(claimable)).values(status="in_progress", updated_at=utc_timestamp()).execution_options(synchronize_session=False)
        result = await session.execute(claim_stmt)
        if result.rowcount == 1:
          # Requests from an earlier claim of the same job are superseded.
          await session.execute(delete(JobProviderRequest).where(JobProviderRequest.job_id == job_id))
          await session.commit()
          row = await session.get(Job, job_id, populate_existing=True)
          return None if row is None else _job_to_record(row)

        await session.rollback()
        logger.info("Lost claim race for %s job %s (attempt %s/%s)", kind, job_id, attempt, max_attempts)

    logger.warning("Giving up claiming a %s job after %s contested attempts", kind, max_attempts)
    return None

  async def complete_job(self, job_id: str, result: dict[str, Any]) -> JobRecord | None:
    now = utc_timestamp()
    return await self._transition(job_id, "completed", result_json=result, error=None, completed_at=now, updated_at=now)

  async def fail_job(self, job_id: str, error: str) -> JobRecord | None:
    now = utc_timestamp()
    return await self._transition(job_id, "failed", error=error, completed_at=now, updated_at=now)

  async def record_provider_request(self, job_id: str, external_ref: str, chunk_index: int) -> tuple[JobRecord, ProviderRequestRecord] | None:
    now = utc_timestamp()
    async with self._session_factory() as session:
      existing = await session.get(JobProviderRequest, external_ref)
      if existing is not None:
        # The submitter and the provider callback both record the request; whichever runs first wins.
        row = await session.get(Job, existing.job_id)
        return None if row is None else (_job_to_record(row), _request_to_record(existing))

      values: dict[str, Any] = {"updated_at": now}
      if chunk_index == 0:
        values["external_ref"] = external_ref
      stmt = update(Job).where(Job.job_id == job_id, Job.status == "in_progress").values(**values).execution_options(synchronize_session=False)
      result = await session.execute(stmt)
      if result.rowcount == 0:
        row = await session.get(Job, job_id)
        current = None if row is None else row.status
        await session.rollback()
        if current is None:
          return None
        raise InvalidJobTransitionError(job_id, current, "in_progress")

      session.add(JobProviderRequest(external_ref=external_ref, job_id=job_id, chunk_index=chunk_index, state="submitted", created_at=now, updated_at=now))
      try:
        await session.commit()
      except IntegrityError:
        await session.rollback()
        logger.info("Provider request %s for job %s was recorded concurrently", external_ref, job_id)
        return await self.find_by_external_ref(external_ref)

      row = await session.get(Job, job_id, populate_existing=True)
      request = await session.get(JobProviderRequest, external_ref, populate_existing=True)
      if row is None or request is None:
        return None
      return _job_to_record(row), _request_to_record(request)

  async def find_by_external_ref(self, external_ref: str) -> tuple[JobRecord, ProviderRequestRecord] | None:
    async with self._session_factory() as session:
      stmt = select(Job, JobProviderRequest).join(JobProviderRequest, JobProviderRequest.job_id == Job.job_id).where(JobProviderRequest.external_ref == external_ref)
      found = (await session.execute(stmt)).first()
      if found is None:
        return None
      job, request = found
      return _job_to_record(job), _request_to_record(request)

  async def record_request_result(self, external_ref: str, *, result: dict[str, Any] | None = None, error: str | None = None) -> list[ProviderRequestRecord]:
    now = utc_timestamp()
    async with self._session_factory() as session:
      request = await session.get(JobProviderRequest, external_ref)
      if request is None:
        return []
      job_id = request.job_id
      request.state = "failed" if error is not None else "completed"
      request.result_json = result
      request.error = error
      request.updated_at = now
      # Progress on any chunk keeps the job away from the stale sweep.
      await session.execute(update(Job).where(Job.job_id == job_id, Job.status == "in_progress").values(updated_at=now).execution_options(synchronize_session=False))
      await session.commit()
      return await self._list_requests_in_session(session, job_id)

  async def list_requests(self, job_id: str) -> list[ProviderRequestRecord]:
    async with self._session_factory() as session:
      return await self._list_requests_in_session(session, job_id)

  async def reset_stale(self, *, cutoff: str, note: str) -> list[JobRecord]:
    resettable = source_statuses("pending")
    async with self._session_factory() as session:
      stale_stmt = select(Job.job_id).where(Job.status.in_(resettable), Job.updated_at < cutoff).order_by(Job.updated_at.asc())
      stale_ids = list((await session.execute(stale_stmt)).scalars().all())
      reset_ids: list[str] = []
      for job_id in stale_ids:
        # Re-check both conditions so a job that progressed meanwhile is left alone.
        stmt = update(Job).where(Job.job_id == job_id, Job.status.in_(resettable), Job.updated_at < cutoff).values(status="pending", error=note, updated_at=utc_timestamp()).execution_options(synchronize_session=False)
        result = await session.execute(stmt)
        if result.rowcount == 1:
          reset_ids.append(job_id)
      await session.commit()
      if not reset_ids:
        return []
      rows = (await session.execute(select(Job).where(Job.job_id.in_(reset_ids)).order_by(Job.created_at.asc()).execution_options(populate_existing=True))).scalars().all()
      return [_job_to_record(row) for row in rows]

  async def _transition(self, job_id: str, target: str, **values: Any) -> JobRecord | None:
    async with self._session_factory() as session:
      stmt = update(Job).where(Job.job_id == job_id, Job.status.in_(source_statuses(target))).values(status=target, **values).execution_options(synchronize_session=False)
      result = await session.execute(stmt)
      if result.rowcount == 0:
        row = await session.get(Job, job_id)
        current = None if row is None else row.status
        await session.rollback()
        if current is None:
          return None
        raise InvalidJobTransitionError(job_id, current, target)
      await session.commit()
      row = await session.get(Job, job_id, populate_existing=True)
      return None if row is None else _job_to_record(row)

  @staticmethod
  async def _list_requests_in_session(session: AsyncSession, job_id: str) -> list[ProviderRequestRecord]:
    stmt = select(JobProviderRequest).where(JobProviderRequest.job_id == job_id).order_by(JobProviderRequest.chunk_index.asc()).execution_options(populate_existing=True)
    rows = (await session.execute(stmt)).scalars().all()
    return [_request_to_record(row) for row in rows]


def _job_to_record(row: Job) -> JobRecord:
  return JobRecord(
    job_id=row.job_id,
    kind=row.kind,  # type: ignore[arg-type]
    status=row.status,  # type: ignore[arg-type]
    input=dict(row.input_json or {}),
    created_at=row.created_at,
    updated_at=row.updated_at,
    parent_id=row.parent_id,
    result=row.result_json,
    error=row.error,
    external_ref=row.external_ref,
    completed_at=row.completed_at,
  )


def _request_to_record(row: JobProviderRequest) -> ProviderRequestRecord:
  return ProviderRequestRecord(
    external_ref=row.external_ref,
    job_id=row.job_id,
    chunk_index=row.chunk_index,
    state=row.state,  # type: ignore[arg-type]
    created_at=row.created_at,
    updated_at=row.updated_at,
    result=row.result_json,
    error=row.error,
  )
