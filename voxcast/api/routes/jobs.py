from __future__ import annotations

import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status

from voxcast.api.deps import get_jobs_repo, get_provider, get_registry
from voxcast.api.models import CreateJobRequest, JobListResponse, JobResponse, RecoverJobRequest
from voxcast.jobs.callbacks import RecoveryError, recover_job
from voxcast.notifications.registry import NotificationRegistry
from voxcast.providers.interface import GenerationProvider, ProviderError
from voxcast.services import jobs as job_service
from voxcast.storage.jobs_repo import JobsRepository

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", response_model=JobResponse, status_code=status.HTTP_201_CREATED)
async def create_job(payload: CreateJobRequest, repo: Annotated[JobsRepository, Depends(get_jobs_repo)], registry: Annotated[NotificationRegistry, Depends(get_registry)]) -> JobResponse:
  """Create a pending generation job; a worker invocation picks it up later."""
  record = await job_service.create_job(repo, registry, kind=payload.kind, input=payload.input, parent_id=payload.parent_id)
  return JobResponse.from_record(record)


@router.get("", response_model=JobListResponse)
async def list_jobs(
  repo: Annotated[JobsRepository, Depends(get_jobs_repo)],
  kind: Literal["audio", "video"] | None = Query(default=None),  # noqa: B008
  parent_id: str | None = Query(default=None, min_length=1),  # noqa: B008
  status_filter: Literal["pending", "in_progress", "completed", "failed"] | None = Query(default=None, alias="status"),  # noqa: B008
  limit: int = Query(default=100, ge=1, le=500),  # noqa: B008
  offset: int = Query(default=0, ge=0),  # noqa: B008
) -> JobListResponse:
  """List jobs in creation order, optionally filtered by kind, parent or status."""
  records, total = await job_service.list_jobs(repo, kind=kind, parent_id=parent_id, status=status_filter, limit=limit, offset=offset)
  return JobListResponse(items=[JobResponse.from_record(record) for record in records], total=total, limit=limit, offset=offset)


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, repo: Annotated[JobsRepository, Depends(get_jobs_repo)]) -> JobResponse:
  record = await job_service.get_job(repo, job_id)
  return JobResponse.from_record(record)


@router.post("/{job_id}/recover", response_model=JobResponse)
async def recover(
  job_id: str,
  repo: Annotated[JobsRepository, Depends(get_jobs_repo)],
  registry: Annotated[NotificationRegistry, Depends(get_registry)],
  provider: Annotated[GenerationProvider, Depends(get_provider)],
  payload: RecoverJobRequest | None = None,
) -> JobResponse:
  """Pull finished results from the provider for a job whose callbacks were lost."""
  request_id = payload.request_id if payload is not None else None
  try:
    record = await recover_job(repo, registry, provider, job_id, external_ref=request_id)
  except RecoveryError as exc:
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
  except ProviderError as exc:
    logger.error("Recovery of job %s failed at the provider: %s", job_id, exc)
    raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Provider lookup failed.") from exc
  return JobResponse.from_record(record)
