from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status

from voxcast.api.deps import get_jobs_repo, get_provider, get_registry
from voxcast.api.models import JobResponse, ProcessJobRequest, ProcessJobResponse, ReconcileRequest, ReconcileResponse
from voxcast.config import Settings, get_settings
from voxcast.core.security import require_task_secret
from voxcast.jobs.reconciler import reconcile_stale
from voxcast.jobs.worker import JobProcessor
from voxcast.notifications.registry import NotificationRegistry
from voxcast.providers.interface import GenerationProvider
from voxcast.storage.jobs_repo import JobsRepository

router = APIRouter(prefix="/tasks", tags=["tasks"], dependencies=[Depends(require_task_secret)])
logger = logging.getLogger(__name__)


@router.post("/process-job", response_model=ProcessJobResponse, status_code=status.HTTP_200_OK)
async def process_job_task(
  payload: ProcessJobRequest,
  settings: Annotated[Settings, Depends(get_settings)],
  repo: Annotated[JobsRepository, Depends(get_jobs_repo)],
  registry: Annotated[NotificationRegistry, Depends(get_registry)],
  provider: Annotated[GenerationProvider, Depends(get_provider)],
) -> ProcessJobResponse:
  """
  Claim the oldest pending job of a kind and run or submit it.
  Callers keep invoking while has_more is true.
  """
  processor = JobProcessor(jobs_repo=repo, registry=registry, provider=provider, settings=settings)
  outcome = await processor.process_next(payload.kind)
  job = JobResponse.from_record(outcome.job) if outcome.job is not None else None
  return ProcessJobResponse(processed=outcome.job is not None, job=job, submitted_refs=outcome.submitted_refs, has_more=outcome.has_more)


@router.post("/reconcile-stale", response_model=ReconcileResponse, status_code=status.HTTP_200_OK)
async def reconcile_stale_task(settings: Annotated[Settings, Depends(get_settings)], repo: Annotated[JobsRepository, Depends(get_jobs_repo)], payload: ReconcileRequest | None = None) -> ReconcileResponse:
  """Reset jobs stuck in progress past the timeout back to pending."""
  timeout_seconds = payload.timeout_seconds if payload is not None and payload.timeout_seconds is not None else settings.stale_job_timeout_seconds
  reset = await reconcile_stale(repo, timeout_seconds)
  logger.info("Reconcile task reset %s jobs", len(reset))
  return ReconcileResponse(reset_count=len(reset), job_ids=[job.job_id for job in reset], timeout_seconds=timeout_seconds)
