from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from voxcast.api.deps import get_jobs_repo, get_registry
from voxcast.api.models import FalWebhookPayload, WebhookResponse
from voxcast.jobs.callbacks import handle_fal_webhook
from voxcast.notifications.registry import NotificationRegistry
from voxcast.storage.jobs_repo import JobsRepository

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/fal", response_model=WebhookResponse)
async def fal_webhook(
  payload: FalWebhookPayload,
  repo: Annotated[JobsRepository, Depends(get_jobs_repo)],
  registry: Annotated[NotificationRegistry, Depends(get_registry)],
  job_id: str | None = Query(default=None, min_length=1),  # noqa: B008
  chunk_index: int | None = Query(default=None, ge=0),  # noqa: B008
) -> WebhookResponse:
  """Receive a finished fal.ai request; always acknowledged so the provider stops retrying."""
  logger.info("Received fal.ai webhook for request %s (status: %s)", payload.request_id, payload.status)
  record = await handle_fal_webhook(repo, registry, request_id=payload.request_id, status=payload.status, payload=payload.payload, error=payload.error, payload_error=payload.payload_error, job_id=job_id, chunk_index=chunk_index)
  if record is None:
    return WebhookResponse(received=True)
  return WebhookResponse(received=True, job_id=record.job_id, status=record.status)
