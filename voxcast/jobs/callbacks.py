"""Apply asynchronous provider outcomes to their jobs."""

from __future__ import annotations

import logging
from typing import Any

from voxcast.jobs.models import InvalidJobTransitionError, JobNotFoundError, JobRecord, ProviderRequestRecord
from voxcast.jobs.worker import build_job_result, chunk_error, expected_request_count
from voxcast.notifications.registry import NotificationRegistry
from voxcast.providers.interface import GenerationProvider, ProviderError
from voxcast.providers.models import model_for, parse_output_url
from voxcast.services.jobs import complete_job, fail_job, get_job
from voxcast.storage.jobs_repo import JobsRepository

logger = logging.getLogger(__name__)


class RecoveryError(Exception):
  """Raised when a job cannot be recovered from the provider."""


async def _adopt_request(repo: JobsRepository, external_ref: str, job_id: str, chunk_index: int) -> tuple[JobRecord, ProviderRequestRecord] | None:
  """Record a request the submitter has not written yet, using the job and chunk tagged on the callback."""
  job = await repo.get_job(job_id)
  if job is None or not 0 <= chunk_index < expected_request_count(job):
    return None
  try:
    return await repo.record_provider_request(job_id, external_ref, chunk_index)
  except InvalidJobTransitionError as exc:
    logger.info("Not adopting provider request %s: %s", external_ref, exc)
    return None


async def apply_provider_result(repo: JobsRepository, registry: NotificationRegistry, external_ref: str, *, output: dict[str, Any] | None = None, error: str | None = None, job_id: str | None = None, chunk_index: int | None = None) -> JobRecord | None:
  """Record one provider outcome and settle the owning job once every request has reported.

  job_id and chunk_index come from the tagged callback address and let an
  outcome that arrives before its submission was recorded still be applied.
  Returns the job as it stands afterwards, or None when the request id is
  unknown. Outcomes for jobs that are no longer in_progress are ignored.
  """
  found = await repo.find_by_external_ref(external_ref)
  if found is None and job_id is not None and chunk_index is not None:
    found = await _adopt_request(repo, external_ref, job_id, chunk_index)
  if found is None:
    logger.warning("Ignoring provider result for unknown request %s", external_ref)
    return None

  job, request = found
  if job.status != "in_progress":
    logger.info("Ignoring provider result %s for job %s in status %s", external_ref, job.job_id, job.status)
    return job

  # Malformed success payloads count as failures of that request.
  url: str | None = None
  if error is None:
    try:
      url = parse_output_url(job.kind, output)
    except ProviderError as exc:
      error = str(exc)

  requests = await repo.record_request_result(external_ref, result={"url": url} if url else None, error=error)
  logger.info("Recorded provider result %s for job %s chunk %s (%s)", external_ref, job.job_id, request.chunk_index, "error" if error else "ok")

  try:
    if error is not None:
      return await fail_job(repo, registry, job.job_id, chunk_error(job, request.chunk_index, error))

    expected = expected_request_count(job)
    done = [item for item in requests if item.state == "completed"]
    if len(done) < expected:
      logger.info("Job %s waiting on %s of %s provider requests", job.job_id, expected - len(done), expected)
      return job

    urls = [str((item.result or {}).get("url")) for item in requests]
    return await complete_job(repo, registry, job.job_id, build_job_result(job, urls))

  except InvalidJobTransitionError as exc:
    # Another callback for the same job settled it first.
    logger.info("Job %s already settled: %s", job.job_id, exc)
    return await repo.get_job(job.job_id)


async def handle_fal_webhook(repo: JobsRepository, registry: NotificationRegistry, *, request_id: str, status: str, payload: dict[str, Any] | None, error: str | None = None, payload_error: str | None = None, job_id: str | None = None, chunk_index: int | None = None) -> JobRecord | None:
  """Translate a fal.ai webhook body into a provider outcome."""
  if status.upper() == "OK":
    return await apply_provider_result(repo, registry, request_id, output=payload, job_id=job_id, chunk_index=chunk_index)

  message = error or payload_error or "Generation failed"
  logger.error("Provider reported failure for request %s: %s", request_id, message)
  return await apply_provider_result(repo, registry, request_id, error=message, job_id=job_id, chunk_index=chunk_index)


async def recover_job(repo: JobsRepository, registry: NotificationRegistry, provider: GenerationProvider, job_id: str, *, external_ref: str | None = None) -> JobRecord:
  """Fetch finished results from the provider for a job whose callbacks never arrived."""
  job = await get_job(repo, job_id)
  if job.status != "in_progress":
    raise RecoveryError(f"Job {job_id} is {job.status}; only in_progress jobs can be recovered.")

  requests = await repo.list_requests(job_id)
  refs = [external_ref] if external_ref else [item.external_ref for item in requests if item.state == "submitted"]
  if not refs:
    raise RecoveryError(f"Job {job_id} has no outstanding provider request.")
  known = {item.external_ref for item in requests}
  unknown = [ref for ref in refs if ref not in known]
  if unknown:
    raise RecoveryError(f"Request {unknown[0]} does not belong to job {job_id}.")

  model = model_for(job.kind)
  for ref in refs:
    status = await provider.get_status(model, ref)
    if status.upper() != "COMPLETED":
      logger.info("Provider request %s for job %s is still %s", ref, job_id, status)
      continue
    try:
      output = await provider.get_result(model, ref)
    except ProviderError as exc:
      await apply_provider_result(repo, registry, ref, error=str(exc))
      break
    await apply_provider_result(repo, registry, ref, output=output)

  record = await repo.get_job(job_id)
  if record is None:
    raise JobNotFoundError(job_id)
  return record
