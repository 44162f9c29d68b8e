"""Claim pending generation jobs and hand them to the provider."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlencode

from voxcast.config import Settings
from voxcast.jobs.models import InvalidJobTransitionError, JobKind, JobRecord, ProcessOutcome
from voxcast.notifications.registry import NotificationRegistry
from voxcast.providers.interface import GenerationProvider, ProviderError
from voxcast.providers.models import build_avatar_video_input, build_voice_clone_input, model_for, parse_output_url
from voxcast.services.jobs import complete_job, fail_job
from voxcast.storage.jobs_repo import JobsRepository


class JobInputError(ValueError):
  """Raised when a stored job input cannot be turned into provider requests."""


def audio_chunks(job: JobRecord) -> list[dict[str, Any]]:
  """Return the ordered text chunks of an audio job."""
  chunks = job.input.get("chunks")
  if isinstance(chunks, list) and chunks:
    return sorted((chunk for chunk in chunks if isinstance(chunk, dict)), key=lambda chunk: int(chunk.get("index", 0)))
  text = job.input.get("text")
  if isinstance(text, str) and text.strip():
    return [{"index": 0, "text": text}]
  return []


def expected_request_count(job: JobRecord) -> int:
  """Number of provider requests that must report before the job can complete."""
  return len(audio_chunks(job)) if job.kind == "audio" else 1


def chunk_webhook_url(webhook_url: str, job_id: str, chunk_index: int) -> str:
  """Tag the callback address so a result that beats its own bookkeeping still finds its job."""
  separator = "&" if "?" in webhook_url else "?"
  query = urlencode({"job_id": job_id, "chunk_index": chunk_index})
  return f"{webhook_url}{separator}{query}"


def build_provider_inputs(job: JobRecord, settings: Settings) -> list[dict[str, Any]]:
  """Translate a job input into one provider payload per request, in chunk order."""
  if job.kind == "audio":
    voice_url = job.input.get("voice") or settings.default_voice_url
    if not voice_url:
      raise JobInputError("No reference voice configured for audio generation.")
    chunks = audio_chunks(job)
    if not chunks:
      raise JobInputError("Audio job has no text to synthesize.")
    return [build_voice_clone_input(voice_url=voice_url, text=str(chunk.get("text", ""))) for chunk in chunks]

  audio_url = job.input.get("audio_url")
  if not audio_url:
    raise JobInputError("Video job is missing audio_url.")
  image_url = job.input.get("image_url") or settings.default_avatar_image_url
  if not image_url:
    raise JobInputError("No avatar image configured for video generation.")
  return [build_avatar_video_input(image_url=image_url, audio_url=audio_url)]


def build_job_result(job: JobRecord, urls: list[str]) -> dict[str, Any]:
  """Assemble the final job result from per-request output URLs in chunk order."""
  if job.kind == "video":
    result: dict[str, Any] = {"url": urls[0]}
    # Carry the podcast placement through so clients can assemble sections.
    for key in ("section", "audio_chunk_index"):
      if job.input.get(key) is not None:
        result[key] = job.input[key]
    return result

  chunk_results: list[dict[str, Any]] = []
  for position, (chunk, url) in enumerate(zip(audio_chunks(job), urls, strict=False)):
    entry: dict[str, Any] = {"url": url, "chunk_index": int(chunk.get("index", position)), "text": chunk.get("text", "")}
    for key in ("section", "article_title"):
      if chunk.get(key) is not None:
        entry[key] = chunk[key]
    chunk_results.append(entry)
  return {"url": urls[0], "chunks": chunk_results}


def chunk_error(job: JobRecord, index: int, message: str) -> str:
  """Prefix a provider error with its chunk when the job spans several requests."""
  if job.kind == "audio" and len(audio_chunks(job)) > 1:
    return f"Chunk {index} failed: {message}"
  return message


class JobProcessor:
  """Coordinates one claim-and-process invocation."""

  def __init__(self, *, jobs_repo: JobsRepository, registry: NotificationRegistry, provider: GenerationProvider, settings: Settings) -> None:
    self._jobs_repo = jobs_repo
    self._registry = registry
    self._provider = provider
    self._settings = settings
    self._logger = logging.getLogger(__name__)

  async def process_next(self, kind: JobKind) -> ProcessOutcome:
    """Claim the oldest pending job of a kind and run or submit it."""
    job = await self._jobs_repo.claim_next_pending(kind, max_attempts=self._settings.claim_max_attempts)
    if job is None:
      self._logger.info("No pending %s job to process", kind)
      return ProcessOutcome(job=None, has_more=False)

    self._logger.info("Claimed %s job %s", kind, job.job_id)
    submitted_refs: list[str] = []
    failure: str | None = None
    try:
      payloads = build_provider_inputs(job, self._settings)
      webhook_url = self._settings.webhook_url
      # A public callback address means fire-and-forget; completion arrives on the webhook.
      if webhook_url:
        await self._submit_async(job, payloads, webhook_url, submitted_refs)
        job = await self._jobs_repo.get_job(job.job_id) or job
      else:
        urls = await self._run_sync(job, payloads)
        job = await complete_job(self._jobs_repo, self._registry, job.job_id, build_job_result(job, urls))

    except (JobInputError, ProviderError) as exc:
      failure = str(exc)
    except InvalidJobTransitionError as exc:
      # The reconciler or an early failure callback settled the job meanwhile.
      self._logger.warning("Dropping outcome for job %s: %s", job.job_id, exc)
      job = await self._jobs_repo.get_job(job.job_id) or job

    if failure is not None:
      try:
        job = await fail_job(self._jobs_repo, self._registry, job.job_id, failure)
      except InvalidJobTransitionError as exc:
        self._logger.warning("Dropping failure for job %s: %s", job.job_id, exc)

    has_more = await self._jobs_repo.has_pending(kind)
    return ProcessOutcome(job=job, submitted_refs=submitted_refs, has_more=has_more)

  async def _submit_async(self, job: JobRecord, payloads: list[dict[str, Any]], webhook_url: str, refs: list[str]) -> None:
    model = model_for(job.kind)
    for index, payload in enumerate(payloads):
      try:
        ref = await self._provider.submit_async(model, payload, chunk_webhook_url(webhook_url, job.job_id, index))
      except ProviderError as exc:
        self._logger.error("Submission of job %s chunk %s failed: %s", job.job_id, index, exc)
        raise ProviderError(chunk_error(job, index, str(exc)), status_code=exc.status_code) from exc
      refs.append(ref)
      # Record each request as soon as it exists; its callback may already be on the way.
      await self._jobs_repo.record_provider_request(job.job_id, ref, index)
    self._logger.info("Submitted job %s as %s provider requests", job.job_id, len(refs))

  async def _run_sync(self, job: JobRecord, payloads: list[dict[str, Any]]) -> list[str]:
    model = model_for(job.kind)
    urls: list[str] = []
    for index, payload in enumerate(payloads):
      try:
        output = await self._provider.submit_sync(model, payload)
        urls.append(parse_output_url(job.kind, output))
      except ProviderError as exc:
        self._logger.error("Generation of job %s chunk %s failed: %s", job.job_id, index, exc)
        raise ProviderError(chunk_error(job, index, str(exc)), status_code=exc.status_code) from exc
    return urls
