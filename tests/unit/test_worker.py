"""Claim-and-process behavior against a scripted provider."""

from __future__ import annotations

from dataclasses import replace

import pytest

from voxcast.jobs.worker import JobProcessor
from voxcast.providers.interface import ProviderError
from voxcast.providers.models import AVATAR_VIDEO_MODEL, VOICE_CLONE_MODEL
from voxcast.services.jobs import create_job


@pytest.mark.anyio
async def test_sync_audio_job_completes_and_notifies(repo, registry, settings, fake_provider_factory, recording_sink_factory) -> None:
  sink = recording_sink_factory()
  registry.register_connection("conn", sink, parent_id="42")
  job = await create_job(repo, registry, kind="audio", input={"voice": "A", "chunks": [{"index": 0, "text": "hello"}]}, parent_id="42")
  provider = fake_provider_factory([{"audio": {"url": "https://x/y.mp3"}}])

  outcome = await JobProcessor(jobs_repo=repo, registry=registry, provider=provider, settings=settings).process_next("audio")

  assert outcome.job is not None
  assert outcome.job.job_id == job.job_id
  assert outcome.job.status == "completed"
  assert outcome.job.result == {"url": "https://x/y.mp3", "chunks": [{"url": "https://x/y.mp3", "chunk_index": 0, "text": "hello"}]}
  assert outcome.has_more is False
  model, payload = provider.sync_calls[0]
  assert model == VOICE_CLONE_MODEL
  assert payload["audio_url"] == "A"
  assert payload["text"] == "hello"
  assert [event.type for event in sink.events] == ["job_created", "job_completed"]


@pytest.mark.anyio
async def test_provider_error_fails_the_job_with_chunk_prefix(repo, registry, settings, fake_provider_factory) -> None:
  await create_job(repo, registry, kind="audio", input={"chunks": [{"index": 0, "text": "one"}, {"index": 1, "text": "two"}]})
  provider = fake_provider_factory([{"audio": {"url": "https://x/0.mp3"}}, ProviderError("Provider error 500: overloaded", status_code=500)])

  outcome = await JobProcessor(jobs_repo=repo, registry=registry, provider=provider, settings=settings).process_next("audio")

  assert outcome.job is not None
  assert outcome.job.status == "failed"
  assert outcome.job.error == "Chunk 1 failed: Provider error 500: overloaded"
  # The configured default voice stands in when the input has none.
  assert provider.sync_calls[0][1]["audio_url"] == "https://cdn.test/voice.mp3"


@pytest.mark.anyio
async def test_malformed_provider_output_fails_the_job(repo, registry, settings, fake_provider_factory) -> None:
  await create_job(repo, registry, kind="video", input={"audio_url": "https://x/a.mp3"})
  provider = fake_provider_factory([{"video": {}}])

  outcome = await JobProcessor(jobs_repo=repo, registry=registry, provider=provider, settings=settings).process_next("video")

  assert outcome.job is not None
  assert outcome.job.status == "failed"
  assert "missing video URL" in (outcome.job.error or "")
  assert provider.sync_calls[0][0] == AVATAR_VIDEO_MODEL
  assert provider.sync_calls[0][1] == {"image_url": "https://cdn.test/avatar.png", "audio_url": "https://x/a.mp3"}


@pytest.mark.anyio
async def test_missing_media_reference_fails_without_calling_provider(repo, registry, settings, fake_provider_factory) -> None:
  await create_job(repo, registry, kind="audio", input={"chunks": [{"index": 0, "text": "hello"}]})
  provider = fake_provider_factory()
  no_defaults = replace(settings, default_voice_url=None)

  outcome = await JobProcessor(jobs_repo=repo, registry=registry, provider=provider, settings=no_defaults).process_next("audio")

  assert outcome.job is not None
  assert outcome.job.status == "failed"
  assert outcome.job.error == "No reference voice configured for audio generation."
  assert provider.sync_calls == []


@pytest.mark.anyio
async def test_webhook_mode_submits_every_chunk_and_stays_in_progress(repo, registry, settings, fake_provider_factory) -> None:
  await create_job(repo, registry, kind="audio", input={"voice": "A", "chunks": [{"index": 0, "text": "one"}, {"index": 1, "text": "two"}]})
  await create_job(repo, registry, kind="audio", input={"voice": "A", "chunks": [{"index": 0, "text": "three"}, {"index": 1, "text": "four"}]})
  provider = fake_provider_factory(refs=["req-0", "req-1"])
  async_settings = replace(settings, public_base_url="https://api.test")

  outcome = await JobProcessor(jobs_repo=repo, registry=registry, provider=provider, settings=async_settings).process_next("audio")

  assert outcome.job is not None
  assert outcome.job.status == "in_progress"
  assert outcome.job.external_ref == "req-0"
  assert outcome.submitted_refs == ["req-0", "req-1"]
  assert outcome.has_more is True
  job_id = outcome.job.job_id
  assert [call[2] for call in provider.async_calls] == [f"https://api.test/webhooks/fal?job_id={job_id}&chunk_index=0", f"https://api.test/webhooks/fal?job_id={job_id}&chunk_index=1"]
  requests = await repo.list_requests(job_id)
  assert [(item.external_ref, item.chunk_index) for item in requests] == [("req-0", 0), ("req-1", 1)]


@pytest.mark.anyio
async def test_nothing_pending_reports_no_job(repo, registry, settings, fake_provider_factory) -> None:
  outcome = await JobProcessor(jobs_repo=repo, registry=registry, provider=fake_provider_factory(), settings=settings).process_next("video")

  assert outcome.job is None
  assert outcome.has_more is False
