from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from voxcast.jobs.models import JobRecord, utc_timestamp
from voxcast.jobs.reconciler import reconcile_stale, stale_note


@pytest.mark.anyio
async def test_job_in_progress_for_twenty_minutes_is_reset_with_a_note(repo) -> None:
  now = datetime.now(UTC)
  started = utc_timestamp(now - timedelta(minutes=20))
  await repo.create_job(JobRecord(job_id="job-1", kind="video", status="in_progress", input={"audio_url": "https://x/a.mp3"}, created_at=started, updated_at=started))

  reset = await reconcile_stale(repo, 15 * 60, now=now)

  assert [job.job_id for job in reset] == ["job-1"]
  job = await repo.get_job("job-1")
  assert job is not None
  assert job.status == "pending"
  assert job.error == stale_note(900)
  assert job.error


@pytest.mark.anyio
async def test_sweep_is_idempotent(repo) -> None:
  now = datetime.now(UTC)
  started = utc_timestamp(now - timedelta(hours=1))
  await repo.create_job(JobRecord(job_id="job-1", kind="audio", status="in_progress", input={}, created_at=started, updated_at=started))

  first = await reconcile_stale(repo, 60, now=now)
  second = await reconcile_stale(repo, 60, now=now)

  assert len(first) == 1
  assert second == []


@pytest.mark.anyio
async def test_terminal_and_recent_jobs_are_left_alone(repo) -> None:
  now = datetime.now(UTC)
  old = utc_timestamp(now - timedelta(hours=2))
  recent = utc_timestamp(now - timedelta(seconds=30))
  await repo.create_job(JobRecord(job_id="done", kind="audio", status="completed", input={}, created_at=old, updated_at=old, result={"url": "u"}))
  await repo.create_job(JobRecord(job_id="busy", kind="audio", status="in_progress", input={}, created_at=old, updated_at=recent))

  assert await reconcile_stale(repo, 60, now=now) == []


@pytest.mark.anyio
async def test_non_positive_timeout_is_rejected(repo) -> None:
  with pytest.raises(ValueError):
    await reconcile_stale(repo, 0)
