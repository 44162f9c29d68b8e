from __future__ import annotations

import sys

import pytest

from scripts import reconcile_stale_jobs


def test_explicit_zero_timeout_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.setattr(sys, "argv", ["reconcile_stale_jobs.py", "--timeout-seconds", "0"])
  ran: list[int] = []

  async def fake_run(timeout_seconds: int) -> int:
    ran.append(timeout_seconds)
    return 0

  monkeypatch.setattr(reconcile_stale_jobs, "_run", fake_run)

  with pytest.raises(SystemExit) as excinfo:
    reconcile_stale_jobs.main()

  assert excinfo.value.code == 2
  assert ran == []


def test_timeout_falls_back_to_the_environment(monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.setattr(sys, "argv", ["reconcile_stale_jobs.py"])
  monkeypatch.setenv("VOXCAST_STALE_JOB_TIMEOUT_SECONDS", "1200")
  ran: list[int] = []

  async def fake_run(timeout_seconds: int) -> int:
    ran.append(timeout_seconds)
    return 0

  monkeypatch.setattr(reconcile_stale_jobs, "_run", fake_run)

  reconcile_stale_jobs.main()

  assert ran == [1200]
