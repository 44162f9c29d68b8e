from __future__ import annotations

import pytest

from voxcast.config import get_database_settings, get_settings


@pytest.fixture(autouse=True)
def _fresh_settings():
  get_settings.cache_clear()
  get_database_settings.cache_clear()
  yield
  get_settings.cache_clear()
  get_database_settings.cache_clear()


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.delenv("VOXCAST_STALE_JOB_TIMEOUT_SECONDS", raising=False)
  monkeypatch.delenv("VOXCAST_FAL_QUEUE_URL", raising=False)
  settings = get_settings()
  assert settings.allowed_origins == ("http://localhost",)
  assert settings.stale_job_timeout_seconds == 900
  assert settings.fal_queue_url == "https://queue.fal.run"
  assert settings.webhook_url is None


def test_webhook_url_follows_public_base_url(monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.setenv("VOXCAST_PUBLIC_BASE_URL", "https://api.example.com/")
  assert get_settings().webhook_url == "https://api.example.com/webhooks/fal"


def test_wildcard_origin_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.setenv("VOXCAST_ALLOWED_ORIGINS", "https://a.example.com,*")
  with pytest.raises(ValueError, match="wildcard"):
    get_settings()


def test_non_positive_stale_timeout_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.setenv("VOXCAST_STALE_JOB_TIMEOUT_SECONDS", "0")
  with pytest.raises(ValueError, match="VOXCAST_STALE_JOB_TIMEOUT_SECONDS"):
    get_settings()


def test_database_settings_accept_database_url(monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.delenv("VOXCAST_PG_DSN", raising=False)
  monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db/voxcast")
  assert get_database_settings().pg_dsn == "postgresql://u:p@db/voxcast"
