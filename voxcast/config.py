"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from voxcast.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)


@dataclass(frozen=True)
class Settings:
  """Typed settings for the voxcast service."""

  environment: str
  allowed_origins: tuple[str, ...]
  debug: bool
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  fal_key: str | None
  fal_queue_url: str
  fal_run_url: str
  fal_timeout_seconds: float
  public_base_url: str | None
  default_voice_url: str | None
  default_avatar_image_url: str | None
  task_secret: str | None
  stale_job_timeout_seconds: int
  sse_ping_interval_seconds: float
  claim_max_attempts: int

  @property
  def webhook_url(self) -> str | None:
    """Callback address handed to the provider, or None for synchronous generation."""
    if not self.public_base_url:
      return None
    return f"{self.public_base_url.rstrip('/')}/webhooks/fal"


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    raise ValueError("VOXCAST_ALLOWED_ORIGINS must be set to one or more origins.")

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("VOXCAST_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("VOXCAST_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _positive_float(name: str, default: str) -> float:
  value = float(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("VOXCAST_ENV", "development").lower()
  debug = _parse_bool(os.getenv("VOXCAST_DEBUG"))

  log_max_bytes = _positive_int("VOXCAST_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = int(os.getenv("VOXCAST_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("VOXCAST_LOG_BACKUP_COUNT must be zero or a positive integer.")

  # Allow opt-in logging of 4xx HTTPExceptions for diagnostics.
  log_http_4xx = _parse_bool(os.getenv("VOXCAST_LOG_HTTP_4XX"))

  database = get_database_settings()

  return Settings(
    environment=environment,
    allowed_origins=_parse_origins(os.getenv("VOXCAST_ALLOWED_ORIGINS")),
    debug=debug,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=log_http_4xx,
    pg_dsn=database.pg_dsn,
    pg_connect_timeout=database.pg_connect_timeout,
    fal_key=_optional_str(os.getenv("FAL_KEY")),
    fal_queue_url=(os.getenv("VOXCAST_FAL_QUEUE_URL") or "https://queue.fal.run").strip().rstrip("/"),
    fal_run_url=(os.getenv("VOXCAST_FAL_RUN_URL") or "https://fal.run").strip().rstrip("/"),
    fal_timeout_seconds=_positive_float("VOXCAST_FAL_TIMEOUT_SECONDS", "120"),
    public_base_url=_optional_str(os.getenv("VOXCAST_PUBLIC_BASE_URL")),
    default_voice_url=_optional_str(os.getenv("VOXCAST_DEFAULT_VOICE_URL")),
    default_avatar_image_url=_optional_str(os.getenv("VOXCAST_DEFAULT_AVATAR_IMAGE_URL")),
    task_secret=_optional_str(os.getenv("VOXCAST_TASK_SECRET")),
    stale_job_timeout_seconds=_positive_int("VOXCAST_STALE_JOB_TIMEOUT_SECONDS", "900"),
    sse_ping_interval_seconds=_positive_float("VOXCAST_SSE_PING_INTERVAL_SECONDS", "30"),
    claim_max_attempts=_positive_int("VOXCAST_CLAIM_MAX_ATTEMPTS", "5"),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration like CORS."""
  # Migrations and the reconcile script only need these values.
  debug = _parse_bool(os.getenv("VOXCAST_DEBUG"))
  pg_connect_timeout = _positive_int("VOXCAST_PG_CONNECT_TIMEOUT", "5")

  pg_dsn = os.getenv("VOXCAST_PG_DSN") or os.getenv("DATABASE_URL")

  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)
