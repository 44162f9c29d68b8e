"""Shared fixtures: an in-memory SQLite database behind the real repository."""

from __future__ import annotations

import os

# Ensure required settings are available before importing the app.
os.environ["VOXCAST_ALLOWED_ORIGINS"] = "http://localhost"
os.environ["VOXCAST_TASK_SECRET"] = "test-task-secret"
os.environ.pop("VOXCAST_PUBLIC_BASE_URL", None)

from dataclasses import replace  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import voxcast.schema.jobs  # noqa: E402, F401
from voxcast.api.deps import get_jobs_repo, get_provider, get_registry  # noqa: E402
from voxcast.config import Settings, get_settings  # noqa: E402
from voxcast.core.database import Base  # noqa: E402
from voxcast.notifications.registry import NotificationRegistry  # noqa: E402
from voxcast.providers.interface import ProviderError  # noqa: E402
from voxcast.storage.postgres_jobs_repo import PostgresJobsRepository  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
async def session_factory():
  engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool, connect_args={"check_same_thread": False})
  async with engine.begin() as connection:
    await connection.run_sync(Base.metadata.create_all)
  yield async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)
  await engine.dispose()


@pytest.fixture
async def repo(session_factory) -> PostgresJobsRepository:
  return PostgresJobsRepository(session_factory=session_factory)


@pytest.fixture
def registry() -> NotificationRegistry:
  return NotificationRegistry()


@pytest.fixture
def settings() -> Settings:
  """Synchronous-mode settings with default media references."""
  get_settings.cache_clear()
  return replace(get_settings(), public_base_url=None, default_voice_url="https://cdn.test/voice.mp3", default_avatar_image_url="https://cdn.test/avatar.png")


class RecordingSink:
  """Sink that keeps every event it receives."""

  def __init__(self) -> None:
    self.events: list[Any] = []
    self.closed = False

  def send(self, event: Any) -> None:
    self.events.append(event)

  def close(self) -> None:
    self.closed = True


class FakeProvider:
  """Scripted provider: outputs are consumed in call order, exceptions are raised."""

  def __init__(self, outputs: list[Any] | None = None, *, refs: list[Any] | None = None) -> None:
    self.outputs = list(outputs or [])
    self.refs = list(refs or [])
    self.sync_calls: list[tuple[str, dict[str, Any]]] = []
    self.async_calls: list[tuple[str, dict[str, Any], str]] = []
    self.statuses: dict[str, str] = {}
    self.results: dict[str, Any] = {}

  async def submit_sync(self, model: str, payload: dict[str, Any]) -> dict[str, Any]:
    self.sync_calls.append((model, payload))
    output = self.outputs.pop(0)
    if isinstance(output, Exception):
      raise output
    return output

  async def submit_async(self, model: str, payload: dict[str, Any], webhook_url: str) -> str:
    self.async_calls.append((model, payload, webhook_url))
    ref = self.refs.pop(0)
    if isinstance(ref, Exception):
      raise ref
    return ref

  async def get_status(self, model: str, external_ref: str) -> str:
    return self.statuses.get(external_ref, "IN_PROGRESS")

  async def get_result(self, model: str, external_ref: str) -> dict[str, Any]:
    result = self.results.get(external_ref)
    if result is None:
      raise ProviderError(f"No result for {external_ref}", status_code=404)
    if isinstance(result, Exception):
      raise result
    return result


@pytest.fixture
def recording_sink_factory():
  return RecordingSink


@pytest.fixture
def fake_provider_factory():
  return FakeProvider


@pytest.fixture
def provider(fake_provider_factory) -> FakeProvider:
  return fake_provider_factory()


@pytest.fixture
async def client(repo, registry, provider, settings):
  """HTTP client against the app with the SQLite repository and a scripted provider."""
  from voxcast.main import app

  app.state.notification_registry = registry
  app.dependency_overrides[get_jobs_repo] = lambda: repo
  app.dependency_overrides[get_registry] = lambda: registry
  app.dependency_overrides[get_provider] = lambda: provider
  app.dependency_overrides[get_settings] = lambda: settings
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
    yield ac
  app.dependency_overrides.clear()
