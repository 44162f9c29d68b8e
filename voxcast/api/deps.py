"""Shared FastAPI dependencies for repositories, the provider and the notification registry."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from voxcast.config import Settings, get_settings
from voxcast.notifications.registry import NotificationRegistry
from voxcast.providers.fal import FalClient
from voxcast.providers.interface import GenerationProvider
from voxcast.storage.factory import _get_jobs_repo
from voxcast.storage.jobs_repo import JobsRepository


def get_jobs_repo(settings: Annotated[Settings, Depends(get_settings)]) -> JobsRepository:
  return _get_jobs_repo(settings)


def get_registry(request: Request) -> NotificationRegistry:
  """Return the registry owned by the application lifespan."""
  return request.app.state.notification_registry


def get_provider(settings: Annotated[Settings, Depends(get_settings)]) -> GenerationProvider:
  return FalClient.from_settings(settings)
