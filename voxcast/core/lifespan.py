import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from voxcast.core.database import dispose_engine
from voxcast.core.logging import initialize_logging
from voxcast.notifications.registry import NotificationRegistry


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging and the process-wide notification registry."""
  from voxcast.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("voxcast.core.lifespan")

  try:
    initialize_logging(settings)
    logger.info("Startup complete - logging verified.")
  except Exception:
    logger.warning("Initial logging setup failed; continuing with default handlers.", exc_info=True)

  # One registry per process; every stream and job transition must share it.
  app.state.notification_registry = NotificationRegistry()
  logger.info("Notification registry ready (environment=%s, webhook=%s).", settings.environment, settings.webhook_url or "disabled")

  try:
    yield
  finally:
    registry: NotificationRegistry = app.state.notification_registry
    logger.info("Shutting down; closing %s stream connections.", len(registry))
    registry.clear()
    await dispose_engine()
