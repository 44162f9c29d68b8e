from __future__ import annotations

import logging
import secrets
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from voxcast.config import Settings, get_settings

logger = logging.getLogger(__name__)


async def require_task_secret(request: Request, settings: Annotated[Settings, Depends(get_settings)], authorization: str | None = Header(default=None), x_voxcast_task_secret: str | None = Header(default=None)) -> None:
  """Guard internal endpoints invoked by schedulers and polling workers."""
  # Secure-by-default: without a configured secret nothing may trigger job processing.
  if not settings.task_secret:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Task authentication is not configured.")
  expected_auth = f"Bearer {settings.task_secret}"
  shared_secret_valid = secrets.compare_digest((x_voxcast_task_secret or ""), settings.task_secret)
  bearer_valid = secrets.compare_digest((authorization or ""), expected_auth)
  if not shared_secret_valid and not bearer_valid:
    logger.warning("Unauthorized access attempt to %s", request.url.path)
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid task secret.")
