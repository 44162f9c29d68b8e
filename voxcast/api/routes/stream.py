from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from voxcast.api.deps import get_registry
from voxcast.api.models import StreamStatsResponse
from voxcast.config import Settings, get_settings
from voxcast.notifications.registry import NotificationRegistry
from voxcast.notifications.stream import event_stream

router = APIRouter()

_SSE_HEADERS = {"cache-control": "no-cache, no-transform", "connection": "keep-alive", "x-accel-buffering": "no"}


@router.get("")
async def stream_events(
  request: Request,
  registry: Annotated[NotificationRegistry, Depends(get_registry)],
  settings: Annotated[Settings, Depends(get_settings)],
  parent_id: str | None = Query(default=None, min_length=1),  # noqa: B008
) -> StreamingResponse:
  """Open a Server-Sent Events stream of job events, optionally scoped to one parent."""
  frames = event_stream(registry, parent_id=parent_id, ping_interval=settings.sse_ping_interval_seconds, is_disconnected=request.is_disconnected)
  return StreamingResponse(frames, media_type="text/event-stream", headers=_SSE_HEADERS)


@router.get("/stats", response_model=StreamStatsResponse)
async def stream_stats(registry: Annotated[NotificationRegistry, Depends(get_registry)]) -> StreamStatsResponse:
  return StreamStatsResponse.model_validate(registry.stats())
