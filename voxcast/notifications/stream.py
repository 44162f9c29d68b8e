"""Server-Sent Events stream backing one subscribed client."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable

from voxcast.notifications.events import connected_event, ping_event
from voxcast.notifications.registry import NotificationRegistry, QueueSink, SinkClosedError

logger = logging.getLogger(__name__)


async def event_stream(registry: NotificationRegistry, *, parent_id: str | None = None, ping_interval: float = 30.0, is_disconnected: Callable[[], Awaitable[bool]] | None = None) -> AsyncIterator[str]:
  """Yield SSE frames for one subscription until the client goes away.

  The subscription is registered before the first frame and always removed
  when the generator finishes, whether the client disconnected, a write failed
  (the server closes the generator), or the registry was cleared on shutdown.
  """
  connection_id = registry.generate_connection_id()
  sink = QueueSink()
  registry.register_connection(connection_id, sink, parent_id=parent_id)

  try:
    yield connected_event(connection_id, parent_id).to_sse()

    while True:
      # Stop as soon as the transport reports the client is gone.
      if is_disconnected is not None and await is_disconnected():
        logger.info("Stream client disconnected %s", connection_id)
        break

      try:
        event = await sink.next_event(timeout=ping_interval)
      except SinkClosedError:
        logger.info("Stream closed by server %s", connection_id)
        break

      # Idle interval elapsed; keep intermediaries from dropping the connection.
      if event is None:
        event = ping_event()

      yield event.to_sse()

  finally:
    sink.close()
    registry.unregister_connection(connection_id)
