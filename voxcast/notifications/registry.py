"""In-process registry of live event stream subscriptions.

The registry is owned by the application lifespan: it is constructed once at
startup and cleared on shutdown. Entries live only in this process, so every
subscriber and every job worker must share it. Scaling out needs a broker-backed
registry exposing the same register/unregister/notify interface.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Protocol

from voxcast.notifications.events import Event

logger = logging.getLogger(__name__)

_CLOSED = object()


class SinkClosedError(Exception):
  """Raised when pushing to a subscriber whose connection is gone."""


class EventSink(Protocol):
  """Delivery contract for one connected client."""

  def send(self, event: Event) -> None:
    """Push an event without blocking; raise when the client is gone."""

  def close(self) -> None:
    """Stop accepting events."""


class QueueSink:
  """Unbounded in-memory sink drained by the client's stream generator."""

  def __init__(self) -> None:
    self._queue: asyncio.Queue[object] = asyncio.Queue()
    self._closed = False

  @property
  def closed(self) -> bool:
    return self._closed

  def send(self, event: Event) -> None:
    if self._closed:
      raise SinkClosedError("Sink is closed.")
    self._queue.put_nowait(event)

  def close(self) -> None:
    if self._closed:
      return
    self._closed = True
    # Wake a reader blocked on get().
    self._queue.put_nowait(_CLOSED)

  async def next_event(self, timeout: float) -> Event | None:
    """Return the next event, or None when nothing arrived within timeout."""
    try:
      item = await asyncio.wait_for(self._queue.get(), timeout=timeout)
    except TimeoutError:
      if self._closed:
        raise SinkClosedError("Sink is closed.") from None
      return None
    if item is _CLOSED:
      raise SinkClosedError("Sink is closed.")
    return item  # type: ignore[return-value]


@dataclass
class Subscription:
  """A registered client connection."""

  connection_id: str
  sink: EventSink
  parent_id: str | None = None
  connected_at: float = field(default_factory=time.time)


def _matches(subscription: Subscription, parent_id: str | None) -> bool:
  if subscription.parent_id is None or parent_id is None:
    return True
  return subscription.parent_id == parent_id


class NotificationRegistry:
  """Maps connection ids to sinks, optionally scoped to one parent id."""

  def __init__(self) -> None:
    self._subscriptions: dict[str, Subscription] = {}
    self._by_parent: dict[str, set[str]] = defaultdict(set)

  def __len__(self) -> int:
    return len(self._subscriptions)

  def __contains__(self, connection_id: object) -> bool:
    return connection_id in self._subscriptions

  def generate_connection_id(self) -> str:
    """Return an id unique among the currently registered connections."""
    while True:
      connection_id = f"conn-{int(time.time() * 1000)}-{secrets.token_hex(4)}"
      if connection_id not in self._subscriptions:
        return connection_id

  def register_connection(self, connection_id: str, sink: EventSink, parent_id: str | None = None) -> None:
    if connection_id in self._subscriptions:
      raise ValueError(f"Connection {connection_id} is already registered.")
    self._subscriptions[connection_id] = Subscription(connection_id=connection_id, sink=sink, parent_id=parent_id)
    if parent_id is not None:
      self._by_parent[parent_id].add(connection_id)
    logger.info("Stream connection registered %s (parent: %s), total=%s", connection_id, parent_id or "none", len(self._subscriptions))

  def unregister_connection(self, connection_id: str) -> bool:
    """Remove a subscription; returns False when it was not registered."""
    subscription = self._subscriptions.pop(connection_id, None)
    if subscription is None:
      return False
    if subscription.parent_id is not None:
      members = self._by_parent.get(subscription.parent_id)
      if members is not None:
        members.discard(connection_id)
        if not members:
          del self._by_parent[subscription.parent_id]
    logger.info("Stream connection unregistered %s, total=%s", connection_id, len(self._subscriptions))
    return True

  def notify(self, event: Event, parent_id: str | None = None) -> int:
    """Deliver an event to every matching subscription; returns the delivery count."""
    delivered = 0
    targets = [subscription for subscription in self._subscriptions.values() if _matches(subscription, parent_id)]
    for subscription in targets:
      try:
        subscription.sink.send(event)
      except Exception as exc:  # noqa: BLE001
        # A broken subscriber must never affect the caller or other subscribers.
        logger.warning("Dropping stream connection %s after delivery failure: %s", subscription.connection_id, exc)
        self.unregister_connection(subscription.connection_id)
        continue
      delivered += 1

    logger.debug("Delivered %s event to %s/%s connections (parent: %s)", event.type, delivered, len(targets), parent_id or "all")
    return delivered

  def stats(self) -> dict[str, object]:
    return {"total_connections": len(self._subscriptions), "connections_by_parent": {parent: len(members) for parent, members in self._by_parent.items()}}

  def clear(self) -> None:
    """Close every sink and forget all subscriptions."""
    for subscription in list(self._subscriptions.values()):
      try:
        subscription.sink.close()
      except Exception as exc:  # noqa: BLE001
        logger.warning("Failed closing stream connection %s: %s", subscription.connection_id, exc)
    self._subscriptions.clear()
    self._by_parent.clear()
