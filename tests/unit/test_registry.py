"""Notification registry fan-out and cleanup behavior."""

from __future__ import annotations

import re

import pytest

from voxcast.jobs.models import JobRecord
from voxcast.notifications.dispatch import notify_job_completed
from voxcast.notifications.events import Event
from voxcast.notifications.registry import NotificationRegistry, QueueSink, SinkClosedError


class BrokenSink:
  def send(self, event: Event) -> None:
    raise SinkClosedError("gone")

  def close(self) -> None:
    pass


def test_parent_filter_reaches_scoped_and_unscoped_subscribers(registry: NotificationRegistry, recording_sink_factory) -> None:
  scoped = recording_sink_factory()
  unscoped = recording_sink_factory()
  registry.register_connection("scoped", scoped, parent_id="42")
  registry.register_connection("unscoped", unscoped)

  assert registry.notify(Event(type="job_created", job_id="a"), parent_id="42") == 2
  assert registry.notify(Event(type="job_created", job_id="b"), parent_id="99") == 1

  assert [event.job_id for event in scoped.events] == ["a"]
  assert [event.job_id for event in unscoped.events] == ["a", "b"]


def test_unfiltered_notify_reaches_everyone(registry: NotificationRegistry, recording_sink_factory) -> None:
  sinks = [recording_sink_factory() for _ in range(3)]
  registry.register_connection("a", sinks[0], parent_id="1")
  registry.register_connection("b", sinks[1], parent_id="2")
  registry.register_connection("c", sinks[2])

  assert registry.notify(Event(type="ping")) == 3


def test_unregistered_connection_receives_nothing(registry: NotificationRegistry, recording_sink_factory) -> None:
  sink = recording_sink_factory()
  registry.register_connection("conn", sink, parent_id="42")

  assert registry.unregister_connection("conn") is True
  assert registry.unregister_connection("conn") is False
  assert registry.unregister_connection("never-registered") is False
  assert registry.notify(Event(type="job_created"), parent_id="42") == 0
  assert sink.events == []


def test_failed_delivery_drops_the_subscription_without_raising(registry: NotificationRegistry, recording_sink_factory) -> None:
  healthy = recording_sink_factory()
  registry.register_connection("broken", BrokenSink())
  registry.register_connection("healthy", healthy)

  assert registry.notify(Event(type="job_failed", error="boom")) == 1
  assert "broken" not in registry
  assert "healthy" in registry
  assert len(healthy.events) == 1


def test_duplicate_registration_is_rejected(registry: NotificationRegistry, recording_sink_factory) -> None:
  registry.register_connection("conn", recording_sink_factory())
  with pytest.raises(ValueError):
    registry.register_connection("conn", recording_sink_factory())


def test_generated_connection_ids_are_unique(registry: NotificationRegistry) -> None:
  ids = {registry.generate_connection_id() for _ in range(100)}
  assert len(ids) == 100
  assert all(re.fullmatch(r"conn-\d+-[0-9a-f]{8}", connection_id) for connection_id in ids)


def test_stats_count_connections_per_parent(registry: NotificationRegistry, recording_sink_factory) -> None:
  registry.register_connection("a", recording_sink_factory(), parent_id="42")
  registry.register_connection("b", recording_sink_factory(), parent_id="42")
  registry.register_connection("c", recording_sink_factory())

  assert registry.stats() == {"total_connections": 3, "connections_by_parent": {"42": 2}}

  registry.unregister_connection("a")
  registry.unregister_connection("b")
  assert registry.stats() == {"total_connections": 1, "connections_by_parent": {}}


def test_clear_closes_sinks(registry: NotificationRegistry, recording_sink_factory) -> None:
  sink = recording_sink_factory()
  registry.register_connection("conn", sink)

  registry.clear()

  assert sink.closed is True
  assert len(registry) == 0


def test_queue_sink_rejects_events_after_close() -> None:
  sink = QueueSink()
  sink.close()
  with pytest.raises(SinkClosedError):
    sink.send(Event(type="ping"))


def test_job_events_use_the_job_parent_as_filter(registry: NotificationRegistry, recording_sink_factory) -> None:
  mine = recording_sink_factory()
  other = recording_sink_factory()
  registry.register_connection("mine", mine, parent_id="42")
  registry.register_connection("other", other, parent_id="99")
  job = JobRecord(job_id="job-1", kind="audio", status="completed", input={}, created_at="t", updated_at="t", parent_id="42", result={"url": "https://x/y.mp3"})

  assert notify_job_completed(registry, job) == 1

  event = mine.events[0]
  assert event.type == "job_completed"
  assert event.job_kind == "audio"
  assert event.data == {"url": "https://x/y.mp3"}
  assert other.events == []


def test_event_wire_format_is_a_single_sse_data_frame() -> None:
  frame = Event(type="job_failed", job_id="job-1", error="boom").to_sse()
  assert frame.startswith("data: {")
  assert frame.endswith("\n\n")
  assert '"job_id":"job-1"' in frame
  assert '"parent_id"' not in frame
