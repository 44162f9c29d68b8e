"""Dispatch job lifecycle events to the notification registry."""

from __future__ import annotations

import logging

from voxcast.jobs.models import JobRecord
from voxcast.notifications.events import job_completed_event, job_created_event, job_failed_event
from voxcast.notifications.registry import NotificationRegistry

logger = logging.getLogger(__name__)


def notify_job_created(registry: NotificationRegistry, job: JobRecord) -> int:
  delivered = registry.notify(job_created_event(job), parent_id=job.parent_id)
  logger.info("Dispatched job_created for %s job %s to %s connections", job.kind, job.job_id, delivered)
  return delivered


def notify_job_completed(registry: NotificationRegistry, job: JobRecord) -> int:
  delivered = registry.notify(job_completed_event(job), parent_id=job.parent_id)
  logger.info("Dispatched job_completed for %s job %s to %s connections", job.kind, job.job_id, delivered)
  return delivered


def notify_job_failed(registry: NotificationRegistry, job: JobRecord) -> int:
  delivered = registry.notify(job_failed_event(job), parent_id=job.parent_id)
  logger.info("Dispatched job_failed for %s job %s to %s connections", job.kind, job.job_id, delivered)
  return delivered
