from . import jobs, stream, tasks, webhooks

__all__ = ["jobs", "stream", "tasks", "webhooks"]
