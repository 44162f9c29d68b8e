from __future__ import annotations

from typing import Any, Protocol


class ProviderError(Exception):
  """Raised when the generation provider rejects, fails, or times out a request."""

  def __init__(self, message: str, *, status_code: int | None = None) -> None:
    super().__init__(message)
    self.status_code = status_code


class GenerationProvider(Protocol):
  """Interface for the external media generation service."""

  async def submit_sync(self, model: str, payload: dict[str, Any]) -> dict[str, Any]:
    """Run a generation and wait for its output."""
    ...

  async def submit_async(self, model: str, payload: dict[str, Any], webhook_url: str) -> str:
    """Queue a generation whose outcome is posted to webhook_url; returns the request id."""
    ...

  async def get_status(self, model: str, external_ref: str) -> str:
    """Return the provider-side status of a queued request."""
    ...

  async def get_result(self, model: str, external_ref: str) -> dict[str, Any]:
    """Fetch the output of a finished queued request."""
    ...
