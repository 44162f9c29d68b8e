"""HTTP client for the fal.ai queue and synchronous run endpoints."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from voxcast.config import Settings
from voxcast.providers.interface import GenerationProvider, ProviderError

logger = logging.getLogger(__name__)


def _app_id(model: str) -> str:
  """Queue status/result routes are keyed by owner/app, without the model sub-path."""
  parts = [part for part in model.split("/") if part]
  return "/".join(parts[:2])


class FalClient(GenerationProvider):
  """Talk to fal.ai over REST; every failure surfaces as ProviderError."""

  def __init__(self, *, api_key: str | None, queue_url: str = "https://queue.fal.run", run_url: str = "https://fal.run", timeout_seconds: float = 120.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
    self.api_key = api_key
    self.queue_url = queue_url.rstrip("/")
    self.run_url = run_url.rstrip("/")
    self.timeout_seconds = timeout_seconds
    self._transport = transport

  @classmethod
  def from_settings(cls, settings: Settings) -> FalClient:
    return cls(api_key=settings.fal_key, queue_url=settings.fal_queue_url, run_url=settings.fal_run_url, timeout_seconds=settings.fal_timeout_seconds)

  def _headers(self) -> dict[str, str]:
    # Refuse to call out without a credential rather than sending an anonymous request.
    if not self.api_key:
      raise ProviderError("FAL_KEY is not configured.")
    return {"authorization": f"Key {self.api_key}", "content-type": "application/json"}

  def _build_client(self) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport, trust_env=False)

  async def _request(self, method: str, url: str, *, params: dict[str, str] | None = None, payload: dict[str, Any] | None = None) -> dict[str, Any]:
    headers = self._headers()
    try:
      async with self._build_client() as client:
        response = await client.request(method, url, params=params, json=payload, headers=headers)
        response.raise_for_status()
        body = response.json()

    except httpx.TimeoutException as e:
      logger.error("fal.ai request timed out after %.0fs: %s %s", self.timeout_seconds, method, url)
      raise ProviderError(f"Provider request timed out after {self.timeout_seconds:.0f}s") from e
    except httpx.HTTPStatusError as e:
      logger.error("fal.ai returned %s for %s %s: %s", e.response.status_code, method, url, e.response.text[:500])
      raise ProviderError(f"Provider error {e.response.status_code}: {e.response.text[:500]}", status_code=e.response.status_code) from e
    except httpx.RequestError as e:
      logger.error("fal.ai request failed for %s %s: %s", method, url, e)
      raise ProviderError(f"Provider request failed: {e}") from e
    except ValueError as e:
      raise ProviderError("Provider returned a non-JSON response") from e

    if not isinstance(body, dict):
      raise ProviderError("Provider returned an unexpected response shape")
    return body

  async def submit_sync(self, model: str, payload: dict[str, Any]) -> dict[str, Any]:
    logger.info("Running %s synchronously", model)
    return await self._request("POST", f"{self.run_url}/{model}", payload=payload)

  async def submit_async(self, model: str, payload: dict[str, Any], webhook_url: str) -> str:
    body = await self._request("POST", f"{self.queue_url}/{model}", params={"fal_webhook": webhook_url}, payload=payload)
    request_id = body.get("request_id")
    if not isinstance(request_id, str) or not request_id:
      raise ProviderError("Provider submission response is missing request_id")
    logger.info("Queued %s request %s (webhook: %s)", model, request_id, webhook_url)
    return request_id

  async def get_status(self, model: str, external_ref: str) -> str:
    body = await self._request("GET", f"{self.queue_url}/{_app_id(model)}/requests/{external_ref}/status")
    return str(body.get("status") or "UNKNOWN")

  async def get_result(self, model: str, external_ref: str) -> dict[str, Any]:
    return await self._request("GET", f"{self.queue_url}/{_app_id(model)}/requests/{external_ref}")
