"""FalClient request shapes and error mapping, exercised through httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest

from voxcast.providers.fal import FalClient, _app_id
from voxcast.providers.interface import ProviderError
from voxcast.providers.models import AVATAR_VIDEO_MODEL, VOICE_CLONE_MODEL


def _client(handler, *, api_key: str | None = "secret") -> FalClient:
  return FalClient(api_key=api_key, queue_url="https://queue.test", run_url="https://run.test", timeout_seconds=5, transport=httpx.MockTransport(handler))


def test_app_id_keeps_owner_and_app() -> None:
  assert _app_id(VOICE_CLONE_MODEL) == "fal-ai/minimax"
  assert _app_id(AVATAR_VIDEO_MODEL) == "fal-ai/kling-video"


@pytest.mark.anyio
async def test_submit_sync_posts_to_run_endpoint_with_key() -> None:
  seen: list[httpx.Request] = []

  def handler(request: httpx.Request) -> httpx.Response:
    seen.append(request)
    return httpx.Response(200, json={"audio": {"url": "https://x/y.mp3"}})

  output = await _client(handler).submit_sync(VOICE_CLONE_MODEL, {"text": "hi"})

  assert output == {"audio": {"url": "https://x/y.mp3"}}
  assert str(seen[0].url) == f"https://run.test/{VOICE_CLONE_MODEL}"
  assert seen[0].headers["authorization"] == "Key secret"
  assert json.loads(seen[0].content) == {"text": "hi"}


@pytest.mark.anyio
async def test_submit_async_passes_webhook_and_returns_request_id() -> None:
  seen: list[httpx.Request] = []

  def handler(request: httpx.Request) -> httpx.Response:
    seen.append(request)
    return httpx.Response(200, json={"request_id": "req-1", "status": "IN_QUEUE"})

  ref = await _client(handler).submit_async(AVATAR_VIDEO_MODEL, {"audio_url": "a"}, "https://api.test/webhooks/fal")

  assert ref == "req-1"
  assert seen[0].url.path == f"/{AVATAR_VIDEO_MODEL}"
  assert seen[0].url.params["fal_webhook"] == "https://api.test/webhooks/fal"


@pytest.mark.anyio
async def test_submit_async_without_request_id_is_an_error() -> None:
  client = _client(lambda request: httpx.Response(200, json={"status": "IN_QUEUE"}))

  with pytest.raises(ProviderError, match="request_id"):
    await client.submit_async(VOICE_CLONE_MODEL, {}, "https://api.test/webhooks/fal")


@pytest.mark.anyio
async def test_status_and_result_use_the_app_path() -> None:
  paths: list[str] = []

  def handler(request: httpx.Request) -> httpx.Response:
    paths.append(request.url.path)
    if request.url.path.endswith("/status"):
      return httpx.Response(200, json={"status": "COMPLETED"})
    return httpx.Response(200, json={"audio": {"url": "https://x/y.mp3"}})

  client = _client(handler)
  assert await client.get_status(VOICE_CLONE_MODEL, "req-9") == "COMPLETED"
  assert await client.get_result(VOICE_CLONE_MODEL, "req-9") == {"audio": {"url": "https://x/y.mp3"}}
  assert paths == ["/fal-ai/minimax/requests/req-9/status", "/fal-ai/minimax/requests/req-9"]


@pytest.mark.anyio
async def test_http_errors_become_provider_errors() -> None:
  client = _client(lambda request: httpx.Response(422, text="bad voice"))

  with pytest.raises(ProviderError) as excinfo:
    await client.submit_sync(VOICE_CLONE_MODEL, {})

  assert excinfo.value.status_code == 422
  assert "bad voice" in str(excinfo.value)


@pytest.mark.anyio
async def test_timeouts_become_provider_errors() -> None:
  def handler(request: httpx.Request) -> httpx.Response:
    raise httpx.ReadTimeout("slow", request=request)

  with pytest.raises(ProviderError, match="timed out"):
    await _client(handler).submit_sync(VOICE_CLONE_MODEL, {})


@pytest.mark.anyio
async def test_non_json_body_is_rejected() -> None:
  client = _client(lambda request: httpx.Response(200, text="<html>"))

  with pytest.raises(ProviderError, match="non-JSON"):
    await client.submit_sync(VOICE_CLONE_MODEL, {})


@pytest.mark.anyio
async def test_missing_key_fails_before_any_request() -> None:
  calls: list[httpx.Request] = []

  def handler(request: httpx.Request) -> httpx.Response:
    calls.append(request)
    return httpx.Response(200, json={})

  with pytest.raises(ProviderError, match="FAL_KEY"):
    await _client(handler, api_key=None).submit_sync(VOICE_CLONE_MODEL, {})
  assert calls == []
