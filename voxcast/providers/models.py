"""Provider model identifiers, input builders and output parsers."""

from __future__ import annotations

from typing import Any

from voxcast.jobs.models import JobKind
from voxcast.providers.interface import ProviderError

VOICE_CLONE_MODEL = "fal-ai/minimax/voice-clone"
AVATAR_VIDEO_MODEL = "fal-ai/kling-video/v1/standard/ai-avatar"

MODEL_BY_KIND: dict[str, str] = {"audio": VOICE_CLONE_MODEL, "video": AVATAR_VIDEO_MODEL}

VOICE_CLONE_DEFAULTS: dict[str, Any] = {"model": "speech-02-hd", "noise_reduction": True, "need_volume_normalization": True}


def model_for(kind: JobKind) -> str:
  return MODEL_BY_KIND[kind]


def build_voice_clone_input(*, voice_url: str, text: str) -> dict[str, Any]:
  return {"audio_url": voice_url, "text": text, **VOICE_CLONE_DEFAULTS}


def build_avatar_video_input(*, image_url: str, audio_url: str) -> dict[str, Any]:
  return {"image_url": image_url, "audio_url": audio_url}


def _nested_url(payload: dict[str, Any] | None, key: str) -> str | None:
  if not isinstance(payload, dict):
    return None
  media = payload.get(key)
  if not isinstance(media, dict):
    return None
  url = media.get("url")
  return url if isinstance(url, str) and url else None


def parse_output_url(kind: JobKind, payload: dict[str, Any] | None) -> str:
  """Extract the generated media URL, rejecting malformed provider output."""
  key = "audio" if kind == "audio" else "video"
  url = _nested_url(payload, key)
  if url is None:
    raise ProviderError(f"Invalid {kind} result: missing {key} URL")
  return url
