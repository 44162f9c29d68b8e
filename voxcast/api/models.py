from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, model_validator

from voxcast.jobs.models import JobKind, JobRecord, JobStatus

MAX_CHUNKS = 200
MAX_CHUNK_CHARS = 10_000


class AudioChunk(BaseModel):
  """One piece of text synthesized by a single provider request."""

  text: StrictStr = Field(min_length=1, max_length=MAX_CHUNK_CHARS)
  index: StrictInt | None = Field(default=None, ge=0)
  section: StrictStr | None = None
  article_title: StrictStr | None = None
  model_config = ConfigDict(extra="forbid")


class AudioJobInput(BaseModel):
  """Audio generation input; a plain text is normalized into a single chunk."""

  voice: StrictStr | None = Field(default=None, min_length=1, description="Reference voice URL used for cloning.")
  text: StrictStr | None = Field(default=None, min_length=1, max_length=MAX_CHUNK_CHARS)
  chunks: list[AudioChunk] | None = Field(default=None, min_length=1, max_length=MAX_CHUNKS)
  model_config = ConfigDict(extra="forbid")

  @model_validator(mode="after")
  def _require_text(self) -> AudioJobInput:
    if (self.text is None) == (self.chunks is None):
      raise ValueError("Provide exactly one of text or chunks.")
    return self

  def normalized(self) -> dict[str, Any]:
    """Return the stored form: voice plus indexed chunks."""
    if self.chunks is None:
      chunks = [{"index": 0, "text": self.text}]
    else:
      chunks = []
      for position, chunk in enumerate(self.chunks):
        entry = chunk.model_dump(exclude_none=True)
        entry["index"] = chunk.index if chunk.index is not None else position
        chunks.append(entry)
    payload: dict[str, Any] = {"chunks": chunks}
    if self.voice is not None:
      payload["voice"] = self.voice
    return payload


class VideoJobInput(BaseModel):
  """Lip-sync avatar video input."""

  audio_url: StrictStr = Field(min_length=1)
  image_url: StrictStr | None = Field(default=None, min_length=1)
  text: StrictStr | None = None
  section: StrictStr | None = None
  audio_chunk_index: StrictInt | None = Field(default=None, ge=0)
  model_config = ConfigDict(extra="forbid")

  def normalized(self) -> dict[str, Any]:
    return self.model_dump(exclude_none=True)


class CreateJobRequest(BaseModel):
  """Request payload for creating a generation job."""

  kind: Literal["audio", "video"]
  parent_id: StrictStr | None = Field(default=None, min_length=1, max_length=128, description="Owning podcast production, used to scope stream notifications.")
  input: dict[str, Any]
  model_config = ConfigDict(extra="forbid")

  @model_validator(mode="after")
  def _validate_input(self) -> CreateJobRequest:
    # Validate against the kind-specific schema and keep the normalized form.
    model = AudioJobInput if self.kind == "audio" else VideoJobInput
    self.input = model.model_validate(self.input).normalized()
    return self


class JobResponse(BaseModel):
  """Job status, result and error as exposed to clients."""

  job_id: StrictStr
  kind: JobKind
  status: JobStatus
  parent_id: StrictStr | None = None
  input: dict[str, Any]
  result: dict[str, Any] | None = None
  error: StrictStr | None = None
  external_ref: StrictStr | None = None
  created_at: StrictStr
  updated_at: StrictStr
  completed_at: StrictStr | None = None

  @classmethod
  def from_record(cls, record: JobRecord) -> JobResponse:
    return cls(
      job_id=record.job_id,
      kind=record.kind,
      status=record.status,
      parent_id=record.parent_id,
      input=record.input,
      result=record.result,
      error=record.error,
      external_ref=record.external_ref,
      created_at=record.created_at,
      updated_at=record.updated_at,
      completed_at=record.completed_at,
    )


class JobListResponse(BaseModel):
  items: list[JobResponse]
  total: int
  limit: int
  offset: int


class ProcessJobRequest(BaseModel):
  """Task payload selecting which kind of job to claim next."""

  kind: Literal["audio", "video"]
  model_config = ConfigDict(extra="forbid")


class ProcessJobResponse(BaseModel):
  processed: bool
  job: JobResponse | None = None
  submitted_refs: list[str] = Field(default_factory=list)
  has_more: bool = False


class ReconcileRequest(BaseModel):
  """Optional override of the configured stale timeout."""

  timeout_seconds: StrictInt | None = Field(default=None, gt=0)
  model_config = ConfigDict(extra="forbid")


class ReconcileResponse(BaseModel):
  reset_count: int
  job_ids: list[str]
  timeout_seconds: int


class RecoverJobRequest(BaseModel):
  request_id: StrictStr | None = Field(default=None, min_length=1, description="Provider request id; defaults to every outstanding request of the job.")
  model_config = ConfigDict(extra="forbid")


class FalWebhookPayload(BaseModel):
  """Callback body posted by fal.ai when a queued request finishes."""

  request_id: StrictStr = Field(min_length=1)
  status: StrictStr
  payload: dict[str, Any] | None = None
  error: StrictStr | None = None
  payload_error: StrictStr | None = None
  model_config = ConfigDict(extra="ignore")


class WebhookResponse(BaseModel):
  received: bool
  job_id: StrictStr | None = None
  status: JobStatus | None = None


class StreamStatsResponse(BaseModel):
  total_connections: int
  connections_by_parent: dict[str, int]
