from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from voxcast.api.routes import jobs, stream, tasks, webhooks
from voxcast.config import get_settings
from voxcast.core.exceptions import global_exception_handler, http_exception_handler, invalid_transition_exception_handler, job_not_found_exception_handler, request_validation_exception_handler
from voxcast.core.lifespan import lifespan
from voxcast.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from voxcast.jobs.models import InvalidJobTransitionError, JobNotFoundError

settings = get_settings()

app = FastAPI(title="voxcast", lifespan=lifespan)

app.add_middleware(CORSMiddleware, allow_origins=list(settings.allowed_origins), allow_credentials=True, allow_methods=["GET", "POST", "OPTIONS"], allow_headers=["content-type", "authorization"], expose_headers=["content-length", "x-request-id"])


# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
app.add_exception_handler(JobNotFoundError, job_not_found_exception_handler)
app.add_exception_handler(InvalidJobTransitionError, invalid_transition_exception_handler)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": "0.1.0"}


app.include_router(jobs.router, prefix="/v1/jobs", tags=["jobs"])
app.include_router(stream.router, prefix="/v1/stream", tags=["stream"])
app.include_router(tasks.router, prefix="/internal", tags=["tasks"])
app.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
