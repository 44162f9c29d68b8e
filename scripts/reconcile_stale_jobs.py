"""Reset jobs stuck in progress back to pending; meant to run from cron."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

# Ensure repo root is on sys.path so local imports resolve before site-packages.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from voxcast.config import get_database_settings  # noqa: E402
from voxcast.core.database import dispose_engine  # noqa: E402
from voxcast.jobs.reconciler import DEFAULT_STALE_TIMEOUT_SECONDS, reconcile_stale  # noqa: E402
from voxcast.storage.postgres_jobs_repo import PostgresJobsRepository  # noqa: E402

logger = logging.getLogger("scripts.reconcile_stale_jobs")


async def _run(timeout_seconds: int) -> int:
  if not get_database_settings().pg_dsn:
    raise RuntimeError("VOXCAST_PG_DSN must be set.")
  try:
    reset = await reconcile_stale(PostgresJobsRepository(), timeout_seconds)
  finally:
    await dispose_engine()
  for job in reset:
    logger.info("Reset %s job %s", job.kind, job.job_id)
  return len(reset)


def main() -> None:
  """Parse arguments and run one stale-job sweep."""
  parser = argparse.ArgumentParser(description="Reset jobs stuck in progress back to pending.")
  parser.add_argument("--timeout-seconds", type=int, default=None, help="Override VOXCAST_STALE_JOB_TIMEOUT_SECONDS.")
  args = parser.parse_args()

  logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%H:%M:%S")

  # Only database settings are loaded; the web-only configuration is not required here.
  timeout_seconds = args.timeout_seconds if args.timeout_seconds is not None else int(os.getenv("VOXCAST_STALE_JOB_TIMEOUT_SECONDS", str(DEFAULT_STALE_TIMEOUT_SECONDS)))
  if timeout_seconds <= 0:
    parser.error("timeout must be positive")
  count = asyncio.run(_run(timeout_seconds))
  logger.info("Reset %s stale jobs (timeout %ss)", count, timeout_seconds)


if __name__ == "__main__":
  main()
