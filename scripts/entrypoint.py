import logging
import os

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("entrypoint")


def main() -> None:
  """Replace this process with uvicorn serving the voxcast app."""
  port = os.getenv("PORT", "8080")
  logger.info("Starting voxcast on port %s (run alembic upgrade head before deploying).", port)
  # exec keeps uvicorn as PID 1 so it receives SIGTERM directly.
  os.execvp("uvicorn", ["uvicorn", "voxcast.main:app", "--host", "0.0.0.0", "--port", port, "--no-server-header"])


if __name__ == "__main__":
  main()
