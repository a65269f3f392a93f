"""
Background worker process.

    secret-santa-worker [notification_delivery]

Runs the notification delivery loop outside the API process. The job may
also be picked with WORKER_JOB; run exactly one delivery worker per
database.
"""

import asyncio
import os
import sys
from collections.abc import Awaitable, Callable

from secret_santa.config import settings
from secret_santa.features.notifications.jobs import start_notification_delivery_scheduler
from secret_santa.infrastructure.observability.logging import get_logger, setup_logging

logger = get_logger(__name__)

DEFAULT_JOB = "notification_delivery"

JOB_REGISTRY: dict[str, Callable[[], Awaitable[None]]] = {
    DEFAULT_JOB: start_notification_delivery_scheduler,
}


def _resolve_job_name() -> str:
    raw = sys.argv[1] if len(sys.argv) > 1 else os.getenv("WORKER_JOB", DEFAULT_JOB)
    return raw.strip().lower()


async def run_worker(job_name: str | None = None) -> None:
    """
    Raises:
        ValueError: ``job_name`` is not a registered job
    """
    name = (job_name or _resolve_job_name()).strip().lower()
    job = JOB_REGISTRY.get(name)
    if job is None:
        known = ", ".join(sorted(JOB_REGISTRY))
        raise ValueError(f"Unknown worker job '{name}' (known: {known})")

    logger.info("Worker starting", job=name, environment=settings.environment)
    await job()
    logger.info("Worker finished", job=name)


def main() -> None:
    setup_logging(log_level=settings.LOG_LEVEL, environment=settings.environment)
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
