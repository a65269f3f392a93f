"""
Recurring notification delivery job.

Ticks the delivery processor on a fixed interval. The scheduler is an
explicit object with injected configuration: when disabled it never starts
a loop, and tests drive process_pending_batch() directly instead.
"""

import asyncio
from datetime import UTC, datetime, timedelta

from secret_santa.config import settings
from secret_santa.db.pool import db_pool
from secret_santa.features.notifications.domain import ProcessingSummary
from secret_santa.features.notifications.repository import (
    contact_directory,
    notification_repository,
)
from secret_santa.features.notifications.retry_policy import RetryPolicy
from secret_santa.features.notifications.services.delivery_processor import (
    NotificationDeliveryProcessor,
)
from secret_santa.features.notifications.services.mailer import LoggingMailer
from secret_santa.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

# Back off after a failed tick so a broken database is not hammered
ERROR_BACKOFF_SECONDS = 60


class NotificationDeliveryScheduler:
    """Runs the processor every ``interval_seconds`` while enabled."""

    def __init__(
        self,
        processor: NotificationDeliveryProcessor,
        *,
        enabled: bool = True,
        interval_seconds: float = 30,
        startup_delay_seconds: float = 0,
    ):
        self.processor = processor
        self.enabled = enabled
        self.interval_seconds = interval_seconds
        self.startup_delay_seconds = startup_delay_seconds
        self.last_run_time: datetime | None = None
        self.last_summary: ProcessingSummary | None = None
        self.last_error: str | None = None
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> ProcessingSummary:
        """Run one pass and remember its outcome."""
        summary = await self.processor.process_pending_batch()
        self.last_run_time = datetime.now(UTC)
        self.last_summary = summary
        self.last_error = None
        return summary

    async def run_forever(self) -> None:
        """Tick until cancelled. Batch errors are logged and retried later."""
        logger.info(
            "Starting notification delivery scheduler",
            interval_seconds=self.interval_seconds,
            startup_delay_seconds=self.startup_delay_seconds,
        )

        if self.startup_delay_seconds:
            await asyncio.sleep(self.startup_delay_seconds)

        while True:
            try:
                await self.run_once()
                await asyncio.sleep(self.interval_seconds)

            except asyncio.CancelledError:
                logger.info("Notification delivery scheduler stopped")
                raise
            except Exception as e:
                self.last_error = str(e)
                logger.error(
                    "Error in notification delivery scheduler",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                await asyncio.sleep(max(self.interval_seconds, ERROR_BACKOFF_SECONDS))

    def start(self) -> asyncio.Task | None:
        """Start the loop as a background task; no-op when disabled."""
        if not self.enabled:
            logger.info("Notification delivery scheduler disabled")
            return None

        if self.is_running:
            logger.warning("Notification delivery scheduler already running")
            return self._task

        self._task = asyncio.create_task(self.run_forever(), name="notification-delivery")
        return self._task

    async def stop(self) -> None:
        """Cancel the loop and wait for it to unwind."""
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None

    def get_job_status(self) -> dict:
        return {
            "job_name": "notification_delivery",
            "enabled": self.enabled,
            "is_running": self.is_running,
            "is_processing": self.processor.is_processing,
            "interval_seconds": self.interval_seconds,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "last_run_summary": self.last_summary.to_dict() if self.last_summary else None,
            "last_error": self.last_error,
        }

    def health_check(self) -> dict:
        """Unhealthy when enabled and no pass completed within twice the interval."""
        now = datetime.now(UTC)
        overdue_threshold = timedelta(seconds=self.interval_seconds * 2)
        is_overdue = (
            self.enabled
            and self.last_run_time is not None
            and (now - self.last_run_time) > overdue_threshold
        )

        health = {
            "healthy": not is_overdue and self.last_error is None,
            "service": "notification_delivery_job",
            "is_overdue": is_overdue,
            **self.get_job_status(),
        }
        if is_overdue:
            health["warning"] = (
                f"Job overdue by {(now - self.last_run_time).total_seconds():.0f} seconds"
            )
        return health


def build_delivery_processor() -> NotificationDeliveryProcessor:
    """Wire the processor to Postgres and the configured mailer."""
    return NotificationDeliveryProcessor(
        notification_repository,
        LoggingMailer(),
        contact_directory,
        policy=RetryPolicy(**settings.get_retry_policy_config()),
        batch_size=settings.NOTIFICATION_BATCH_SIZE,
        delivery_timeout_seconds=settings.NOTIFICATION_DELIVERY_TIMEOUT_SECONDS,
    )


def build_delivery_scheduler(
    processor: NotificationDeliveryProcessor | None = None,
) -> NotificationDeliveryScheduler:
    return NotificationDeliveryScheduler(
        processor or build_delivery_processor(),
        enabled=settings.NOTIFICATION_WORKER_ENABLED,
        interval_seconds=settings.NOTIFICATION_POLL_INTERVAL_SECONDS,
        startup_delay_seconds=settings.NOTIFICATION_STARTUP_DELAY_SECONDS,
    )


async def start_notification_delivery_scheduler() -> None:
    """
    Worker entry point: own the database pool and tick until stopped.

    This is the only place the recurring loop runs. Deploy a single worker;
    selection is a plain snapshot query. Exits at once when
    NOTIFICATION_WORKER_ENABLED is false.
    """
    scheduler = build_delivery_scheduler()
    if not scheduler.enabled:
        logger.info("Notification delivery scheduler disabled, worker exiting")
        return

    await db_pool.initialize()
    try:
        await scheduler.run_forever()
    finally:
        await db_pool.close()


if __name__ == "__main__":
    asyncio.run(start_notification_delivery_scheduler())
