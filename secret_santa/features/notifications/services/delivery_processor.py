"""
Notification delivery processor.

One call to process_pending_batch() takes a snapshot of the due records,
attempts each of them in order through the mailer, writes the attempt
bookkeeping back, and then notifies completion listeners exactly once.

Delivery failures never escape a batch: a declared failure, a raised
exception and a timeout are all recorded on the record and retried per the
RetryPolicy. Only persistence errors abort the batch; the scheduler retries
on its next tick.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from secret_santa.features.notifications.domain import (
    DeliveryResult,
    NotificationKind,
    NotificationRecord,
    ProcessingSummary,
)
from secret_santa.features.notifications.repository import NotificationRepository
from secret_santa.features.notifications.retry_policy import RetryPolicy
from secret_santa.features.notifications.services.mailer import ContactDirectory, Mailer
from secret_santa.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 50
DEFAULT_DELIVERY_TIMEOUT_SECONDS = 30.0

CompletionListener = Callable[[ProcessingSummary], Awaitable[None] | None]


def utcnow() -> datetime:
    return datetime.now(UTC)


class NotificationDeliveryProcessor:
    """Drains due notifications from the queue, one record at a time."""

    def __init__(
        self,
        repository: NotificationRepository,
        mailer: Mailer,
        contacts: ContactDirectory,
        *,
        policy: RetryPolicy | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        delivery_timeout_seconds: float = DEFAULT_DELIVERY_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.mailer = mailer
        self.contacts = contacts
        self.policy = policy or RetryPolicy()
        self.batch_size = batch_size
        self.delivery_timeout_seconds = delivery_timeout_seconds
        self.clock = clock
        self._listeners: list[CompletionListener] = []
        self._lock = asyncio.Lock()

    def add_completion_listener(self, listener: CompletionListener) -> None:
        """Register a callable invoked with the summary after every pass."""
        self._listeners.append(listener)

    def remove_completion_listener(self, listener: CompletionListener) -> None:
        self._listeners.remove(listener)

    @property
    def is_processing(self) -> bool:
        return self._lock.locked()

    async def process_pending_batch(self) -> ProcessingSummary:
        """
        Process every record that is due now.

        Concurrent calls on one processor run one after another.

        Returns:
            ProcessingSummary with per-outcome counts

        Raises:
            DatabaseError: the queue could not be read or written
        """
        async with self._lock:
            started_at = self.clock()
            summary = ProcessingSummary(started_at=started_at)

            records = await self.repository.fetch_due(
                started_at, max_attempts=self.policy.max_attempts, limit=self.batch_size
            )
            summary.selected = len(records)

            if records:
                logger.info("Processing pending notifications", count=len(records))

            for record in records:
                delivered = await self._process_record(record)
                summary.attempted += 1
                if delivered:
                    summary.succeeded += 1
                else:
                    summary.failed += 1
                    if self.policy.is_exhausted(record.attempt_count):
                        summary.permanently_failed += 1

            summary.finished_at = self.clock()

            if records:
                logger.info("Notification batch completed", **summary.to_dict())

            await self._notify_listeners(summary)
            return summary

    async def _process_record(self, record: NotificationRecord) -> bool:
        """Attempt one record and persist the outcome. Returns True on delivery."""
        attempted_at = self.clock()
        if record.first_attempt_at is None:
            record.first_attempt_at = attempted_at
        record.last_attempt_at = attempted_at
        record.attempt_count += 1

        deadline = asyncio.timeout(self.delivery_timeout_seconds)
        try:
            async with deadline:
                result = await self._deliver(record)
        except asyncio.CancelledError:
            self._apply_failure(
                record, DeliveryResult.failure("Delivery cancelled", "Cancelled"), attempted_at
            )
            await self.repository.save_attempt(record)
            raise
        except TimeoutError as e:
            # A TimeoutError raised by the mailer itself keeps its own message
            if deadline.expired():
                result = DeliveryResult.failure(
                    f"Delivery timed out after {self.delivery_timeout_seconds}s", "Timeout"
                )
            else:
                result = self._unexpected_failure(record, e)
        except Exception as e:
            result = self._unexpected_failure(record, e)

        if result.success:
            record.sent_at = attempted_at
            record.last_error = None
            logger.info(
                "Notification delivered",
                notification_id=record.id,
                kind=record.kind.value,
                recipient_id=record.recipient_id,
                attempt=record.attempt_count,
            )
        else:
            self._apply_failure(record, result, attempted_at)

        await self.repository.save_attempt(record)
        return result.success

    def _unexpected_failure(self, record: NotificationRecord, error: Exception) -> DeliveryResult:
        logger.exception(
            "Unexpected error delivering notification",
            notification_id=record.id,
            kind=record.kind.value,
        )
        return DeliveryResult.failure(str(error) or type(error).__name__, type(error).__name__)

    def _apply_failure(
        self, record: NotificationRecord, result: DeliveryResult, attempted_at: datetime
    ) -> None:
        record.last_error = result.describe()

        if self.policy.should_retry(record.attempt_count):
            delay = self.policy.backoff(record.attempt_count)
            record.scheduled_at = attempted_at + delay
            logger.warning(
                "Notification delivery failed, retry scheduled",
                notification_id=record.id,
                kind=record.kind.value,
                attempt=record.attempt_count,
                max_attempts=self.policy.max_attempts,
                retry_in_seconds=delay.total_seconds(),
                error=record.last_error,
            )
        else:
            logger.error(
                "Notification delivery failed permanently",
                notification_id=record.id,
                kind=record.kind.value,
                attempt=record.attempt_count,
                max_attempts=self.policy.max_attempts,
                error=record.last_error,
            )

    async def _deliver(self, record: NotificationRecord) -> DeliveryResult:
        """Resolve contacts and make the kind-specific mailer call."""
        contact = await self.contacts.get_contact(record.recipient_id, record.group_id)
        if contact is None:
            return DeliveryResult.failure("Recipient contact not found", "RecipientNotFound")

        if record.kind == NotificationKind.DRAW_COMPLETED:
            return await self.mailer.send_draw_completed(contact, group_id=record.group_id)

        if record.kind == NotificationKind.WISHLIST_UPDATED:
            giftee_id = record.payload.get("giftee_id")
            giftee = (
                await self.contacts.get_contact(giftee_id, record.group_id) if giftee_id else None
            )
            if giftee is None:
                return DeliveryResult.failure(
                    "Giftee not found for wishlist notification", "GifteeNotFound"
                )
            return await self.mailer.send_wishlist_updated(
                contact, group_id=record.group_id, giftee_name=giftee.display_name
            )

        raise ValueError(f"Unknown notification kind: {record.kind}")

    async def _notify_listeners(self, summary: ProcessingSummary) -> None:
        for listener in list(self._listeners):
            try:
                outcome = listener(summary)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.exception("Completion listener failed")
