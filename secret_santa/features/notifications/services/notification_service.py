"""
Enqueue API for group-event producers.

Inserts pending NotificationRecords; never touches existing ones.
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from secret_santa.features.draw.repository import DrawRepository
from secret_santa.features.notifications.domain import NotificationKind, NotificationRecord
from secret_santa.features.notifications.repository import NotificationRepository
from secret_santa.features.notifications.retry_policy import DEFAULT_MAX_ATTEMPTS
from secret_santa.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_WISHLIST_DELAY = timedelta(hours=1)


def utcnow() -> datetime:
    return datetime.now(UTC)


class NotificationService:
    def __init__(
        self,
        repository: NotificationRepository,
        draws: DrawRepository,
        *,
        wishlist_delay: timedelta = DEFAULT_WISHLIST_DELAY,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.draws = draws
        self.wishlist_delay = wishlist_delay
        self.max_attempts = max_attempts
        self.clock = clock

    async def enqueue(
        self,
        kind: NotificationKind,
        recipient_id: str,
        group_id: str,
        *,
        payload: dict[str, Any] | None = None,
        scheduled_at: datetime | None = None,
    ) -> NotificationRecord:
        """Insert a pending record due at ``scheduled_at`` (default: now)."""
        record = NotificationRecord.pending(
            kind,
            recipient_id=recipient_id,
            group_id=group_id,
            scheduled_at=scheduled_at or self.clock(),
            payload=payload,
        )
        await self.repository.insert(record)

        logger.info(
            "Notification scheduled",
            notification_id=record.id,
            kind=kind.value,
            recipient_id=recipient_id,
            group_id=group_id,
            scheduled_at=record.scheduled_at.isoformat(),
        )
        return record

    async def schedule_wishlist_update(
        self, group_id: str, giftee_id: str
    ) -> NotificationRecord | None:
        """
        Tell the giftee's santa that the wishlist changed.

        The email goes out after ``wishlist_delay``; further edits inside that
        window ride on the already scheduled record. A record that has used up
        its attempts no longer covers the window.

        Returns:
            The new record, or None when there is no santa yet or a pending
            record already covers this window.
        """
        santa_id = await self.draws.find_santa_for(group_id, giftee_id)
        if santa_id is None:
            logger.warning(
                "No assignment for wishlist owner, skipping notification",
                group_id=group_id,
                giftee_id=giftee_id,
            )
            return None

        due_at = self.clock() + self.wishlist_delay
        if await self.repository.has_pending(
            group_id=group_id,
            recipient_id=santa_id,
            kind=NotificationKind.WISHLIST_UPDATED,
            due_before=due_at,
            max_attempts=self.max_attempts,
        ):
            logger.info(
                "Skipping duplicate wishlist notification", group_id=group_id, santa_id=santa_id
            )
            return None

        return await self.enqueue(
            NotificationKind.WISHLIST_UPDATED,
            santa_id,
            group_id,
            payload={"giftee_id": giftee_id},
            scheduled_at=due_at,
        )
