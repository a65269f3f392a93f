"""
Persistence for the notification queue (email_notifications table).

Producers only insert; the delivery processor reads due records and writes
back attempt bookkeeping. Selection is a plain snapshot query, which is safe
for one worker process. Multiple workers would need a claim/lease update
here instead.
"""

from datetime import datetime

import psycopg
from psycopg.types.json import Jsonb

from secret_santa.db.helpers import (
    DatabaseError,
    execute_many,
    execute_query,
    fetch_all,
    fetch_one,
    fetch_val,
)
from secret_santa.features.notifications.domain import (
    NotificationKind,
    NotificationRecord,
    RecipientContact,
)
from secret_santa.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class NotificationRepositoryError(DatabaseError):
    """More specific exception for queue persistence failures."""


class NotificationRepository:
    """Queue access backed by Postgres."""

    SELECT_COLUMNS = """
        id, kind, recipient_user_id, group_id, payload, scheduled_at, sent_at,
        first_attempt_at, last_attempt_at, attempt_count, last_error
    """

    INSERT_QUERY = """
        INSERT INTO email_notifications (
            id, kind, recipient_user_id, group_id, payload, scheduled_at, sent_at,
            first_attempt_at, last_attempt_at, attempt_count, last_error
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
    """

    @staticmethod
    def _row_to_record(row: dict | None) -> NotificationRecord | None:
        if not row:
            return None

        return NotificationRecord(
            id=str(row["id"]),
            kind=NotificationKind(row["kind"]),
            recipient_id=str(row["recipient_user_id"]),
            group_id=str(row["group_id"]),
            payload=row.get("payload") or {},
            scheduled_at=row["scheduled_at"],
            sent_at=row.get("sent_at"),
            first_attempt_at=row.get("first_attempt_at"),
            last_attempt_at=row.get("last_attempt_at"),
            attempt_count=row["attempt_count"],
            last_error=row.get("last_error"),
        )

    @staticmethod
    def _insert_params(record: NotificationRecord) -> tuple:
        return (
            record.id,
            record.kind.value,
            record.recipient_id,
            record.group_id,
            Jsonb(record.payload),
            record.scheduled_at,
            record.sent_at,
            record.first_attempt_at,
            record.last_attempt_at,
            record.attempt_count,
            record.last_error,
        )

    async def insert(
        self, record: NotificationRecord, *, connection: psycopg.AsyncConnection | None = None
    ) -> None:
        """Insert one pending record."""
        await execute_query(self.INSERT_QUERY, self._insert_params(record), connection=connection)
        logger.debug(
            "Notification enqueued",
            notification_id=record.id,
            kind=record.kind.value,
            scheduled_at=record.scheduled_at.isoformat(),
        )

    async def insert_many(
        self, records: list[NotificationRecord], *, connection: psycopg.AsyncConnection
    ) -> None:
        """Insert records on a caller-owned connection (inside its transaction)."""
        await execute_many(
            self.INSERT_QUERY, [self._insert_params(record) for record in records], connection=connection
        )

    async def fetch_due(
        self, now: datetime, *, max_attempts: int, limit: int
    ) -> list[NotificationRecord]:
        """Unsent, due, not exhausted; oldest scheduled first."""
        query = f"""
            SELECT {self.SELECT_COLUMNS}
            FROM email_notifications
            WHERE sent_at IS NULL
              AND scheduled_at <= %s
              AND attempt_count < %s
            ORDER BY scheduled_at ASC
            LIMIT %s
        """

        rows = await fetch_all(query, (now, max_attempts, limit))
        return [self._row_to_record(row) for row in rows]

    async def save_attempt(self, record: NotificationRecord) -> None:
        """Write back the bookkeeping of one delivery attempt."""
        query = """
            UPDATE email_notifications
            SET scheduled_at = %s,
                sent_at = %s,
                first_attempt_at = %s,
                last_attempt_at = %s,
                attempt_count = %s,
                last_error = %s
            WHERE id = %s
        """

        affected = await execute_query(
            query,
            (
                record.scheduled_at,
                record.sent_at,
                record.first_attempt_at,
                record.last_attempt_at,
                record.attempt_count,
                record.last_error,
                record.id,
            ),
        )
        if not affected:
            raise NotificationRepositoryError(
                f"Notification {record.id} disappeared during delivery", operation="save_attempt"
            )

    async def get(self, notification_id: str) -> NotificationRecord | None:
        query = f"SELECT {self.SELECT_COLUMNS} FROM email_notifications WHERE id = %s"
        return self._row_to_record(await fetch_one(query, (notification_id,)))

    async def has_pending(
        self,
        *,
        group_id: str,
        recipient_id: str,
        kind: NotificationKind,
        due_before: datetime,
        max_attempts: int,
    ) -> bool:
        """True when a live record of this kind is already due before the cutoff."""
        query = """
            SELECT EXISTS (
                SELECT 1 FROM email_notifications
                WHERE group_id = %s
                  AND recipient_user_id = %s
                  AND kind = %s
                  AND sent_at IS NULL
                  AND attempt_count < %s
                  AND scheduled_at <= %s
            )
        """

        return bool(
            await fetch_val(
                query, (group_id, recipient_id, kind.value, max_attempts, due_before)
            )
        )


class PostgresContactDirectory:
    """Resolves a group member's email and display name."""

    async def get_contact(self, user_id: str, group_id: str) -> RecipientContact | None:
        query = """
            SELECT u.id, u.email, u.first_name, u.last_name, g.name AS group_name
            FROM users u
            JOIN group_participants gp ON gp.user_id = u.id
            JOIN groups g ON g.id = gp.group_id
            WHERE u.id = %s AND g.id = %s
        """

        row = await fetch_one(query, (user_id, group_id))
        if not row or not row.get("email"):
            return None

        display_name = " ".join(
            part for part in (row.get("first_name"), row.get("last_name")) if part
        )
        return RecipientContact(
            user_id=str(row["id"]),
            email=row["email"],
            display_name=display_name or row["email"],
            group_name=row["group_name"],
        )


notification_repository = NotificationRepository()
contact_directory = PostgresContactDirectory()
