"""
Persistence for draw results.

The draw is written in one transaction: stamp the group, insert the
assignments, insert the DrawCompleted notifications. The stamp only applies
to a group that has not been drawn, so a concurrent second draw writes
nothing.
"""

from datetime import datetime
from decimal import Decimal

from secret_santa.db.helpers import (
    execute_many,
    execute_query,
    fetch_all,
    fetch_one,
    fetch_val,
)
from secret_santa.db.pool import get_db_transaction
from secret_santa.features.draw.domain import Assignment, GroupNotFoundError
from secret_santa.features.notifications.domain import NotificationRecord
from secret_santa.features.notifications.repository import (
    NotificationRepository,
    notification_repository,
)
from secret_santa.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class DrawRepository:
    """Draw state and assignments backed by Postgres."""

    def __init__(self, notifications: NotificationRepository = notification_repository):
        self.notifications = notifications

    async def is_drawn(self, group_id: str) -> bool:
        """
        True once the group has been drawn.

        Raises:
            GroupNotFoundError: no such group
        """
        query = "SELECT draw_completed_at IS NOT NULL AS drawn FROM groups WHERE id = %s"
        row = await fetch_one(query, (group_id,))
        if row is None:
            raise GroupNotFoundError(group_id=group_id)
        return bool(row["drawn"])

    async def save_draw(
        self,
        group_id: str,
        budget: Decimal,
        drawn_at: datetime,
        assignments: list[Assignment],
        notifications: list[NotificationRecord],
    ) -> bool:
        """
        Persist a completed draw atomically.

        Returns:
            False when the group was already drawn; nothing is written then.

        Raises:
            GroupNotFoundError: the group row is gone
        """
        stamp_query = """
            UPDATE groups
            SET budget = %s,
                draw_completed_at = %s,
                updated_at = %s
            WHERE id = %s AND draw_completed_at IS NULL
        """
        assignment_query = """
            INSERT INTO assignments (id, group_id, santa_user_id, recipient_user_id, assigned_at)
            VALUES (%s, %s, %s, %s, %s)
        """

        async with get_db_transaction() as conn:
            stamped = await execute_query(
                stamp_query, (budget, drawn_at, drawn_at, group_id), connection=conn
            )
            if not stamped:
                exists = await fetch_val(
                    "SELECT EXISTS (SELECT 1 FROM groups WHERE id = %s)",
                    (group_id,),
                    connection=conn,
                )
                if not exists:
                    raise GroupNotFoundError(group_id=group_id)
                logger.warning("Draw not saved, group already drawn", group_id=group_id)
                return False

            await execute_many(
                assignment_query,
                [
                    (a.id, a.group_id, a.santa_id, a.recipient_id, a.assigned_at)
                    for a in assignments
                ],
                connection=conn,
            )
            await self.notifications.insert_many(notifications, connection=conn)

        logger.info(
            "Draw saved",
            group_id=group_id,
            assignment_count=len(assignments),
            notification_count=len(notifications),
        )
        return True

    async def list_assignments(self, group_id: str) -> list[Assignment]:
        query = """
            SELECT id, group_id, santa_user_id, recipient_user_id, assigned_at
            FROM assignments
            WHERE group_id = %s
        """

        rows = await fetch_all(query, (group_id,))
        return [
            Assignment(
                id=str(row["id"]),
                group_id=str(row["group_id"]),
                santa_id=str(row["santa_user_id"]),
                recipient_id=str(row["recipient_user_id"]),
                assigned_at=row["assigned_at"],
            )
            for row in rows
        ]

    async def find_santa_for(self, group_id: str, recipient_id: str) -> str | None:
        query = """
            SELECT santa_user_id FROM assignments
            WHERE group_id = %s AND recipient_user_id = %s
        """

        santa_id = await fetch_val(query, (group_id, recipient_id))
        return str(santa_id) if santa_id is not None else None


draw_repository = DrawRepository()
