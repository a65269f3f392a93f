"""
Domain models for the notification queue.

NotificationRecord mirrors one email_notifications row; the delivery
processor is the only component that mutates it after insertion.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

LAST_ERROR_MAX_LENGTH = 500


class NotificationKind(str, Enum):
    """Message types; each maps to one call on the mailer."""

    DRAW_COMPLETED = "draw_completed"
    WISHLIST_UPDATED = "wishlist_updated"


@dataclass(slots=True)
class NotificationRecord:
    """One obligation to deliver one message to one recipient."""

    id: str
    kind: NotificationKind
    recipient_id: str
    group_id: str
    scheduled_at: datetime
    payload: dict[str, Any] = field(default_factory=dict)
    sent_at: datetime | None = None
    first_attempt_at: datetime | None = None
    last_attempt_at: datetime | None = None
    attempt_count: int = 0
    last_error: str | None = None

    @classmethod
    def pending(
        cls,
        kind: NotificationKind,
        recipient_id: str,
        group_id: str,
        scheduled_at: datetime,
        payload: dict[str, Any] | None = None,
    ) -> "NotificationRecord":
        """Build a fresh record that has never been attempted."""
        return cls(
            id=str(uuid.uuid4()),
            kind=kind,
            recipient_id=recipient_id,
            group_id=group_id,
            scheduled_at=scheduled_at,
            payload=dict(payload or {}),
        )

    @property
    def is_delivered(self) -> bool:
        return self.sent_at is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "recipient_id": self.recipient_id,
            "group_id": self.group_id,
            "payload": self.payload,
            "scheduled_at": self.scheduled_at.isoformat(),
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
            "first_attempt_at": (
                self.first_attempt_at.isoformat() if self.first_attempt_at else None
            ),
            "last_attempt_at": self.last_attempt_at.isoformat() if self.last_attempt_at else None,
            "attempt_count": self.attempt_count,
            "last_error": self.last_error,
        }


@dataclass(frozen=True, slots=True)
class RecipientContact:
    """What the mailer needs to address a person within a group."""

    user_id: str
    email: str
    display_name: str
    group_name: str


@dataclass(frozen=True, slots=True)
class DeliveryResult:
    """Declared outcome of one mailer call."""

    success: bool
    error_message: str | None = None
    error_code: str | None = None

    @classmethod
    def ok(cls) -> "DeliveryResult":
        return cls(success=True)

    @classmethod
    def failure(cls, message: str, code: str | None = None) -> "DeliveryResult":
        return cls(success=False, error_message=message, error_code=code)

    def describe(self) -> str:
        message = self.error_message or "unknown delivery failure"
        text = f"[{self.error_code}] {message}" if self.error_code else message
        return text[:LAST_ERROR_MAX_LENGTH]


@dataclass(slots=True)
class ProcessingSummary:
    """Counts for one processing pass, handed to completion listeners."""

    started_at: datetime
    finished_at: datetime | None = None
    selected: int = 0
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    permanently_failed: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "selected": self.selected,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "permanently_failed": self.permanently_failed,
        }
