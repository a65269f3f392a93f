"""
Domain subpackage for notifications.
"""

from .models import (
    DeliveryResult,
    NotificationKind,
    NotificationRecord,
    ProcessingSummary,
    RecipientContact,
)

__all__ = [
    "DeliveryResult",
    "NotificationKind",
    "NotificationRecord",
    "ProcessingSummary",
    "RecipientContact",
]
