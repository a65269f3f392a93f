"""
Service layer for notifications.
"""

from .delivery_processor import NotificationDeliveryProcessor
from .mailer import ContactDirectory, LoggingMailer, Mailer
from .notification_service import NotificationService

__all__ = [
    "ContactDirectory",
    "LoggingMailer",
    "Mailer",
    "NotificationDeliveryProcessor",
    "NotificationService",
]
