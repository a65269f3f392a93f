from .notification_repository import (
    NotificationRepository,
    NotificationRepositoryError,
    PostgresContactDirectory,
    contact_directory,
    notification_repository,
)

__all__ = [
    "NotificationRepository",
    "NotificationRepositoryError",
    "PostgresContactDirectory",
    "contact_directory",
    "notification_repository",
]
