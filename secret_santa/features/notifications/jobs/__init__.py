from .delivery_job import (
    NotificationDeliveryScheduler,
    build_delivery_scheduler,
    start_notification_delivery_scheduler,
)

__all__ = [
    "NotificationDeliveryScheduler",
    "build_delivery_scheduler",
    "start_notification_delivery_scheduler",
]
