"""
Mail delivery capability.

The processor depends only on the Mailer protocol; rendering and sending
belong to the implementation. Implementations may report failure either by
returning DeliveryResult.failure or by raising.
"""

from typing import Protocol

from secret_santa.features.notifications.domain import DeliveryResult, RecipientContact
from secret_santa.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class Mailer(Protocol):
    async def send_draw_completed(
        self, contact: RecipientContact, *, group_id: str
    ) -> DeliveryResult: ...

    async def send_wishlist_updated(
        self, contact: RecipientContact, *, group_id: str, giftee_name: str
    ) -> DeliveryResult: ...


class ContactDirectory(Protocol):
    async def get_contact(self, user_id: str, group_id: str) -> RecipientContact | None: ...


class LoggingMailer:
    """Mailer for local runs: records the send in the log and reports success."""

    async def send_draw_completed(self, contact: RecipientContact, *, group_id: str) -> DeliveryResult:
        logger.info(
            "Draw completed email sent",
            recipient_id=contact.user_id,
            group_id=group_id,
            group_name=contact.group_name,
        )
        return DeliveryResult.ok()

    async def send_wishlist_updated(
        self, contact: RecipientContact, *, group_id: str, giftee_name: str
    ) -> DeliveryResult:
        logger.info(
            "Wishlist updated email sent",
            recipient_id=contact.user_id,
            group_id=group_id,
            group_name=contact.group_name,
        )
        return DeliveryResult.ok()
