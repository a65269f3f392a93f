"""
router.py
---------
Purpose:
    HTTP surface for the draw engine and the notification queue.

Usage:
    1. POST /groups/{group_id}/draw - Run the one-shot draw
    2. POST /groups/{group_id}/draw/validation - Dry-run the draw
    3. POST /groups/{group_id}/wishlist-updated - Notify the giftee's santa
    4. POST /admin/notifications/process - Run one delivery pass now
    5. GET /admin/notifications/{notification_id} - Inspect a queued record
"""

from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, status

from secret_santa.api.schemas import (
    DrawRequestBody,
    DrawResponse,
    DrawValidationResponse,
    NotificationResponse,
    NotificationScheduledResponse,
    ProcessingSummaryResponse,
    WishlistUpdatedBody,
)
from secret_santa.config import settings
from secret_santa.features.draw.domain import (
    AlreadyDrawnError,
    DrawError,
    DrawRequest,
    ExclusionPair,
    GroupNotFoundError,
    InfeasibleExclusionsError,
    InsufficientParticipantsError,
)
from secret_santa.features.draw.repository import draw_repository
from secret_santa.features.draw.services import DrawService
from secret_santa.features.notifications.repository import (
    NotificationRepository,
    notification_repository,
)
from secret_santa.features.notifications.services import (
    NotificationDeliveryProcessor,
    NotificationService,
)
from secret_santa.infrastructure.observability.logging import get_logger

router = APIRouter(tags=["draw"])
admin_router = APIRouter(prefix="/admin/notifications", tags=["admin"])
logger = get_logger(__name__)

ERROR_STATUS = {
    AlreadyDrawnError.code: status.HTTP_409_CONFLICT,
    GroupNotFoundError.code: status.HTTP_404_NOT_FOUND,
    InfeasibleExclusionsError.code: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InsufficientParticipantsError.code: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def get_draw_service() -> DrawService:
    return DrawService(draw_repository, max_shuffle_attempts=settings.DRAW_MAX_SHUFFLE_ATTEMPTS)


def get_notification_service() -> NotificationService:
    return NotificationService(
        notification_repository,
        draw_repository,
        wishlist_delay=timedelta(minutes=settings.WISHLIST_NOTIFICATION_DELAY_MINUTES),
        max_attempts=settings.NOTIFICATION_MAX_ATTEMPTS,
    )


def get_notification_repository() -> NotificationRepository:
    return notification_repository


def get_delivery_processor(request: Request) -> NotificationDeliveryProcessor:
    return request.app.state.delivery_processor


def _to_domain(group_id: str, body: DrawRequestBody) -> DrawRequest:
    return DrawRequest(
        group_id=group_id,
        participant_ids=list(body.participant_ids),
        exclusion_pairs=[ExclusionPair(p.user_id_1, p.user_id_2) for p in body.exclusion_pairs],
        budget=body.budget,
    )


def _draw_error_response(error: DrawError) -> HTTPException:
    return HTTPException(
        status_code=ERROR_STATUS.get(error.code, status.HTTP_400_BAD_REQUEST),
        detail={"error": error.code, "message": error.message},
    )


@router.post("/groups/{group_id}/draw", response_model=DrawResponse)
async def execute_draw(
    group_id: str,
    body: DrawRequestBody,
    service: DrawService = Depends(get_draw_service),
):
    """
    Run the draw for a group.

    Raises:
        400: Invalid budget or malformed participants/exclusions
        404: No such group
        409: Draw already completed
        422: Too few participants, or exclusions leave no valid cycle
    """
    try:
        outcome = await service.execute_draw(_to_domain(group_id, body))
    except DrawError as e:
        raise _draw_error_response(e) from e

    return DrawResponse(
        group_id=outcome.group_id,
        budget=outcome.budget,
        draw_completed_at=outcome.drawn_at,
        participant_count=outcome.participant_count,
        assignments_created=len(outcome.assignments),
        email_notifications_scheduled=outcome.notifications_scheduled,
    )


@router.post("/groups/{group_id}/draw/validation", response_model=DrawValidationResponse)
async def validate_draw(
    group_id: str,
    body: DrawRequestBody,
    service: DrawService = Depends(get_draw_service),
):
    """Report whether the draw could run with the given participants and exclusions."""
    try:
        validation = await service.validate_draw(_to_domain(group_id, body))
    except DrawError as e:
        raise _draw_error_response(e) from e

    return DrawValidationResponse(
        group_id=validation.group_id,
        is_valid=validation.is_valid,
        can_draw=validation.can_draw,
        participant_count=validation.participant_count,
        exclusion_rule_count=validation.exclusion_rule_count,
        errors=validation.errors,
        warnings=validation.warnings,
    )


@router.post("/groups/{group_id}/wishlist-updated", response_model=NotificationScheduledResponse)
async def wishlist_updated(
    group_id: str,
    body: WishlistUpdatedBody,
    service: NotificationService = Depends(get_notification_service),
):
    """Schedule the debounced wishlist email for the giftee's santa."""
    record = await service.schedule_wishlist_update(group_id, body.giftee_id)
    if record is None:
        return NotificationScheduledResponse(scheduled=False)
    return NotificationScheduledResponse(
        scheduled=True, notification_id=record.id, scheduled_at=record.scheduled_at
    )


@admin_router.post("/process", response_model=ProcessingSummaryResponse)
async def process_notifications(
    processor: NotificationDeliveryProcessor = Depends(get_delivery_processor),
):
    """Run one delivery pass synchronously and return its summary."""
    summary = await processor.process_pending_batch()
    logger.info("Manual notification pass completed", **summary.to_dict())
    return ProcessingSummaryResponse(**summary.to_dict())


@admin_router.get("/{notification_id}", response_model=NotificationResponse)
async def get_notification(
    notification_id: str,
    repository: NotificationRepository = Depends(get_notification_repository),
):
    """Inspect attempt count and last error of a queued record."""
    record = await repository.get(notification_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return NotificationResponse(**record.to_dict())
