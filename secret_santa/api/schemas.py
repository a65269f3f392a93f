from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class ExclusionPairModel(BaseModel):
    user_id_1: str = Field(..., min_length=1)
    user_id_2: str = Field(..., min_length=1)


class DrawRequestBody(BaseModel):
    """Draw trigger payload for one group."""

    participant_ids: list[str] = Field(default_factory=list)
    exclusion_pairs: list[ExclusionPairModel] = Field(default_factory=list)
    budget: Decimal | None = Field(None, description="Final budget for the gift exchange")


class DrawResponse(BaseModel):
    group_id: str
    budget: Decimal
    draw_completed: bool = True
    draw_completed_at: datetime
    participant_count: int
    assignments_created: int
    email_notifications_scheduled: int


class DrawValidationResponse(BaseModel):
    group_id: str
    is_valid: bool
    can_draw: bool
    participant_count: int
    exclusion_rule_count: int
    errors: list[str]
    warnings: list[str]


class WishlistUpdatedBody(BaseModel):
    giftee_id: str = Field(..., min_length=1)


class NotificationScheduledResponse(BaseModel):
    scheduled: bool
    notification_id: str | None = None
    scheduled_at: datetime | None = None


class ProcessingSummaryResponse(BaseModel):
    started_at: datetime
    finished_at: datetime | None
    selected: int
    attempted: int
    succeeded: int
    failed: int
    permanently_failed: int


class NotificationResponse(BaseModel):
    id: str
    kind: str
    recipient_id: str
    group_id: str
    payload: dict
    scheduled_at: datetime
    sent_at: datetime | None
    first_attempt_at: datetime | None
    last_attempt_at: datetime | None
    attempt_count: int
    last_error: str | None
