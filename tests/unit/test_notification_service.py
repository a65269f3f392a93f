from datetime import timedelta

import pytest

from secret_santa.features.draw.domain import Assignment
from secret_santa.features.notifications.domain import NotificationKind
from secret_santa.features.notifications.services import NotificationService


def _assign(draw_repo, clock, santa_id, recipient_id, group_id="group-1"):
    draw_repo.assignments.append(
        Assignment(
            id=f"{santa_id}-{recipient_id}",
            group_id=group_id,
            santa_id=santa_id,
            recipient_id=recipient_id,
            assigned_at=clock.now,
        )
    )


def _service(notification_repo, draw_repo, clock):
    return NotificationService(
        notification_repo, draw_repo, wishlist_delay=timedelta(hours=1), clock=clock
    )


@pytest.mark.asyncio
async def test_enqueue_defaults_to_now(notification_repo, draw_repo, clock):
    record = await _service(notification_repo, draw_repo, clock).enqueue(
        NotificationKind.DRAW_COMPLETED, "alice", "group-1"
    )

    stored = notification_repo.rows[record.id]
    assert stored.scheduled_at == clock.now
    assert stored.sent_at is None
    assert stored.attempt_count == 0
    assert stored.first_attempt_at is None and stored.last_attempt_at is None
    assert stored.last_error is None


@pytest.mark.asyncio
async def test_enqueue_keeps_future_schedule_and_payload(notification_repo, draw_repo, clock):
    later = clock.now + timedelta(days=1)

    record = await _service(notification_repo, draw_repo, clock).enqueue(
        NotificationKind.WISHLIST_UPDATED,
        "alice",
        "group-1",
        payload={"giftee_id": "bob"},
        scheduled_at=later,
    )

    assert notification_repo.rows[record.id].scheduled_at == later
    assert notification_repo.rows[record.id].payload == {"giftee_id": "bob"}


@pytest.mark.asyncio
async def test_wishlist_update_notifies_santa_after_delay(notification_repo, draw_repo, clock):
    _assign(draw_repo, clock, santa_id="alice", recipient_id="bob")

    record = await _service(notification_repo, draw_repo, clock).schedule_wishlist_update(
        "group-1", "bob"
    )

    assert record.recipient_id == "alice"
    assert record.kind == NotificationKind.WISHLIST_UPDATED
    assert record.payload == {"giftee_id": "bob"}
    assert record.scheduled_at == clock.now + timedelta(hours=1)


@pytest.mark.asyncio
async def test_repeated_wishlist_edits_are_debounced(notification_repo, draw_repo, clock):
    _assign(draw_repo, clock, santa_id="alice", recipient_id="bob")
    service = _service(notification_repo, draw_repo, clock)

    first = await service.schedule_wishlist_update("group-1", "bob")
    clock.advance(minutes=10)
    second = await service.schedule_wishlist_update("group-1", "bob")

    assert first is not None
    assert second is None
    assert len(notification_repo.rows) == 1


@pytest.mark.asyncio
async def test_wishlist_edit_after_delivery_schedules_again(notification_repo, draw_repo, clock):
    _assign(draw_repo, clock, santa_id="alice", recipient_id="bob")
    service = _service(notification_repo, draw_repo, clock)

    first = await service.schedule_wishlist_update("group-1", "bob")
    notification_repo.rows[first.id].sent_at = clock.advance(hours=1)
    second = await service.schedule_wishlist_update("group-1", "bob")

    assert second is not None
    assert len(notification_repo.rows) == 2


@pytest.mark.asyncio
async def test_wishlist_update_before_draw_is_skipped(notification_repo, draw_repo, clock):
    result = await _service(notification_repo, draw_repo, clock).schedule_wishlist_update(
        "group-1", "bob"
    )

    assert result is None
    assert notification_repo.rows == {}


@pytest.mark.asyncio
async def test_exhausted_wishlist_record_does_not_block_new_one(notification_repo, draw_repo, clock):
    _assign(draw_repo, clock, santa_id="alice", recipient_id="bob")
    service = NotificationService(
        notification_repo, draw_repo, wishlist_delay=timedelta(hours=1), max_attempts=2, clock=clock
    )

    first = await service.schedule_wishlist_update("group-1", "bob")
    notification_repo.rows[first.id].attempt_count = 2
    second = await service.schedule_wishlist_update("group-1", "bob")

    assert second is not None
    assert second.id != first.id
