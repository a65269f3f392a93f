import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from secret_santa.features.notifications.domain import ProcessingSummary
from secret_santa.features.notifications.jobs import delivery_job
from secret_santa.features.notifications.jobs.delivery_job import NotificationDeliveryScheduler
from secret_santa.features.notifications.services import NotificationDeliveryProcessor
from tests.fakes import FakeMailer


def _processor(notification_repo, contacts, clock):
    return NotificationDeliveryProcessor(notification_repo, FakeMailer(), contacts, clock=clock)


def _mock_processor(side_effect):
    processor = MagicMock()
    processor.is_processing = False
    processor.process_pending_batch = AsyncMock(side_effect=side_effect)
    return processor


async def _wait_until(predicate, timeout=1.0):
    async def poll():
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(poll(), timeout=timeout)


def test_disabled_scheduler_does_not_start(notification_repo, contacts, clock):
    scheduler = NotificationDeliveryScheduler(
        _processor(notification_repo, contacts, clock), enabled=False
    )

    assert scheduler.start() is None
    assert scheduler.is_running is False
    assert scheduler.get_job_status()["enabled"] is False


@pytest.mark.asyncio
async def test_run_once_records_summary(notification_repo, contacts, clock):
    notification_repo.add(recipient_id="alice")
    scheduler = NotificationDeliveryScheduler(_processor(notification_repo, contacts, clock))

    summary = await scheduler.run_once()

    assert summary.succeeded == 1
    assert scheduler.last_summary is summary
    assert scheduler.last_run_time is not None

    status = scheduler.get_job_status()
    assert status["job_name"] == "notification_delivery"
    assert status["last_run_summary"]["succeeded"] == 1
    assert status["is_processing"] is False


@pytest.mark.asyncio
async def test_started_scheduler_delivers_and_stops(notification_repo, contacts, clock):
    record = notification_repo.add(recipient_id="bob")
    scheduler = NotificationDeliveryScheduler(
        _processor(notification_repo, contacts, clock), interval_seconds=0.01
    )

    task = scheduler.start()
    assert task is not None
    assert scheduler.start() is task

    await _wait_until(lambda: notification_repo.rows[record.id].sent_at is not None)
    await scheduler.stop()

    assert scheduler.is_running is False
    assert task.cancelled()
    assert notification_repo.rows[record.id].attempt_count == 1


@pytest.mark.asyncio
async def test_stop_without_start_is_noop(notification_repo, contacts, clock):
    scheduler = NotificationDeliveryScheduler(_processor(notification_repo, contacts, clock))

    await scheduler.stop()

    assert scheduler.is_running is False


@pytest.mark.asyncio
async def test_batch_error_is_logged_and_retried(monkeypatch):
    monkeypatch.setattr(delivery_job, "ERROR_BACKOFF_SECONDS", 0)
    calls = []

    async def flaky():
        calls.append(True)
        if len(calls) == 1:
            raise RuntimeError("database unavailable")
        return ProcessingSummary(started_at=datetime.now(UTC))

    processor = _mock_processor(flaky)
    scheduler = NotificationDeliveryScheduler(processor, interval_seconds=0.01)

    scheduler.start()
    await _wait_until(lambda: len(calls) >= 2)
    await scheduler.stop()

    assert scheduler.last_error is None
    assert scheduler.last_summary is not None


@pytest.mark.asyncio
async def test_persistent_error_makes_job_unhealthy(monkeypatch):
    monkeypatch.setattr(delivery_job, "ERROR_BACKOFF_SECONDS", 0)
    processor = _mock_processor(RuntimeError("database unavailable"))
    scheduler = NotificationDeliveryScheduler(processor, interval_seconds=0.01)

    scheduler.start()
    await _wait_until(lambda: scheduler.last_error is not None)
    health = scheduler.health_check()
    await scheduler.stop()

    assert health["healthy"] is False
    assert health["last_error"] == "database unavailable"


def test_health_check_flags_overdue_job(notification_repo, contacts, clock):
    scheduler = NotificationDeliveryScheduler(
        _processor(notification_repo, contacts, clock), interval_seconds=30
    )
    scheduler.last_run_time = datetime.now(UTC) - timedelta(seconds=90)

    health = scheduler.health_check()

    assert health["healthy"] is False
    assert health["is_overdue"] is True
    assert "overdue" in health["warning"]


def test_health_check_for_recent_run(notification_repo, contacts, clock):
    scheduler = NotificationDeliveryScheduler(
        _processor(notification_repo, contacts, clock), interval_seconds=30
    )
    scheduler.last_run_time = datetime.now(UTC) - timedelta(seconds=10)

    health = scheduler.health_check()

    assert health["healthy"] is True
    assert health["is_overdue"] is False
    assert "warning" not in health


def test_build_delivery_scheduler_reads_settings(monkeypatch):
    monkeypatch.setattr(delivery_job.settings, "NOTIFICATION_WORKER_ENABLED", False)
    monkeypatch.setattr(delivery_job.settings, "NOTIFICATION_POLL_INTERVAL_SECONDS", 45)
    monkeypatch.setattr(delivery_job.settings, "NOTIFICATION_MAX_ATTEMPTS", 3)
    monkeypatch.setattr(delivery_job.settings, "NOTIFICATION_BATCH_SIZE", 10)

    scheduler = delivery_job.build_delivery_scheduler()

    assert scheduler.enabled is False
    assert scheduler.interval_seconds == 45
    assert scheduler.processor.policy.max_attempts == 3
    assert scheduler.processor.batch_size == 10


def _fake_pool():
    pool = MagicMock()
    pool.initialize = AsyncMock()
    pool.close = AsyncMock()
    return pool


@pytest.mark.asyncio
async def test_worker_entry_point_exits_when_disabled(monkeypatch):
    pool = _fake_pool()
    run_forever = AsyncMock()
    monkeypatch.setattr(delivery_job, "db_pool", pool)
    monkeypatch.setattr(NotificationDeliveryScheduler, "run_forever", run_forever)
    monkeypatch.setattr(delivery_job.settings, "NOTIFICATION_WORKER_ENABLED", False)

    await delivery_job.start_notification_delivery_scheduler()

    run_forever.assert_not_awaited()
    pool.initialize.assert_not_awaited()


@pytest.mark.asyncio
async def test_worker_entry_point_owns_pool_around_loop(monkeypatch):
    pool = _fake_pool()
    run_forever = AsyncMock(side_effect=asyncio.CancelledError)
    monkeypatch.setattr(delivery_job, "db_pool", pool)
    monkeypatch.setattr(NotificationDeliveryScheduler, "run_forever", run_forever)
    monkeypatch.setattr(delivery_job.settings, "NOTIFICATION_WORKER_ENABLED", True)

    with pytest.raises(asyncio.CancelledError):
        await delivery_job.start_notification_delivery_scheduler()

    pool.initialize.assert_awaited_once()
    run_forever.assert_awaited_once()
    pool.close.assert_awaited_once()
