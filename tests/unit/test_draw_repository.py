"""
Tests for the Postgres draw repository with the query helpers patched out.
"""

import importlib
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from secret_santa.features.draw.domain import GroupNotFoundError
from secret_santa.features.draw.repository import DrawRepository

# The package re-exports an instance under the module's name
module = importlib.import_module("secret_santa.features.draw.repository.draw_repository")

DRAWN_AT = datetime(2025, 12, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def conn(monkeypatch):
    connection = MagicMock()

    @asynccontextmanager
    async def transaction():
        yield connection

    monkeypatch.setattr(module, "get_db_transaction", transaction)
    monkeypatch.setattr(module, "execute_many", AsyncMock())
    return connection


def _repository():
    notifications = MagicMock()
    notifications.insert_many = AsyncMock()
    return DrawRepository(notifications=notifications)


@pytest.mark.asyncio
async def test_is_drawn_raises_for_missing_group(monkeypatch):
    monkeypatch.setattr(module, "fetch_one", AsyncMock(return_value=None))

    with pytest.raises(GroupNotFoundError):
        await _repository().is_drawn("missing")


@pytest.mark.asyncio
@pytest.mark.parametrize("drawn", [True, False])
async def test_is_drawn_reads_stamp(monkeypatch, drawn):
    monkeypatch.setattr(module, "fetch_one", AsyncMock(return_value={"drawn": drawn}))

    assert await _repository().is_drawn("group-1") is drawn


@pytest.mark.asyncio
async def test_save_draw_for_missing_group_raises(monkeypatch, conn):
    monkeypatch.setattr(module, "execute_query", AsyncMock(return_value=0))
    monkeypatch.setattr(module, "fetch_val", AsyncMock(return_value=False))
    repository = _repository()

    with pytest.raises(GroupNotFoundError):
        await repository.save_draw("missing", Decimal("10.00"), DRAWN_AT, [], [])

    module.execute_many.assert_not_awaited()
    repository.notifications.insert_many.assert_not_awaited()


@pytest.mark.asyncio
async def test_save_draw_for_drawn_group_returns_false(monkeypatch, conn):
    monkeypatch.setattr(module, "execute_query", AsyncMock(return_value=0))
    monkeypatch.setattr(module, "fetch_val", AsyncMock(return_value=True))
    repository = _repository()

    saved = await repository.save_draw("group-1", Decimal("10.00"), DRAWN_AT, [], [])

    assert saved is False
    repository.notifications.insert_many.assert_not_awaited()


@pytest.mark.asyncio
async def test_save_draw_writes_everything_on_one_connection(monkeypatch, conn):
    monkeypatch.setattr(module, "execute_query", AsyncMock(return_value=1))
    repository = _repository()
    notifications = [MagicMock()]

    saved = await repository.save_draw("group-1", Decimal("10.00"), DRAWN_AT, [], notifications)

    assert saved is True
    assert module.execute_query.await_args.kwargs["connection"] is conn
    assert module.execute_many.await_args.kwargs["connection"] is conn
    repository.notifications.insert_many.assert_awaited_once_with(notifications, connection=conn)
