from __future__ import annotations

import logging

import pytest
from sqlalchemy import update

from kanban.db.models import BoardColumn, Card
from kanban.services import sync_service
from kanban.services.card_service import list_cards, move_card
from kanban.services.column_service import get_column
from kanban.services.sync_service import (
    attach_card,
    column_is_stale,
    detach_card,
    expected_card_ids,
    reconcile_board,
    reconcile_column,
)


def test_attach_and_detach_patch_the_cache() -> None:
    column = BoardColumn(title="Todo", position=0, card_ids=[1, 2, 3])

    detach_card(column, 2)
    assert column.card_ids == [1, 3]

    attach_card(column, 7, 1)
    assert column.card_ids == [1, 7, 3]

    attach_card(column, 9, 50)
    assert column.card_ids == [1, 7, 3, 9]

    attach_card(column, 1, 3)
    assert column.card_ids == [7, 3, 9, 1]


def test_expected_card_ids_follow_positions() -> None:
    cards = [Card(id=5, title="a", position=2), Card(id=3, title="b", position=0), Card(id=9, title="c", position=1)]

    assert expected_card_ids(cards) == [3, 9, 5]
    assert expected_card_ids([]) == []


def test_column_is_stale() -> None:
    column = BoardColumn(title="Todo", position=0, card_ids=[2, 1])
    cards = [Card(id=1, title="a", position=0), Card(id=2, title="b", position=1)]

    assert column_is_stale(column, cards)
    column.card_ids = [1, 2]
    assert not column_is_stale(column, cards)


@pytest.mark.asyncio
async def test_reconcile_rebuilds_cleared_cache(session_factory, make_board, fill_column) -> None:
    async with session_factory() as session:
        _, board, (todo, doing, _) = await make_board(session)
        cards = await fill_column(session, board, todo, ["a", "b"])
        todo.card_ids = []
        await session.commit()

        repaired = await reconcile_board(session, board.id)
        await session.commit()

        assert repaired == [todo.id]
        assert todo.card_ids == [card.id for card in cards]
        assert await reconcile_board(session, board.id) == []


@pytest.mark.asyncio
async def test_reconcile_closes_position_gaps(session_factory, make_board, fill_column) -> None:
    async with session_factory() as session:
        _, board, (todo, _, _) = await make_board(session)
        a, b, c = await fill_column(session, board, todo, ["a", "b", "c"])
        await session.commit()

    async with session_factory() as session:
        await session.execute(update(Card).where(Card.id == c.id).values(position=7))
        await session.execute(update(Card).where(Card.id == a.id).values(position=3))
        await session.commit()

    async with session_factory() as session:
        column = await get_column(session, board.id, todo.id)
        assert await reconcile_column(session, column)
        await session.commit()

    async with session_factory() as session:
        stored = await list_cards(session, todo.id)
        assert [(card.id, card.position) for card in stored] == [(b.id, 0), (a.id, 1), (c.id, 2)]
        assert (await get_column(session, board.id, todo.id)).card_ids == [b.id, a.id, c.id]


@pytest.mark.asyncio
async def test_failed_cache_patch_is_logged_and_recoverable(
    session_factory, make_board, fill_column, monkeypatch, caplog
) -> None:
    async with session_factory() as session:
        _, board, (todo, doing, _) = await make_board(session)
        card, _ = await fill_column(session, board, todo, ["a", "b"])
        await session.commit()

    def broken_attach(column, card_id, index):
        raise RuntimeError("cache unavailable")

    monkeypatch.setattr(sync_service, "attach_card", broken_attach)

    async with session_factory() as session:
        with caplog.at_level(logging.ERROR, logger="kanban.services.sync_service"):
            await move_card(session, board, card.id, from_column_id=todo.id, to_column_id=doing.id, to_index=0)
        await session.commit()

    assert any("Failed to patch column card cache" in record.getMessage() for record in caplog.records)

    monkeypatch.undo()

    async with session_factory() as session:
        assert [c.title for c in await list_cards(session, doing.id)] == ["a"]
        assert (await get_column(session, board.id, doing.id)).card_ids == []

        repaired = await reconcile_board(session, board.id)
        await session.commit()

        assert set(repaired) == {todo.id, doing.id}
        assert (await get_column(session, board.id, doing.id)).card_ids == [card.id]
