from __future__ import annotations

import pytest

from kanban.errors import IndexOutOfRangeError, NotFoundError, ValidationError
from kanban.services.board_service import add_member
from kanban.services.card_service import (
    add_card,
    delete_card,
    list_cards,
    move_card,
    reorder_cards_in_column,
    update_card,
)
from kanban.services.column_service import get_column
from kanban.services.user_service import get_or_create_user


async def _layout(session, column_id: int) -> list[tuple[str, int]]:
    return [(card.title, card.position) for card in await list_cards(session, column_id)]


async def _cache_titles(session, board_id: int, column_id: int) -> list[str]:
    column = await get_column(session, board_id, column_id)
    titles = {card.id: card.title for card in await list_cards(session, column_id)}
    return [titles.get(card_id, f"?{card_id}") for card_id in column.card_ids]


@pytest.mark.asyncio
async def test_add_card_appends_and_updates_cache(session_factory, make_board, fill_column) -> None:
    async with session_factory() as session:
        _, board, (todo, _, _) = await make_board(session)
        cards = await fill_column(session, board, todo, ["one", "two", "three"])
        await session.commit()

    assert [card.position for card in cards] == [0, 1, 2]

    async with session_factory() as session:
        assert await _layout(session, todo.id) == [("one", 0), ("two", 1), ("three", 2)]
        assert await _cache_titles(session, board.id, todo.id) == ["one", "two", "three"]


@pytest.mark.asyncio
async def test_add_card_validation(session_factory, make_board) -> None:
    async with session_factory() as session:
        _, board, (todo, _, _) = await make_board(session)

        with pytest.raises(ValidationError):
            await add_card(session, board, todo.id, title=None)
        with pytest.raises(ValidationError):
            await add_card(session, board, todo.id, title="   ")
        with pytest.raises(NotFoundError):
            await add_card(session, board, 4242, title="Nowhere")


@pytest.mark.asyncio
async def test_add_card_assignee_must_belong_to_board(session_factory, make_board) -> None:
    async with session_factory() as session:
        owner, board, (todo, _, _) = await make_board(session)
        outsider = await get_or_create_user(session, external_id="ext-outsider", username="outsider")
        member = await get_or_create_user(session, external_id="ext-member", username="member")
        await add_member(session, board, "member")

        with pytest.raises(ValidationError):
            await add_card(session, board, todo.id, title="Nope", assigned_to=outsider.id)

        assigned = await add_card(session, board, todo.id, title="Yes", assigned_to=member.id)
        mine = await add_card(session, board, todo.id, title="Mine", assigned_to=owner.id)

    assert assigned.assigned_to == member.id
    assert mine.assigned_to == owner.id


@pytest.mark.asyncio
async def test_reorder_cards_in_column(session_factory, make_board, fill_column) -> None:
    async with session_factory() as session:
        _, board, (todo, _, _) = await make_board(session)
        a, b, c = await fill_column(session, board, todo, ["a", "b", "c"])
        result = await reorder_cards_in_column(session, board, todo.id, [c.id, a.id, b.id])
        await session.commit()

    assert [card.title for card in result] == ["c", "a", "b"]

    async with session_factory() as session:
        assert await _layout(session, todo.id) == [("c", 0), ("a", 1), ("b", 2)]
        assert await _cache_titles(session, board.id, todo.id) == ["c", "a", "b"]


@pytest.mark.asyncio
async def test_reorder_cards_rejects_bad_lists(session_factory, make_board, fill_column) -> None:
    async with session_factory() as session:
        _, board, (todo, doing, _) = await make_board(session)
        a, b, _ = await fill_column(session, board, todo, ["a", "b", "c"])
        (other,) = await fill_column(session, board, doing, ["other"])
        await session.commit()

        with pytest.raises(ValidationError):
            await reorder_cards_in_column(session, board, todo.id, [])
        with pytest.raises(ValidationError):
            await reorder_cards_in_column(session, board, todo.id, [b.id, a.id])
        with pytest.raises(ValidationError):
            await reorder_cards_in_column(session, board, todo.id, [b.id, a.id, other.id])

        assert await _layout(session, todo.id) == [("a", 0), ("b", 1), ("c", 2)]


@pytest.mark.asyncio
async def test_move_card_within_column(session_factory, make_board, fill_column) -> None:
    async with session_factory() as session:
        _, board, (todo, _, _) = await make_board(session)
        a, _, _, _ = await fill_column(session, board, todo, ["a", "b", "c", "d"])
        moved = await move_card(session, board, a.id, from_column_id=todo.id, to_column_id=todo.id, to_index=2)
        await session.commit()

    assert moved.position == 2

    async with session_factory() as session:
        assert await _layout(session, todo.id) == [("b", 0), ("c", 1), ("a", 2), ("d", 3)]
        assert await _cache_titles(session, board.id, todo.id) == ["b", "c", "a", "d"]


@pytest.mark.asyncio
async def test_move_card_to_its_own_index_is_noop(session_factory, make_board, fill_column) -> None:
    async with session_factory() as session:
        _, board, (todo, _, _) = await make_board(session)
        _, b, _ = await fill_column(session, board, todo, ["a", "b", "c"])
        moved = await move_card(session, board, b.id, from_column_id=todo.id, to_column_id=todo.id, to_index=1)
        await session.commit()

        assert moved.position == 1
        assert await _layout(session, todo.id) == [("a", 0), ("b", 1), ("c", 2)]


@pytest.mark.asyncio
async def test_move_card_within_column_index_bounds(session_factory, make_board, fill_column) -> None:
    async with session_factory() as session:
        _, board, (todo, _, _) = await make_board(session)
        a, _, _ = await fill_column(session, board, todo, ["a", "b", "c"])

        with pytest.raises(IndexOutOfRangeError):
            await move_card(session, board, a.id, from_column_id=todo.id, to_column_id=todo.id, to_index=3)


@pytest.mark.asyncio
async def test_move_card_across_columns(session_factory, make_board, fill_column) -> None:
    async with session_factory() as session:
        _, board, (col_a, col_b, _) = await make_board(session)
        _, a1, _ = await fill_column(session, board, col_a, ["a0", "a1", "a2"])
        await fill_column(session, board, col_b, ["b0", "b1"])
        await session.commit()

        moved = await move_card(session, board, a1.id, from_column_id=col_a.id, to_column_id=col_b.id, to_index=0)
        await session.commit()

    assert moved.column_id == col_b.id
    assert moved.position == 0

    async with session_factory() as session:
        assert await _layout(session, col_a.id) == [("a0", 0), ("a2", 1)]
        assert await _layout(session, col_b.id) == [("a1", 0), ("b0", 1), ("b1", 2)]
        assert await _cache_titles(session, board.id, col_a.id) == ["a0", "a2"]
        assert await _cache_titles(session, board.id, col_b.id) == ["a1", "b0", "b1"]


@pytest.mark.asyncio
async def test_move_card_into_empty_column_and_back(session_factory, make_board, fill_column) -> None:
    async with session_factory() as session:
        _, board, (todo, _, done) = await make_board(session)
        _, b, _ = await fill_column(session, board, todo, ["a", "b", "c"])
        await move_card(session, board, b.id, from_column_id=todo.id, to_column_id=done.id, to_index=0)
        await move_card(session, board, b.id, from_column_id=done.id, to_column_id=todo.id, to_index=1)
        await session.commit()

    async with session_factory() as session:
        assert await _layout(session, todo.id) == [("a", 0), ("b", 1), ("c", 2)]
        assert await _layout(session, done.id) == []
        assert await _cache_titles(session, board.id, todo.id) == ["a", "b", "c"]
        assert (await get_column(session, board.id, done.id)).card_ids == []


@pytest.mark.asyncio
async def test_move_card_across_columns_index_bounds(session_factory, make_board, fill_column) -> None:
    async with session_factory() as session:
        _, board, (todo, doing, _) = await make_board(session)
        (card,) = await fill_column(session, board, todo, ["a"])
        await fill_column(session, board, doing, ["x", "y"])
        await session.commit()

        with pytest.raises(IndexOutOfRangeError):
            await move_card(session, board, card.id, from_column_id=todo.id, to_column_id=doing.id, to_index=3)
        with pytest.raises(IndexOutOfRangeError):
            await move_card(session, board, card.id, from_column_id=todo.id, to_column_id=doing.id, to_index=-1)

        assert await _layout(session, todo.id) == [("a", 0)]
        assert await _layout(session, doing.id) == [("x", 0), ("y", 1)]

        await move_card(session, board, card.id, from_column_id=todo.id, to_column_id=doing.id, to_index=2)
        await session.commit()
        assert await _layout(session, doing.id) == [("x", 0), ("y", 1), ("a", 2)]


@pytest.mark.asyncio
async def test_move_card_checks_source_column(session_factory, make_board, fill_column) -> None:
    async with session_factory() as session:
        _, board, (todo, doing, done) = await make_board(session)
        (card,) = await fill_column(session, board, todo, ["a"])

        with pytest.raises(ValidationError):
            await move_card(session, board, card.id, from_column_id=doing.id, to_column_id=done.id, to_index=0)
        with pytest.raises(NotFoundError):
            await move_card(session, board, card.id, from_column_id=todo.id, to_column_id=9999, to_index=0)
        with pytest.raises(NotFoundError):
            await move_card(session, board, 9999, from_column_id=todo.id, to_column_id=doing.id, to_index=0)


@pytest.mark.asyncio
async def test_delete_card_compacts_siblings(session_factory, make_board, fill_column) -> None:
    async with session_factory() as session:
        _, board, (todo, _, _) = await make_board(session)
        _, b, _ = await fill_column(session, board, todo, ["a", "b", "c"])
        await session.commit()

        await delete_card(session, board, b.id)
        await session.commit()

        with pytest.raises(NotFoundError):
            await delete_card(session, board, b.id)

    async with session_factory() as session:
        assert await _layout(session, todo.id) == [("a", 0), ("c", 1)]
        assert await _cache_titles(session, board.id, todo.id) == ["a", "c"]


@pytest.mark.asyncio
async def test_update_card_fields_and_completion(session_factory, make_board, fill_column) -> None:
    async with session_factory() as session:
        _, board, (todo, _, _) = await make_board(session)
        _, card = await fill_column(session, board, todo, ["a", "b"])

        updated = await update_card(session, board, card.id, {"title": " Renamed ", "completed": True})
        assert updated.title == "Renamed"
        assert updated.completed_at is not None
        assert updated.position == 1
        stamped = updated.completed_at

        again = await update_card(session, board, card.id, {"completed": True, "description": " details "})
        assert again.completed_at == stamped
        assert again.description == "details"

        reopened = await update_card(session, board, card.id, {"completed": False})
        assert reopened.completed_at is None

        with pytest.raises(ValidationError):
            await update_card(session, board, card.id, {"title": ""})
