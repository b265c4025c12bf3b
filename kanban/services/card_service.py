from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.db.models import Board, Card, Comment
from kanban.db.positions import flush_positions
from kanban.errors import IndexOutOfRangeError, InvalidReorderError, NotFoundError, ValidationError
from kanban.services.access import is_board_member
from kanban.services.column_service import get_column
from kanban.services.sync_service import load_column_cards, refresh_order, sync_card_membership
from kanban.utils.datetime_utils import utcnow
from kanban.utils.positions import (
    append_at,
    in_position_order,
    insert_and_shift,
    move_within_same_group,
    remove_and_compact,
    reorder,
)
from kanban.utils.text import optional_text, require_text

logger = logging.getLogger(__name__)

CARD_TITLE_MAX = 255


def _check_assignee(board: Board, assigned_to: int | None) -> None:
    if assigned_to is not None and not is_board_member(board, assigned_to):
        raise ValidationError("Assignee must be the board owner or a member")


async def list_cards(session: AsyncSession, column_id: int) -> list[Card]:
    return await load_column_cards(session, column_id)


async def list_board_cards(session: AsyncSession, board_id: int) -> list[Card]:
    result = await session.execute(
        select(Card).where(Card.board_id == board_id).order_by(Card.column_id, Card.position, Card.id)
    )
    return list(result.scalars().all())


async def get_card(session: AsyncSession, board_id: int, card_id: int) -> Card:
    result = await session.execute(select(Card).where(Card.board_id == board_id, Card.id == card_id))
    card = result.scalar_one_or_none()
    if card is None:
        raise NotFoundError(f"Card {card_id} not found on this board")
    return card


async def add_card(
    session: AsyncSession,
    board: Board,
    column_id: int,
    *,
    title: str | None,
    description: str | None = None,
    assigned_to: int | None = None,
) -> Card:
    column = await get_column(session, board.id, column_id)
    clean_title = require_text(title, "title", CARD_TITLE_MAX)
    _check_assignee(board, assigned_to)

    siblings = await list_cards(session, column.id)
    card = Card(
        board_id=board.id,
        column_id=column.id,
        title=clean_title,
        description=optional_text(description),
        assigned_to=assigned_to,
        position=append_at(siblings),
    )
    session.add(card)
    await session.flush()

    log_extra = {"board_id": board.id, "column_id": column.id, "card_id": card.id}
    await sync_card_membership(session, card.id, destination=column, index=len(siblings))
    logger.info("Card added", extra=log_extra)
    return card


async def update_card(session: AsyncSession, board: Board, card_id: int, changes: Mapping[str, Any]) -> Card:
    """Apply field edits; never changes ``column_id`` or ``position``."""
    card = await get_card(session, board.id, card_id)
    if "title" in changes:
        card.title = require_text(changes["title"], "title", CARD_TITLE_MAX)
    if "description" in changes:
        card.description = optional_text(changes["description"])
    if "assigned_to" in changes:
        _check_assignee(board, changes["assigned_to"])
        card.assigned_to = changes["assigned_to"]
    if "completed" in changes and changes["completed"] is not None:
        if changes["completed"]:
            card.completed_at = card.completed_at or utcnow()
        else:
            card.completed_at = None
    await session.flush()
    return card


async def reorder_cards_in_column(
    session: AsyncSession,
    board: Board,
    column_id: int,
    ordered_card_ids: Sequence[int],
) -> list[Card]:
    column = await get_column(session, board.id, column_id)
    if not ordered_card_ids:
        raise ValidationError("orderedCardIds must not be empty")

    cards = await list_cards(session, column.id)
    try:
        changed = reorder(cards, list(ordered_card_ids))
    except InvalidReorderError as exc:
        raise ValidationError(exc.message) from exc

    await flush_positions(session, changed)
    refresh_order(column, cards)
    await session.flush()
    logger.info("Cards reordered", extra={"board_id": board.id, "column_id": column.id, "changed": len(changed)})
    return in_position_order(cards)


async def move_card(
    session: AsyncSession,
    board: Board,
    card_id: int,
    *,
    from_column_id: int,
    to_column_id: int,
    to_index: int,
) -> Card:
    card = await get_card(session, board.id, card_id)
    source = await get_column(session, board.id, from_column_id)
    destination = source if to_column_id == from_column_id else await get_column(session, board.id, to_column_id)
    if card.column_id != source.id:
        raise ValidationError(f"Card {card.id} is not in column {source.id}")

    if destination is source:
        siblings = await list_cards(session, source.id)
        changed = move_within_same_group(siblings, card, to_index)
        if not changed:
            return card
        await flush_positions(session, changed)
        refresh_order(source, siblings)
        await session.flush()
        logger.info(
            "Card moved within column",
            extra={"board_id": board.id, "column_id": source.id, "card_id": card.id, "to_index": to_index},
        )
        return card

    remaining = [sibling for sibling in await list_cards(session, source.id) if sibling.id != card.id]
    targets = await list_cards(session, destination.id)
    if not 0 <= to_index <= len(targets):
        raise IndexOutOfRangeError(f"Index {to_index} is outside [0, {len(targets)}]")

    changed = remove_and_compact(remaining, card.position)
    changed += insert_and_shift(targets, to_index)
    card.column_id = destination.id
    card.position = to_index
    changed.append(card)
    await flush_positions(session, changed)

    log_extra = {
        "board_id": board.id,
        "card_id": card.id,
        "from_column_id": source.id,
        "to_column_id": destination.id,
        "to_index": to_index,
    }
    await sync_card_membership(session, card.id, source=source, destination=destination, index=to_index)
    logger.info("Card moved across columns", extra=log_extra)
    return card


async def delete_card(session: AsyncSession, board: Board, card_id: int) -> None:
    card = await get_card(session, board.id, card_id)
    column = await get_column(session, board.id, card.column_id)
    removed_position = card.position

    await session.execute(delete(Comment).where(Comment.card_id == card.id))
    await session.delete(card)
    await session.flush()

    siblings = await list_cards(session, column.id)
    changed = remove_and_compact(siblings, removed_position)
    await flush_positions(session, changed)

    log_extra = {"board_id": board.id, "column_id": column.id, "card_id": card_id}
    await sync_card_membership(session, card_id, source=column)
    logger.info("Card deleted", extra=log_extra)
