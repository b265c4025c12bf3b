"""Keeps ``BoardColumn.card_ids`` in step with the authoritative card rows.

The cache patch after a card write is best-effort: it runs in a SAVEPOINT and
a failure is logged rather than failing the request. ``reconcile_column`` and
``reconcile_board`` rebuild caches (and card positions) from the card rows.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.db.models import BoardColumn, Card
from kanban.db.positions import flush_positions
from kanban.services.column_service import list_columns
from kanban.utils.positions import in_position_order, is_dense

logger = logging.getLogger(__name__)


def detach_card(column: BoardColumn, card_id: int) -> None:
    column.card_ids = [cid for cid in column.card_ids or [] if cid != card_id]


def attach_card(column: BoardColumn, card_id: int, index: int) -> None:
    ids = [cid for cid in column.card_ids or [] if cid != card_id]
    ids.insert(max(0, min(index, len(ids))), card_id)
    column.card_ids = ids


def expected_card_ids(cards: Sequence[Card]) -> list[int]:
    """The cache value implied by the card rows: ids in position order."""
    return [card.id for card in in_position_order(cards)]


def refresh_order(column: BoardColumn, cards: Sequence[Card]) -> None:
    column.card_ids = expected_card_ids(cards)


def column_is_stale(column: BoardColumn, cards: Sequence[Card]) -> bool:
    return list(column.card_ids or []) != expected_card_ids(cards) or not is_dense(cards)


async def sync_card_membership(
    session: AsyncSession,
    card_id: int,
    *,
    source: BoardColumn | None = None,
    destination: BoardColumn | None = None,
    index: int = 0,
) -> bool:
    context = {
        "card_id": card_id,
        "source_column_id": source.id if source is not None else None,
        "destination_column_id": destination.id if destination is not None else None,
    }
    try:
        async with session.begin_nested():
            if source is not None:
                detach_card(source, card_id)
            if destination is not None:
                attach_card(destination, card_id, index)
    except Exception:
        logger.exception("Failed to patch column card cache", extra=context)
        return False
    return True


async def load_column_cards(session: AsyncSession, column_id: int) -> list[Card]:
    result = await session.execute(select(Card).where(Card.column_id == column_id).order_by(Card.position, Card.id))
    return list(result.scalars().all())


async def reconcile_column(session: AsyncSession, column: BoardColumn) -> bool:
    cards = await load_column_cards(session, column.id)
    repaired = False

    if not is_dense(cards):
        changed = []
        for index, card in enumerate(cards):
            if card.position != index:
                card.position = index
                changed.append(card)
        await flush_positions(session, changed)
        repaired = True

    expected = expected_card_ids(cards)
    if list(column.card_ids or []) != expected:
        column.card_ids = expected
        await session.flush()
        repaired = True

    if repaired:
        logger.warning("Column card cache repaired", extra={"board_id": column.board_id, "column_id": column.id})
    return repaired


async def reconcile_board(session: AsyncSession, board_id: int) -> list[int]:
    repaired: list[int] = []
    for column in await list_columns(session, board_id):
        if await reconcile_column(session, column):
            repaired.append(column.id)
    return repaired
