from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.db.models import Board, BoardColumn, Card
from kanban.db.positions import flush_positions
from kanban.errors import NonEmptyColumnError, NotFoundError
from kanban.utils.positions import append_at, in_position_order, remove_and_compact, reorder
from kanban.utils.text import require_text

logger = logging.getLogger(__name__)

COLUMN_TITLE_MAX = 120


async def list_columns(session: AsyncSession, board_id: int) -> list[BoardColumn]:
    result = await session.execute(
        select(BoardColumn).where(BoardColumn.board_id == board_id).order_by(BoardColumn.position)
    )
    return list(result.scalars().all())


async def get_column(session: AsyncSession, board_id: int, column_id: int) -> BoardColumn:
    result = await session.execute(
        select(BoardColumn).where(BoardColumn.board_id == board_id, BoardColumn.id == column_id)
    )
    column = result.scalar_one_or_none()
    if column is None:
        raise NotFoundError(f"Column {column_id} not found on this board")
    return column


async def add_column(session: AsyncSession, board: Board, title: str) -> BoardColumn:
    clean_title = require_text(title, "title", COLUMN_TITLE_MAX)
    columns = await list_columns(session, board.id)
    column = BoardColumn(board_id=board.id, title=clean_title, position=append_at(columns), card_ids=[])
    session.add(column)
    await session.flush()
    logger.info("Column added", extra={"board_id": board.id, "column_id": column.id, "position": column.position})
    return column


async def rename_column(session: AsyncSession, board: Board, column_id: int, title: str) -> BoardColumn:
    column = await get_column(session, board.id, column_id)
    column.title = require_text(title, "title", COLUMN_TITLE_MAX)
    await session.flush()
    return column


async def reorder_columns(session: AsyncSession, board: Board, ordered_column_ids: Sequence[int]) -> list[BoardColumn]:
    columns = await list_columns(session, board.id)
    changed = reorder(columns, list(ordered_column_ids))
    await flush_positions(session, changed)
    logger.info("Columns reordered", extra={"board_id": board.id, "changed": len(changed)})
    return in_position_order(columns)


async def delete_column(session: AsyncSession, board: Board, column_id: int) -> None:
    column = await get_column(session, board.id, column_id)
    card_count = (await session.execute(select(func.count(Card.id)).where(Card.column_id == column.id))).scalar_one()
    if column.card_ids or card_count:
        raise NonEmptyColumnError("Column still has cards; move or delete them first")

    removed_position = column.position
    await session.delete(column)
    await session.flush()

    remaining = await list_columns(session, board.id)
    changed = remove_and_compact(remaining, removed_position)
    await flush_positions(session, changed)
    logger.info("Column deleted", extra={"board_id": board.id, "column_id": column_id})
