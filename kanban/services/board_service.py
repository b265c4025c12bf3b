from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.db.models import Board, BoardColumn, Card, User, board_members
from kanban.errors import NotFoundError, ValidationError
from kanban.services.card_service import list_board_cards
from kanban.services.column_service import list_columns
from kanban.services.sync_service import column_is_stale, load_column_cards, reconcile_column
from kanban.services.user_service import get_user_by_username
from kanban.utils.datetime_utils import ensure_utc, utcnow, validate_date_range
from kanban.utils.text import require_text

logger = logging.getLogger(__name__)

BOARD_TITLE_MAX = 200

_UNSET = object()


async def create_board(
    session: AsyncSession,
    owner: User,
    *,
    title: str,
    start_date: datetime | None = None,
    due_date: datetime | None = None,
) -> Board:
    start = ensure_utc(start_date) or utcnow()
    due = ensure_utc(due_date)
    try:
        validate_date_range(start, due)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    board = Board(
        owner_id=owner.id,
        title=require_text(title, "title", BOARD_TITLE_MAX),
        start_date=start,
        due_date=due,
    )
    board.owner = owner
    board.members = []
    session.add(board)
    await session.flush()
    logger.info("Board created", extra={"board_id": board.id, "owner_id": owner.id})
    return board


async def get_board(session: AsyncSession, board_id: int) -> Board:
    result = await session.execute(select(Board).where(Board.id == board_id))
    board = result.scalar_one_or_none()
    if board is None:
        raise NotFoundError(f"Board {board_id} not found")
    return board


async def list_boards_for_user(session: AsyncSession, user_id: int) -> list[Board]:
    member_board_ids = select(board_members.c.board_id).where(board_members.c.user_id == user_id)
    result = await session.execute(
        select(Board)
        .where(or_(Board.owner_id == user_id, Board.id.in_(member_board_ids)))
        .order_by(Board.created_at.desc(), Board.id.desc())
    )
    return list(result.scalars().all())


async def update_board(
    session: AsyncSession,
    board: Board,
    *,
    title: str | None = None,
    start_date: datetime | None | object = _UNSET,
    due_date: datetime | None | object = _UNSET,
) -> Board:
    if title is not None:
        board.title = require_text(title, "title", BOARD_TITLE_MAX)

    start = board.start_date if start_date is _UNSET else ensure_utc(start_date) or utcnow()
    due = board.due_date if due_date is _UNSET else ensure_utc(due_date)
    try:
        validate_date_range(start, due)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    board.start_date = start
    board.due_date = due

    await session.flush()
    return board


async def add_member(session: AsyncSession, board: Board, username: str) -> Board:
    user = await get_user_by_username(session, username)
    if user.id == board.owner_id:
        return board
    if all(member.id != user.id for member in board.members):
        board.members.append(user)
        await session.flush()
        logger.info("Board member added", extra={"board_id": board.id, "user_id": user.id})
    return board


async def remove_member(session: AsyncSession, board: Board, username: str) -> Board:
    user = await get_user_by_username(session, username)
    remaining = [member for member in board.members if member.id != user.id]
    if len(remaining) != len(board.members):
        board.members = remaining
        await session.flush()
        logger.info("Board member removed", extra={"board_id": board.id, "user_id": user.id})
    return board


async def board_contents(session: AsyncSession, board: Board) -> list[tuple[BoardColumn, list[Card]]]:
    """Columns in position order with their cards, repairing stale card caches on the way."""
    columns = await list_columns(session, board.id)
    grouped: dict[int, list[Card]] = {column.id: [] for column in columns}
    for card in await list_board_cards(session, board.id):
        grouped.setdefault(card.column_id, []).append(card)

    contents: list[tuple[BoardColumn, list[Card]]] = []
    for column in columns:
        cards = grouped[column.id]
        if column_is_stale(column, cards):
            await reconcile_column(session, column)
            cards = await load_column_cards(session, column.id)
        contents.append((column, cards))
    return contents
