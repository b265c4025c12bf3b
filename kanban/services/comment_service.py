from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.db.models import Board, Comment, User
from kanban.errors import AuthorizationError, NotFoundError
from kanban.services.access import is_board_owner
from kanban.services.card_service import get_card
from kanban.utils.text import require_text

COMMENT_TEXT_MAX = 5000


async def list_comments(session: AsyncSession, card_id: int) -> list[Comment]:
    result = await session.execute(
        select(Comment).where(Comment.card_id == card_id).order_by(Comment.created_at, Comment.id)
    )
    return list(result.scalars().all())


async def _get_comment(session: AsyncSession, card_id: int, comment_id: int) -> Comment:
    result = await session.execute(select(Comment).where(Comment.card_id == card_id, Comment.id == comment_id))
    comment = result.scalar_one_or_none()
    if comment is None:
        raise NotFoundError(f"Comment {comment_id} not found on this card")
    return comment


async def add_comment(session: AsyncSession, board: Board, card_id: int, author: User, text: str) -> Comment:
    card = await get_card(session, board.id, card_id)
    comment = Comment(card_id=card.id, author_id=author.id, text=require_text(text, "text", COMMENT_TEXT_MAX))
    session.add(comment)
    await session.flush()
    return comment


async def edit_comment(
    session: AsyncSession,
    board: Board,
    card_id: int,
    comment_id: int,
    author: User,
    text: str,
) -> Comment:
    card = await get_card(session, board.id, card_id)
    comment = await _get_comment(session, card.id, comment_id)
    if comment.author_id != author.id:
        raise AuthorizationError("Only the author can edit a comment")
    comment.text = require_text(text, "text", COMMENT_TEXT_MAX)
    await session.flush()
    return comment


async def delete_comment(session: AsyncSession, board: Board, card_id: int, comment_id: int, user: User) -> None:
    card = await get_card(session, board.id, card_id)
    comment = await _get_comment(session, card.id, comment_id)
    if comment.author_id != user.id and not is_board_owner(board, user.id):
        raise AuthorizationError("Only the author or the board owner can delete a comment")
    await session.delete(comment)
    await session.flush()
