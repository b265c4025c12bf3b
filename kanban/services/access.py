from __future__ import annotations

from kanban.db.models import Board
from kanban.errors import AuthorizationError


def is_board_owner(board: Board, user_id: int) -> bool:
    return board.owner_id == user_id


def is_board_member(board: Board, user_id: int) -> bool:
    return is_board_owner(board, user_id) or any(member.id == user_id for member in board.members)


def ensure_board_access(board: Board, user_id: int) -> None:
    if not is_board_member(board, user_id):
        raise AuthorizationError("You are not a member of this board")


def ensure_board_owner(board: Board, user_id: int) -> None:
    if not is_board_owner(board, user_id):
        raise AuthorizationError("Only the board owner can do this")
