from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from kanban.db.models import Board, BoardColumn, Card, Comment


# === Requests ===


class BoardCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    startDate: Optional[datetime] = None
    dueDate: Optional[datetime] = None


class BoardUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    startDate: Optional[datetime] = None
    dueDate: Optional[datetime] = None
    addUsername: Optional[str] = None
    removeUsername: Optional[str] = None


class ColumnCreate(BaseModel):
    title: str = Field(min_length=1, max_length=120)


class ColumnRename(BaseModel):
    title: str = Field(min_length=1, max_length=120)


class ColumnsReorder(BaseModel):
    orderedColumnIds: list[int]


class CardCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    assignedTo: Optional[int] = None


class CardUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    assignedTo: Optional[int] = None
    completed: Optional[bool] = None


class CardsReorder(BaseModel):
    columnId: int
    orderedCardIds: list[int]


class CardMove(BaseModel):
    cardId: int
    fromColumnId: int
    toColumnId: int
    toIndex: int


class CommentWrite(BaseModel):
    text: str = Field(min_length=1, max_length=5000)


# === Responses ===


class ColumnOut(BaseModel):
    id: int
    boardId: int
    title: str
    position: int
    cardIds: list[int]


class CardOut(BaseModel):
    id: int
    boardId: int
    columnId: int
    title: str
    description: str
    assignedTo: Optional[int]
    position: int
    completed: bool
    completedAt: Optional[datetime]
    createdAt: datetime
    updatedAt: datetime


class CommentOut(BaseModel):
    id: int
    cardId: int
    authorId: int
    text: str
    createdAt: datetime
    updatedAt: datetime


class CardDetailOut(CardOut):
    comments: list[CommentOut]


class BoardOut(BaseModel):
    id: int
    title: str
    ownerId: int
    memberIds: list[int]
    startDate: datetime
    dueDate: Optional[datetime]
    createdAt: datetime
    updatedAt: datetime


class ColumnWithCardsOut(ColumnOut):
    cards: list[CardOut]


class BoardDetailOut(BoardOut):
    columns: list[ColumnWithCardsOut]


class ReconcileOut(BaseModel):
    repairedColumnIds: list[int]


def board_out(board: Board) -> BoardOut:
    return BoardOut(
        id=board.id,
        title=board.title,
        ownerId=board.owner_id,
        memberIds=sorted(member.id for member in board.members),
        startDate=board.start_date,
        dueDate=board.due_date,
        createdAt=board.created_at,
        updatedAt=board.updated_at,
    )


def column_out(column: BoardColumn) -> ColumnOut:
    return ColumnOut(
        id=column.id,
        boardId=column.board_id,
        title=column.title,
        position=column.position,
        cardIds=list(column.card_ids or []),
    )


def card_out(card: Card) -> CardOut:
    return CardOut(
        id=card.id,
        boardId=card.board_id,
        columnId=card.column_id,
        title=card.title,
        description=card.description,
        assignedTo=card.assigned_to,
        position=card.position,
        completed=card.completed_at is not None,
        completedAt=card.completed_at,
        createdAt=card.created_at,
        updatedAt=card.updated_at,
    )


def comment_out(comment: Comment) -> CommentOut:
    return CommentOut(
        id=comment.id,
        cardId=comment.card_id,
        authorId=comment.author_id,
        text=comment.text,
        createdAt=comment.created_at,
        updatedAt=comment.updated_at,
    )


def card_detail_out(card: Card, comments: list[Comment]) -> CardDetailOut:
    return CardDetailOut(**card_out(card).model_dump(), comments=[comment_out(c) for c in comments])


def board_detail_out(board: Board, contents: list[tuple[BoardColumn, list[Card]]]) -> BoardDetailOut:
    columns = [
        ColumnWithCardsOut(**column_out(column).model_dump(), cards=[card_out(card) for card in cards])
        for column, cards in contents
    ]
    return BoardDetailOut(**board_out(board).model_dump(), columns=columns)
