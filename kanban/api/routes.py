from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kanban.api.auth import Identity, build_identity_dependency
from kanban.api.schemas import (
    BoardCreate,
    BoardDetailOut,
    BoardOut,
    BoardUpdate,
    CardCreate,
    CardDetailOut,
    CardMove,
    CardOut,
    CardsReorder,
    CardUpdate,
    ColumnCreate,
    ColumnOut,
    ColumnRename,
    ColumnsReorder,
    CommentOut,
    CommentWrite,
    ReconcileOut,
    board_detail_out,
    board_out,
    card_detail_out,
    card_out,
    column_out,
    comment_out,
)
from kanban.config import Settings
from kanban.db.models import Board, User
from kanban.db.session import session_scope
from kanban.services.access import ensure_board_access, ensure_board_owner
from kanban.services.board_service import (
    add_member,
    board_contents,
    create_board,
    get_board,
    list_boards_for_user,
    remove_member,
    update_board,
)
from kanban.services.card_service import (
    add_card,
    delete_card,
    get_card,
    move_card,
    reorder_cards_in_column,
    update_card,
)
from kanban.services.column_service import add_column, delete_column, rename_column, reorder_columns
from kanban.services.comment_service import add_comment, delete_comment, edit_comment, list_comments
from kanban.services.locks import BoardLocks
from kanban.services.sync_service import reconcile_board
from kanban.services.user_service import get_or_create_user

_CARD_FIELDS = {"title": "title", "description": "description", "assignedTo": "assigned_to", "completed": "completed"}


async def _caller(session: AsyncSession, identity: Identity) -> User:
    return await get_or_create_user(
        session,
        external_id=identity.subject,
        username=identity.username,
        name=identity.name,
    )


async def _board_for(session: AsyncSession, identity: Identity, board_id: int) -> tuple[User, Board]:
    user = await _caller(session, identity)
    board = await get_board(session, board_id)
    ensure_board_access(board, user.id)
    return user, board


def build_router(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    locks: BoardLocks,
) -> APIRouter:
    router = APIRouter()
    current_identity = build_identity_dependency(settings)

    # === Boards ===

    @router.get("/boards", response_model=list[BoardOut])
    async def list_boards_route(identity: Identity = Depends(current_identity)):
        async with session_scope(session_factory) as session:
            user = await _caller(session, identity)
            return [board_out(board) for board in await list_boards_for_user(session, user.id)]

    @router.post("/boards", response_model=BoardOut, status_code=201)
    async def create_board_route(payload: BoardCreate, identity: Identity = Depends(current_identity)):
        async with session_scope(session_factory) as session:
            user = await _caller(session, identity)
            board = await create_board(
                session,
                user,
                title=payload.title,
                start_date=payload.startDate,
                due_date=payload.dueDate,
            )
            return board_out(board)

    @router.get("/boards/{board_id}", response_model=BoardDetailOut)
    async def get_board_route(board_id: int, identity: Identity = Depends(current_identity)):
        async with locks.hold(board_id):
            async with session_scope(session_factory) as session:
                _, board = await _board_for(session, identity, board_id)
                contents = await board_contents(session, board)
                return board_detail_out(board, contents)

    @router.put("/boards/{board_id}", response_model=BoardOut)
    async def update_board_route(board_id: int, payload: BoardUpdate, identity: Identity = Depends(current_identity)):
        fields = payload.model_dump(exclude_unset=True)
        async with session_scope(session_factory) as session:
            user, board = await _board_for(session, identity, board_id)
            if payload.addUsername or payload.removeUsername:
                ensure_board_owner(board, user.id)
            if payload.addUsername:
                await add_member(session, board, payload.addUsername)
            if payload.removeUsername:
                await remove_member(session, board, payload.removeUsername)

            changes: dict[str, Any] = {}
            if "title" in fields:
                changes["title"] = fields["title"]
            if "startDate" in fields:
                changes["start_date"] = fields["startDate"]
            if "dueDate" in fields:
                changes["due_date"] = fields["dueDate"]
            if changes:
                await update_board(session, board, **changes)
            return board_out(board)

    @router.post("/boards/{board_id}/reconcile", response_model=ReconcileOut)
    async def reconcile_board_route(board_id: int, identity: Identity = Depends(current_identity)):
        async with locks.hold(board_id):
            async with session_scope(session_factory) as session:
                await _board_for(session, identity, board_id)
                return ReconcileOut(repairedColumnIds=await reconcile_board(session, board_id))

    # === Columns ===

    @router.post("/boards/{board_id}/columns", response_model=ColumnOut, status_code=201)
    async def add_column_route(board_id: int, payload: ColumnCreate, identity: Identity = Depends(current_identity)):
        async with locks.hold(board_id):
            async with session_scope(session_factory) as session:
                _, board = await _board_for(session, identity, board_id)
                return column_out(await add_column(session, board, payload.title))

    @router.put("/boards/{board_id}/columns/reorder", response_model=list[ColumnOut])
    async def reorder_columns_route(
        board_id: int,
        payload: ColumnsReorder,
        identity: Identity = Depends(current_identity),
    ):
        async with locks.hold(board_id):
            async with session_scope(session_factory) as session:
                _, board = await _board_for(session, identity, board_id)
                columns = await reorder_columns(session, board, payload.orderedColumnIds)
                return [column_out(column) for column in columns]

    @router.put("/boards/{board_id}/columns/{column_id}", response_model=ColumnOut)
    async def rename_column_route(
        board_id: int,
        column_id: int,
        payload: ColumnRename,
        identity: Identity = Depends(current_identity),
    ):
        async with session_scope(session_factory) as session:
            _, board = await _board_for(session, identity, board_id)
            return column_out(await rename_column(session, board, column_id, payload.title))

    @router.delete("/boards/{board_id}/columns/{column_id}", status_code=204)
    async def delete_column_route(board_id: int, column_id: int, identity: Identity = Depends(current_identity)):
        async with locks.hold(board_id):
            async with session_scope(session_factory) as session:
                _, board = await _board_for(session, identity, board_id)
                await delete_column(session, board, column_id)
        return Response(status_code=204)

    # === Cards ===

    @router.post("/boards/{board_id}/columns/{column_id}/cards", response_model=CardOut, status_code=201)
    async def add_card_route(
        board_id: int,
        column_id: int,
        payload: CardCreate,
        identity: Identity = Depends(current_identity),
    ):
        async with locks.hold(board_id):
            async with session_scope(session_factory) as session:
                _, board = await _board_for(session, identity, board_id)
                card = await add_card(
                    session,
                    board,
                    column_id,
                    title=payload.title,
                    description=payload.description,
                    assigned_to=payload.assignedTo,
                )
                return card_out(card)

    @router.put("/boards/{board_id}/cards/reorder", response_model=list[CardOut])
    async def reorder_cards_route(board_id: int, payload: CardsReorder, identity: Identity = Depends(current_identity)):
        async with locks.hold(board_id):
            async with session_scope(session_factory) as session:
                _, board = await _board_for(session, identity, board_id)
                cards = await reorder_cards_in_column(session, board, payload.columnId, payload.orderedCardIds)
                return [card_out(card) for card in cards]

    @router.put("/boards/{board_id}/cards/move", response_model=CardOut)
    async def move_card_route(board_id: int, payload: CardMove, identity: Identity = Depends(current_identity)):
        async with locks.hold(board_id):
            async with session_scope(session_factory) as session:
                _, board = await _board_for(session, identity, board_id)
                card = await move_card(
                    session,
                    board,
                    payload.cardId,
                    from_column_id=payload.fromColumnId,
                    to_column_id=payload.toColumnId,
                    to_index=payload.toIndex,
                )
                return card_out(card)

    @router.get("/boards/{board_id}/cards/{card_id}", response_model=CardDetailOut)
    async def get_card_route(board_id: int, card_id: int, identity: Identity = Depends(current_identity)):
        async with session_scope(session_factory) as session:
            _, board = await _board_for(session, identity, board_id)
            card = await get_card(session, board.id, card_id)
            return card_detail_out(card, await list_comments(session, card.id))

    @router.put("/boards/{board_id}/cards/{card_id}", response_model=CardOut)
    async def update_card_route(
        board_id: int,
        card_id: int,
        payload: CardUpdate,
        identity: Identity = Depends(current_identity),
    ):
        changes = {_CARD_FIELDS[key]: value for key, value in payload.model_dump(exclude_unset=True).items()}
        async with session_scope(session_factory) as session:
            _, board = await _board_for(session, identity, board_id)
            return card_out(await update_card(session, board, card_id, changes))

    @router.delete("/boards/{board_id}/cards/{card_id}", status_code=204)
    async def delete_card_route(board_id: int, card_id: int, identity: Identity = Depends(current_identity)):
        async with locks.hold(board_id):
            async with session_scope(session_factory) as session:
                _, board = await _board_for(session, identity, board_id)
                await delete_card(session, board, card_id)
        return Response(status_code=204)

    # === Comments ===

    @router.post("/boards/{board_id}/cards/{card_id}/comments", response_model=CommentOut, status_code=201)
    async def add_comment_route(
        board_id: int,
        card_id: int,
        payload: CommentWrite,
        identity: Identity = Depends(current_identity),
    ):
        async with session_scope(session_factory) as session:
            user, board = await _board_for(session, identity, board_id)
            return comment_out(await add_comment(session, board, card_id, user, payload.text))

    @router.put("/boards/{board_id}/cards/{card_id}/comments/{comment_id}", response_model=CommentOut)
    async def edit_comment_route(
        board_id: int,
        card_id: int,
        comment_id: int,
        payload: CommentWrite,
        identity: Identity = Depends(current_identity),
    ):
        async with session_scope(session_factory) as session:
            user, board = await _board_for(session, identity, board_id)
            return comment_out(await edit_comment(session, board, card_id, comment_id, user, payload.text))

    @router.delete("/boards/{board_id}/cards/{card_id}/comments/{comment_id}", status_code=204)
    async def delete_comment_route(
        board_id: int,
        card_id: int,
        comment_id: int,
        identity: Identity = Depends(current_identity),
    ):
        async with session_scope(session_factory) as session:
            user, board = await _board_for(session, identity, board_id)
            await delete_comment(session, board, card_id, comment_id, user)
        return Response(status_code=204)

    return router
