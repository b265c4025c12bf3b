from __future__ import annotations

from collections.abc import AsyncIterator, Sequence

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from kanban.api.app import create_api_app
from kanban.api.auth import Identity, create_access_token
from kanban.config import Settings
from kanban.db import models  # noqa: F401
from kanban.db.base import Base
from kanban.services.board_service import create_board
from kanban.services.card_service import add_card
from kanban.services.column_service import add_column
from kanban.services.locks import LocalBoardLocks
from kanban.services.user_service import get_or_create_user


@pytest.fixture
async def session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(bind=engine, expire_on_commit=False)
    yield factory

    await engine.dispose()


@pytest.fixture
def settings() -> Settings:
    return Settings(JWT_SECRET="test-secret", DATABASE_URL="sqlite+aiosqlite://", CORS_ORIGINS="*")


@pytest.fixture
def board_locks() -> LocalBoardLocks:
    return LocalBoardLocks()


@pytest.fixture
async def client(settings, session_factory, board_locks) -> AsyncIterator[AsyncClient]:
    app = create_api_app(settings, session_factory, board_locks)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http


@pytest.fixture
def auth_headers(settings):
    def _headers(username: str = "alice", subject: str | None = None) -> dict[str, str]:
        identity = Identity(subject=subject or f"ext-{username}", username=username, name=username.title())
        return {"Authorization": f"Bearer {create_access_token(settings, identity)}"}

    return _headers


@pytest.fixture
def make_board():
    async def _make(
        session: AsyncSession,
        *,
        username: str = "owner",
        column_titles: Sequence[str] = ("Todo", "Doing", "Done"),
    ):
        owner = await get_or_create_user(session, external_id=f"ext-{username}", username=username, name=username.title())
        board = await create_board(session, owner, title=f"{username} board")
        columns = [await add_column(session, board, title) for title in column_titles]
        return owner, board, columns

    return _make


@pytest.fixture
def fill_column():
    async def _fill(session: AsyncSession, board, column, titles: Sequence[str]):
        return [await add_card(session, board, column.id, title=title) for title in titles]

    return _fill
