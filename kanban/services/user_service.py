from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.db.models import User
from kanban.errors import NotFoundError


async def get_or_create_user(session: AsyncSession, *, external_id: str, username: str, name: str = "") -> User:
    result = await session.execute(select(User).where(User.external_id == external_id))
    user = result.scalar_one_or_none()
    if user:
        if user.username != username or user.name != name:
            user.username = username
            user.name = name
            await session.flush()
        return user

    user = User(external_id=external_id, username=username, name=name)
    session.add(user)
    await session.flush()
    return user


async def get_user_by_username(session: AsyncSession, username: str) -> User:
    result = await session.execute(select(User).where(User.username == username.strip()))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError(f"User '{username}' does not exist")
    return user
