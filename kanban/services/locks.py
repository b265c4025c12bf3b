"""Per-board serialization of structural mutations.

Reorders, moves and deletes read a sibling group and write it back; two of
them interleaving on one board could leave duplicate or missing positions.
Every mutating request holds the board's lock for the length of its
transaction.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol

from redis.asyncio import Redis
from redis.exceptions import LockError

from kanban.errors import BoardBusyError

logger = logging.getLogger(__name__)


class BoardLocks(Protocol):
    def hold(self, board_id: int) -> AbstractAsyncContextManager[None]: ...


class LocalBoardLocks:
    """asyncio locks for a single-process deployment.

    A board's lock lives only while some request holds or waits on it.
    """

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        self._users: dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, board_id: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(board_id, asyncio.Lock())
        self._users[board_id] = self._users.get(board_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[board_id] -= 1
            if not self._users[board_id]:
                del self._users[board_id]
                del self._locks[board_id]


class RedisBoardLocks:
    """Redis locks shared by every API worker pointed at the same Redis.

    ``timeout`` bounds the wait for the lock; ``ttl`` is how long a held lock
    survives in Redis and must outlast the longest board transaction.
    """

    def __init__(self, redis_client: Redis, timeout: float, ttl: float) -> None:
        self._redis = redis_client
        self._timeout = timeout
        self._ttl = ttl

    @asynccontextmanager
    async def hold(self, board_id: int) -> AsyncIterator[None]:
        lock = self._redis.lock(f"board-lock:{board_id}", timeout=self._ttl, blocking_timeout=self._timeout)
        acquired = await lock.acquire()
        if not acquired:
            logger.warning("Board lock not acquired", extra={"board_id": board_id})
            raise BoardBusyError("Board is busy, try again")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                logger.warning("Board lock expired before release", extra={"board_id": board_id})
