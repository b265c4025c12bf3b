from __future__ import annotations

import asyncio
import logging

import uvicorn
from redis.asyncio import Redis

from kanban.api.app import create_api_app
from kanban.config import get_settings
from kanban.db.session import build_session_factory
from kanban.logging_config import configure_logging
from kanban.services.locks import BoardLocks, LocalBoardLocks, RedisBoardLocks

logger = logging.getLogger(__name__)


async def run() -> None:
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    engine, session_factory = build_session_factory(settings.DATABASE_URL)

    redis_client: Redis | None = None
    locks: BoardLocks
    if settings.uses_redis_locks:
        redis_client = Redis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)
        locks = RedisBoardLocks(redis_client, settings.LOCK_TIMEOUT_SECONDS, settings.LOCK_TTL_SECONDS)
    else:
        locks = LocalBoardLocks()

    api_app = create_api_app(settings, session_factory, locks, redis_client)
    uvicorn_config = uvicorn.Config(
        app=api_app,
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level=settings.LOG_LEVEL.lower(),
        log_config=None,
    )
    api_server = uvicorn.Server(uvicorn_config)

    logger.info("Starting Kanban API", extra={"host": settings.API_HOST, "port": settings.API_PORT})
    try:
        await api_server.serve()
    finally:
        if redis_client is not None:
            await redis_client.aclose()
        await engine.dispose()


if __name__ == "__main__":
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Shutting down Kanban API")
