from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kanban.api.routes import build_router
from kanban.config import Settings
from kanban.errors import BoardError
from kanban.services.locks import BoardLocks

logger = logging.getLogger(__name__)


def create_api_app(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    locks: BoardLocks,
    redis_client: Redis | None = None,
) -> FastAPI:
    app = FastAPI(title="Kanban API", version="1.0.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BoardError)
    async def board_error_handler(request: Request, exc: BoardError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.warning("Request failed", extra={"path": request.url.path, "kind": exc.kind})
        return JSONResponse(status_code=exc.status_code, content={"error": exc.as_dict()})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg', 'invalid request')}" if location else first.get("msg", "invalid request")
        return JSONResponse(status_code=422, content={"error": {"kind": "ValidationError", "message": message}})

    @app.get("/health")
    async def health() -> JSONResponse:
        payload: dict[str, Any] = {"status": "ok", "checks": {}}
        status_code = 200

        try:
            async with session_factory() as session:
                await session.execute(text("SELECT 1"))
            payload["checks"]["database"] = "ok"
        except Exception as exc:
            payload["checks"]["database"] = f"error: {exc.__class__.__name__}"
            status_code = 503

        if redis_client is not None:
            try:
                await redis_client.ping()
                payload["checks"]["redis"] = "ok"
            except Exception as exc:
                payload["checks"]["redis"] = f"error: {exc.__class__.__name__}"
                status_code = 503

        if status_code != 200:
            payload["status"] = "degraded"

        return JSONResponse(content=payload, status_code=status_code)

    app.include_router(build_router(settings, session_factory, locks))
    return app
