from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from marketplace_chat.config import settings
from marketplace_chat.infrastructure.db.session import AsyncSessionLocal

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz(request: Request) -> dict[str, object]:
    return {"status": "ok", "connections": request.app.state.manager.connection_count}


@router.get("/readyz")
async def readyz(request: Request) -> JSONResponse:
    errors: list[str] = []

    try:
        async with asyncio.timeout(settings.STORE_TIMEOUT_SECONDS), AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("Readiness: database check failed: %s", exc)
        errors.append(f"postgres: {str(exc) or 'timed out'}")

    redis = request.app.state.redis
    if redis is not None:
        try:
            async with asyncio.timeout(settings.STORE_TIMEOUT_SECONDS):
                await redis.ping()
        except (RedisError, OSError) as exc:
            logger.warning("Readiness: redis check failed: %s", exc)
            errors.append(f"redis: {str(exc) or 'timed out'}")

    if errors:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "errors": errors},
        )
    return JSONResponse(content={"status": "ready"})
