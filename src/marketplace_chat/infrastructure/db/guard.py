from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError

from marketplace_chat.application.exceptions import StoreUnavailableError
from marketplace_chat.config import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def store_boundary(timeout: float | None = None) -> AsyncIterator[None]:
    """Bound an operation's store access in time and normalise store failures.

    Application errors pass through untouched; driver errors and timeouts
    become ``StoreUnavailableError`` so transports never see raw exceptions.
    """
    try:
        async with asyncio.timeout(timeout or settings.STORE_TIMEOUT_SECONDS):
            yield
    except TimeoutError as exc:
        logger.warning("Store call timed out after %.1fs", timeout or settings.STORE_TIMEOUT_SECONDS)
        raise StoreUnavailableError(
            "The request timed out, please retry", cause="store timeout",
        ) from exc
    except SQLAlchemyError as exc:
        logger.exception("Store call failed")
        raise StoreUnavailableError(
            "The service is temporarily unavailable, please retry", cause=str(exc),
        ) from exc
