"""Entrypoint: python -m marketplace_chat"""
from __future__ import annotations

import uvicorn

from marketplace_chat.config import settings
from marketplace_chat.logging_config import build_logging_config


def main() -> None:
    uvicorn.run(
        "marketplace_chat.app:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        log_config=build_logging_config(settings.LOG_LEVEL, settings.LOG_JSON),
    )


if __name__ == "__main__":
    main()
