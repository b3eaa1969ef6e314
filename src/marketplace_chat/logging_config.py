from __future__ import annotations

import logging
import logging.config
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from marketplace_chat.api.middleware.correlation_id import correlation_id_ctx

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(correlation_id)s | %(message)s"


class CorrelationIdFilter(logging.Filter):
    """Stamp records with the current request id ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_ctx.get() or "-"
        return True


def add_request_id(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    record = event_dict.get("_record")
    request_id = getattr(record, "correlation_id", None) or correlation_id_ctx.get()
    if request_id and request_id != "-":
        event_dict["request_id"] = request_id
    return event_dict


def json_formatter() -> structlog.stdlib.ProcessorFormatter:
    """One JSON object per line for stdlib records, escaped by structlog."""
    pre_chain: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="time"),
        add_request_id,
    ]
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.EventRenamer("message"),
            structlog.processors.JSONRenderer(),
        ],
    )


def build_logging_config(level: str = "INFO", json: bool = False) -> dict[str, Any]:
    formatter: dict[str, Any] = {"()": json_formatter} if json else {"format": LOG_FORMAT}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "correlation_id": {"()": CorrelationIdFilter},
        },
        "formatters": {
            "default": formatter,
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "filters": ["correlation_id"],
            },
        },
        "loggers": {
            "uvicorn": {"level": level, "handlers": ["console"], "propagate": False},
            "uvicorn.error": {"level": level, "handlers": ["console"], "propagate": False},
            "uvicorn.access": {"level": "WARNING", "handlers": ["console"], "propagate": False},
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
    }


def setup_logging(level: str = "INFO", json: bool = False) -> None:
    logging.config.dictConfig(build_logging_config(level, json))
