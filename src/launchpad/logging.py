"""Structured logging configuration using structlog.

Settlement runs on a single asyncio loop, so request-scoped fields (ticker,
actor) travel through structlog.contextvars rather than thread locals.
"""

import logging
import os
from contextlib import AbstractContextManager

import structlog

_NOISY_LOGGERS = ("uvicorn.access", "aiosqlite")


def setup_logging(log_level: str = "INFO") -> None:
    """Configure structlog on top of stdlib logging.

    LOG_FORMAT=json selects machine-readable output; anything else
    (default "console") renders with structlog's dev ConsoleRenderer.
    """
    log_format = os.environ.get("LOG_FORMAT", "console").lower()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger with the given name."""
    return structlog.get_logger(name)


def bind_trade_context(**fields: object) -> AbstractContextManager[None]:
    """Bind fields (ticker, actor, ...) to every log line inside a ``with`` block."""
    return structlog.contextvars.bound_contextvars(**fields)
