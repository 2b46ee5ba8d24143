"""structlog setup shared by runs and the state server."""

import logging
from typing import Any

import structlog


def configure_logging(level: int | str = logging.INFO, *, json_output: bool = True) -> None:
    """Route structlog through stdlib logging.

    JSON lines by default; ``json_output=False`` switches to the console
    renderer for interactive debugging.
    """

    if isinstance(level, str):
        level = level.upper()
    renderer: Any = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level, format="%(message)s")


def bind_context(**kwargs: Any) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger().bind(**kwargs)


def run_logger(app: str, stage: str, phase: str) -> structlog.stdlib.BoundLogger:
    """Logger carrying the identity of one run on every event."""
    return bind_context(app=app, stage=stage, phase=phase)
