"""Structured logging for the assessment tracker, driven by ``TrackerConfig``."""

import logging
import sys
from typing import Optional, TextIO

import structlog

from csf_tracker.core.config import TrackerConfig

SERVICE_NAME = "csf_tracker"


def level_number(level: str) -> int:
    """Numeric value of a level name such as ``"warning"``.

    Raises:
        ValueError: If ``level`` is not a standard logging level.
    """
    number = logging.getLevelName(level.strip().upper())
    if not isinstance(number, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return number


def _open_log_file(config: TrackerConfig) -> Optional[TextIO]:
    if config.log_file is None:
        return None
    config.log_file.parent.mkdir(parents=True, exist_ok=True)
    return open(config.log_file, "a", encoding="utf-8")


def configure_logging(config: Optional[TrackerConfig] = None) -> None:
    """Configure structlog and the standard library root logger.

    Events go to ``config.log_file`` when one is set and to stdout otherwise.
    Every event carries the service name and the workspace data directory.

    Args:
        config: Settings to apply; read from the environment when omitted.
    """
    config = config or TrackerConfig.from_env()
    log_level = level_number(config.log_level)
    stream = _open_log_file(config)

    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stdout,
        level=log_level,
        force=True,
    )

    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if config.log_json or stream is not None:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.WriteLoggerFactory(file=stream) if stream else structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=SERVICE_NAME, data_dir=str(config.data_dir))


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically module name)
    """
    return structlog.get_logger(name)
