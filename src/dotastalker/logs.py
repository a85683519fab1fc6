"""structlog setup: colored console output plus a JSON log file."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any

import structlog

PACKAGE_LOGGER = "dotastalker"

SHARED_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
]


def configure_logging(level: str = "INFO", file_path: str | Path | None = None) -> None:
    """Route structlog through stdlib logging.

    Third-party libraries log at WARNING and above; our own loggers use
    ``level``.
    """
    structlog.configure(
        processors=SHARED_PROCESSORS + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(),
            foreign_pre_chain=SHARED_PROCESSORS,
        )
    )
    handlers: list[logging.Handler] = [console]

    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.processors.JSONRenderer(),
                foreign_pre_chain=SHARED_PROCESSORS,
            )
        )
        handlers.append(file_handler)

    root = logging.getLogger()
    root.handlers = handlers
    root.setLevel(logging.WARNING)
    set_log_level(level)


def set_log_level(level: str) -> None:
    logging.getLogger(PACKAGE_LOGGER).setLevel(level)


def on_config_updated(key: str, value: Any) -> None:
    """Config subscriber applying logging.level changes."""
    if key == "logging.level":
        set_log_level(value)
