"""Structured logging configuration with structlog.

Environment variables:
- LOG_FORMAT: "json" for production log aggregation, "console" or unset for
  human-readable colored output.
- LOG_LEVEL: "DEBUG", "INFO" (default), "WARNING", "ERROR", or "CRITICAL".

structlog events and plain stdlib records (uvicorn, starlette) end up on the
same root handlers and are rendered by the same formatter.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

import structlog

LOG_FILE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

_LOG_FORMATS = {"json", "console", ""}
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

# uvicorn installs its own handlers; route them through the root logger instead
_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

# applied to stdlib records too, via foreign_pre_chain
_TAGGING_PROCESSORS = (
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
)

STRUCTLOG_PROCESSORS = (
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.filter_by_level,
    *_TAGGING_PROCESSORS,
    structlog.processors.StackInfoRenderer(),
    structlog.processors.UnicodeDecoder(),
    structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
)


@dataclass(frozen=True)
class LogOptions:
    json_mode: bool
    level: int

    @classmethod
    def from_env(cls) -> LogOptions:
        log_format = os.environ.get("LOG_FORMAT", "").lower()
        if log_format not in _LOG_FORMATS:
            msg = f"Invalid LOG_FORMAT={log_format!r}. Must be 'json', 'console', or unset."
            raise ValueError(msg)
        level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
        if level_name not in _LOG_LEVELS:
            msg = f"Invalid LOG_LEVEL={level_name!r}. Must be one of {', '.join(sorted(_LOG_LEVELS))}."
            raise ValueError(msg)
        return cls(json_mode=log_format == "json", level=getattr(logging, level_name))


def configure_structlog() -> None:
    """Send structlog events into stdlib logging, to be rendered by the root handlers."""
    structlog.configure(
        processors=list(STRUCTLOG_PROCESSORS),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def _is_test() -> bool:
    return "pytest" in sys.modules


def _handler(handler: logging.Handler, *, json_mode: bool, colors: bool = False) -> logging.Handler:
    renderer = structlog.processors.JSONRenderer() if json_mode else structlog.dev.ConsoleRenderer(colors=colors)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=list(_TAGGING_PROCESSORS),
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                renderer,
            ],
        ),
    )
    return handler


def _new_log_file(log_dir: Path | str) -> Path:
    dir_path = Path(log_dir)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path / f"{datetime.now(tz=UTC).strftime(LOG_FILE_TIMESTAMP_FORMAT)}.log"


def setup_logging(
    log_dir: Path | str | None = None,
    level: int | None = None,
) -> Path | None:
    """Configure stdout logging, plus a timestamped file in ``log_dir`` if given.

    ``level`` overrides LOG_LEVEL. Returns the log file path, or None when no
    file is written (no ``log_dir``, or running under pytest).
    """
    options = LogOptions.from_env()
    configure_structlog()

    root_logger = logging.getLogger()
    root_logger.setLevel(options.level if level is None else level)
    root_logger.handlers.clear()
    for name in _UVICORN_LOGGERS:
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True

    root_logger.addHandler(
        _handler(logging.StreamHandler(sys.stdout), json_mode=options.json_mode, colors=sys.stdout.isatty()),
    )
    if log_dir is None or _is_test():
        return None

    file_path = _new_log_file(log_dir)
    root_logger.addHandler(_handler(logging.FileHandler(file_path), json_mode=options.json_mode))
    return file_path
