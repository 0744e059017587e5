"""structlog setup for the relay's request log and stream lifecycle log."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import structlog

from claude_relay import config

STREAM_LOGGER_NAME = "streaming"


@dataclass(frozen=True)
class LogSink:
    """A stdlib logger the relay writes JSON records to."""

    logger_name: Optional[str]
    file_path: str
    console: bool


def logging_enabled() -> bool:
    return config.OBS_LOG_ENABLED


def streaming_logging_enabled() -> bool:
    return config.OBS_STREAM_LOG_ENABLED


def _renderer() -> structlog.processors.JSONRenderer:
    if config.OBS_LOG_PRETTY:
        return structlog.processors.JSONRenderer(indent=2, sort_keys=True)
    return structlog.processors.JSONRenderer()


def _log_level() -> int:
    return logging.DEBUG if config.OBS_LOG_ALL else logging.INFO


def _enabled_sinks() -> List[LogSink]:
    sinks: List[LogSink] = []
    if logging_enabled():
        sinks.append(LogSink(None, config.OBS_LOG_FILE, console=True))
    if streaming_logging_enabled():
        sinks.append(
            LogSink(STREAM_LOGGER_NAME, config.OBS_STREAM_LOG_FILE, console=False)
        )
    return sinks


def _attach(sink: LogSink, formatter: logging.Formatter, level: int) -> None:
    target = logging.getLogger(sink.logger_name)
    target.setLevel(level)
    target.handlers.clear()

    handlers: List[logging.Handler] = []
    if sink.console:
        stdout_handler = logging.StreamHandler(sys.stdout)
        stdout_handler.setLevel(logging.INFO)
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(logging.ERROR)
        handlers.extend([stdout_handler, stderr_handler])

    path = Path(sink.file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(path)
    file_handler.setLevel(level)
    handlers.append(file_handler)

    for handler in handlers:
        handler.setFormatter(formatter)
        target.addHandler(handler)
    # Stream lifecycle records stay out of the request log.
    if sink.logger_name is not None:
        target.propagate = False


def configure_logging() -> None:
    """Route structlog through stdlib logging into the enabled sinks."""
    formatter = structlog.stdlib.ProcessorFormatter(
        processor=_renderer(),
        foreign_pre_chain=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
        ],
    )
    level = _log_level()
    for sink in _enabled_sinks():
        _attach(sink, formatter, level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            _renderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_stream_logger() -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(STREAM_LOGGER_NAME)
