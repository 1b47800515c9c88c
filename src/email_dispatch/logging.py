"""Logging setup for email dispatch.

Console output goes to stderr so command output on stdout stays parseable.
The optional log file receives one JSON object per record, including any
``extra=`` fields such as the ``message_id`` the sender attaches.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, TextIO

from .config import LoggingConfig, Settings

# Marks handlers installed here so a second setup call replaces only them
_HANDLER_FLAG = "_email_dispatch_handler"

_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


class StructuredFormatter(logging.Formatter):
    """Formats records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        entry.update(
            (key, value) for key, value in record.__dict__.items() if key not in _RECORD_ATTRS
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


class ColoredFormatter(logging.Formatter):
    """Console formatter that colors the level name."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno)
        if color is None:
            return super().format(record)
        original = record.levelname
        record.levelname = f"{color}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def _install(root: logging.Logger, handler: logging.Handler) -> None:
    setattr(handler, _HANDLER_FLAG, True)
    root.addHandler(handler)


def setup_logging(
    config: Optional[LoggingConfig] = None,
    settings: Optional[Settings] = None,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Configure the root logger from logging settings.

    Args:
        config: Logging configuration; ``settings.logging`` wins when both are given
        settings: Application settings
        stream: Console stream, stderr by default

    Returns:
        The configured root logger

    Raises:
        ValueError: If the configured level is not a logging level name
    """
    if settings is not None:
        config = settings.logging
    config = config or LoggingConfig()

    level = logging.getLevelName(config.level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {config.level}")

    root = logging.getLogger()
    root.setLevel(level)
    for handler in [h for h in root.handlers if getattr(h, _HANDLER_FLAG, False)]:
        root.removeHandler(handler)
        handler.close()

    if config.console_output:
        stream = stream or sys.stderr
        console = logging.StreamHandler(stream)
        use_color = hasattr(stream, "isatty") and stream.isatty()
        console.setFormatter(ColoredFormatter(config.format) if use_color else logging.Formatter(config.format))
        _install(root, console)

    if config.file_path:
        log_file = Path(config.file_path)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=config.max_file_size,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(StructuredFormatter())
        _install(root, file_handler)

    return root


def get_logger(name: str) -> logging.Logger:
    """Return the logger for ``name``, usually a module's ``__name__``."""
    return logging.getLogger(name)
