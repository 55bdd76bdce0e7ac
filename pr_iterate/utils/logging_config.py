"""
Logging Config
==============
One-time logging setup for the CLI and the API server.

    console  — stderr, colored by level when stderr is a terminal
    file     — {log_dir}/pr_iterate_YYYYMMDD.log, plain text (skipped when log_dir is None)

stdout is never written to, so `pr-iterate run --json` output stays parseable.
"""
import logging
import os
import sys
from datetime import datetime
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Loggers that follow the configured level and reach the root handlers
APP_LOGGERS = ("pr_iterate", "main", "uvicorn", "uvicorn.error", "uvicorn.access")

# Chatty third-party loggers held at WARNING or above
QUIET_LOGGERS = ("httpx", "httpcore")


class ColoredFormatter(logging.Formatter):
    """Wraps each line in the ANSI color of its level."""

    COLORS = {
        logging.DEBUG: "\x1b[36m",
        logging.INFO: "\x1b[32m",
        logging.WARNING: "\x1b[33m",
        logging.ERROR: "\x1b[31m",
        logging.CRITICAL: "\x1b[31;1m",
    }
    RESET = "\x1b[0m"

    def __init__(self) -> None:
        super().__init__(LOG_FORMAT, datefmt=DATE_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        color = self.COLORS.get(record.levelno)
        return f"{color}{line}{self.RESET}" if color else line


def log_file_path(log_dir: str, when: Optional[datetime] = None) -> str:
    return os.path.join(log_dir, f"pr_iterate_{(when or datetime.now()).strftime('%Y%m%d')}.log")


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[str] = "logs",
    color: Optional[bool] = None,
) -> None:
    """
    Replace the root handlers with the pr-iterate console (and file) handlers.

    color=None colors the console only when stderr is a TTY, so CI job logs
    stay free of escape codes.
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(level)

    if color is None:
        color = sys.stderr.isatty()
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(ColoredFormatter() if color else logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console_handler)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file_path(log_dir), encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(file_handler)

    for name in APP_LOGGERS:
        app_logger = logging.getLogger(name)
        app_logger.setLevel(level)
        app_logger.propagate = True

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    root_logger.debug("Logging initialized (console%s)", f" + {log_file_path(log_dir)}" if log_dir else "")
