"""Centralized logging configuration.

Each entry point sets up logging once; every module then just asks for a
named logger:

    from .logging_config import get_logger
    logger = get_logger(__name__)

File output lands in {data_dir}/logs/{process}.log (rotated daily) and
{process}-current.log (rotated by size). The level comes from the
"log_level" setting unless the caller passes one.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path

from . import config


class FlushingStreamHandler(logging.StreamHandler):
    """StreamHandler that flushes after every emit."""

    def emit(self, record):
        super().emit(record)
        self.flush()


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = config.get_settings().get("log_level", "INFO")
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_process_logging(
    process_name: str,
    level: int | str | None = None,
    console: bool = True,
    file: bool = True,
    log_dir: Path | None = None,
) -> logging.Logger:
    """
    Set up logging for a term-party process. Call once per entry point.

    Args:
        process_name: Process identifier (e.g. "host", "cli")
        level: Minimum level; None reads the "log_level" setting
        console: Whether to log to stderr
        file: Whether to log to rotating files
        log_dir: Where log files go (default: {data_dir}/logs)

    Returns:
        The configured root logger
    """
    level = _resolve_level(level)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    fmt = f"[%(asctime)s] [{process_name}] [%(levelname)s] %(name)s: %(message)s"

    if console:
        console_handler = FlushingStreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(fmt=fmt, datefmt="%H:%M:%S"))
        root.addHandler(console_handler)

    if file:
        log_dir = Path(log_dir) if log_dir is not None else config.data_dir() / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        file_fmt = logging.Formatter(fmt=fmt, datefmt="%Y-%m-%d %H:%M:%S")
        for handler in _file_handlers(log_dir, process_name):
            handler.setLevel(level)
            handler.setFormatter(file_fmt)
            root.addHandler(handler)

    return root


def _file_handlers(log_dir: Path, process_name: str) -> list[logging.Handler]:
    """Daily log with two weeks of history, plus a size-capped current log."""
    daily = TimedRotatingFileHandler(
        log_dir / f"{process_name}.log", when="midnight", backupCount=14, encoding="utf-8"
    )
    daily.suffix = "%Y-%m-%d"
    # A chatty session can flood a single day
    current = RotatingFileHandler(
        log_dir / f"{process_name}-current.log", maxBytes=5 * 1024 * 1024, backupCount=5, encoding="utf-8"
    )
    return [daily, current]


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
