"""
Logging Configuration Module

The three services (dispatcher, gateway, mint) share one setup: colored
console output, an optional shared log file, and a `service` field on
every record so interleaved lines in that file can be told apart.

Usage:
    from echomint.logger import get_logger

    logger = get_logger(__name__)
    logger.info(f"[{ctx.request_id}] Dispatching process_text")
"""

import logging
import sys
from pathlib import Path
from typing import Optional

CONSOLE_FORMAT = "%(asctime)s │ %(levelname)s │ %(service)s │ %(name)s │ %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)s | %(service)s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = ("aiohttp.access", "uvicorn.access", "azure")


class ColoredFormatter(logging.Formatter):
    """
    Formatter that colors the level name for terminal output.

    Colors:
    - DEBUG: Cyan
    - INFO: Green
    - WARNING: Yellow
    - ERROR: Red
    - CRITICAL: Bold Red
    """

    COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        # Color a copy; the same record also reaches the file handler.
        colored = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelno, self.RESET)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


class ServiceFilter(logging.Filter):
    """Stamp every record with the service name."""

    def __init__(self, service: str):
        super().__init__()
        self.service = service

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "service"):
            record.service = self.service
        return True


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    service: str = "echomint",
    use_colors: bool = True,
) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to a log file, appended to
        service: Name stamped on every record
        use_colors: Color console output when attached to a terminal
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()
    service_filter = ServiceFilter(service)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.addFilter(service_filter)
    if use_colors and sys.stdout.isatty():
        console_handler.setFormatter(ColoredFormatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    else:
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT.replace("│", "|"), datefmt=DATE_FORMAT))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(numeric_level)
        file_handler.addFilter(service_filter)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Logger for a module; pass __name__."""
    return logging.getLogger(name)


_initialized = False


def init_logging(service: str = "echomint") -> None:
    """
    Initialize logging from settings. Called once from each service's lifespan.
    """
    global _initialized
    if _initialized:
        return

    from echomint.config import settings

    setup_logging(
        level=settings.logging.level,
        log_file=settings.logging.file,
        service=service,
    )
    _initialized = True
