# =============================================================================
# invoice_core/logging/config.py
# Logging Configuration for the invoicing data layer
# =============================================================================

import logging
import sys
import time
from pathlib import Path
from datetime import datetime
from typing import Optional, Union


LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_DIR = Path("logs")

# Chatty third-party loggers (Supabase client stack)
NOISY_LOGGERS = ("urllib3", "httpx", "httpcore", "hpack", "supabase", "postgrest")


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_to_file: bool = True,
    log_filename: Optional[str] = None,
    log_dir: Optional[Path] = None,
) -> None:
    """
    Configure logging for the data layer and the app embedding it.

    Args:
        level: Level as an int or a name such as "DEBUG"
        log_to_file: Also write a dated log file
        log_filename: File name (default: invoice_YYYY-MM-DD.log)
        log_dir: Directory for log files (default: ./logs)
    """
    handlers = [logging.StreamHandler(sys.stdout)]

    if log_to_file:
        directory = log_dir or LOG_DIR
        directory.mkdir(parents=True, exist_ok=True)
        filename = log_filename or f"invoice_{datetime.now().strftime('%Y-%m-%d')}.log"
        handlers.append(logging.FileHandler(directory / filename))

    logging.basicConfig(
        level=_resolve_level(level),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
        force=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("invoice_core").info(
        f"Logging initialized ({logging.getLevelName(_resolve_level(level))})"
    )


def get_logger(name: str) -> logging.Logger:
    """
    Usage:
        from invoice_core.logging import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)


class LogContext:
    """
    Times a block and logs its start, completion or failure.

    Usage:
        with LogContext(logger, "Syncing 3 pending changes") as ctx:
            ...
        ctx.elapsed  # seconds

    Exceptions are logged and re-raised.
    """

    def __init__(self, logger: logging.Logger, operation: str, level: int = logging.INFO):
        self.logger = logger
        self.operation = operation
        self.level = level
        self.start_time: Optional[float] = None
        self.elapsed: Optional[float] = None

    def __enter__(self):
        self.start_time = time.monotonic()
        self.logger.log(self.level, f"{self.operation}... started")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed = time.monotonic() - self.start_time

        if exc_type is None:
            self.logger.log(self.level, f"{self.operation}... completed ({self.elapsed:.2f}s)")
        else:
            self.logger.error(
                f"{self.operation}... failed ({self.elapsed:.2f}s): {exc_val}",
                exc_info=True,
            )
        return False
