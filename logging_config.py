"""
Logging setup for meeting protocol generation.

The level comes from Config.log_level (LOG_LEVEL). Synthesis stages are timed
with LogContext, which tags every line with the meeting being rendered.

Usage:
    from logging_config import setup_logging, get_logger, LogContext

    setup_logging()
    logger = get_logger(__name__)

    with LogContext(logger, "Encoding signature images", meeting="42", protocol=12):
        ...
"""

import logging
import sys
import time
from typing import Any, Optional

from config import Config, get_config

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# HTTP client, UI server and image libraries log far more than we need
QUIET_LOGGERS = ("urllib3", "requests", "httpx", "gradio", "PIL")


def setup_logging(cfg: Optional[Config] = None, log_file: Optional[str] = None) -> None:
    """
    Configure the root logger from the application config.

    Args:
        cfg: Configuration (default: global config); its log_level is used
        log_file: Optional path to also write logs to
    """
    cfg = cfg or get_config()
    level = getattr(logging, cfg.log_level.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = []
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def format_context(context: dict[str, Any]) -> str:
    """e.g. "[meeting=42 protocol=12]"; empty when there is no context."""
    if not context:
        return ""
    return "[" + " ".join(f"{key}={value}" for key, value in context.items()) + "] "


class LogContext:
    """
    Times one synthesis stage and logs its outcome with meeting context.

    Failures are logged with the exception's details (ProtocolError carries
    voter ids and part names there) and are never suppressed.
    """

    def __init__(self, logger: logging.Logger, operation: str, **context: Any):
        self.logger = logger
        self.operation = operation
        self.prefix = format_context(context)
        self.elapsed: Optional[float] = None
        self._start: Optional[float] = None

    def __enter__(self):
        self._start = time.perf_counter()
        self.logger.debug(f"{self.prefix}Starting: {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed = time.perf_counter() - self._start
        if exc_type is None:
            self.logger.info(f"{self.prefix}{self.operation} done in {self.elapsed:.2f}s")
        else:
            details = getattr(exc_val, "details", None)
            suffix = f" {details}" if details else ""
            self.logger.error(
                f"{self.prefix}{self.operation} failed after {self.elapsed:.2f}s: "
                f"{exc_type.__name__}: {getattr(exc_val, 'message', exc_val)}{suffix}"
            )
        return False
