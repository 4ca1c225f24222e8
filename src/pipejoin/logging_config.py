"""Structured logging utilities."""

import logging
import logging.handlers
import json
import sys
from typing import Any, Optional, TYPE_CHECKING
from datetime import datetime, timezone
from pathlib import Path

if TYPE_CHECKING:
    from .config.schema import LoggingConfig


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        # Add extra fields
        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class DetailedFormatter(logging.Formatter):
    """Human-readable detailed formatter."""

    def __init__(self) -> None:
        fmt = (
            "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | "
            "%(message)s"
        )
        super().__init__(fmt=fmt, datefmt="%Y-%m-%d %H:%M:%S")


class SimpleFormatter(logging.Formatter):
    """Simple formatter for console output."""

    def __init__(self) -> None:
        fmt = "%(levelname)-8s | %(name)s | %(message)s"
        super().__init__(fmt=fmt)


def setup_logging(
    level: str = "INFO",
    format: str = "simple",
    log_file: Optional[Path] = None,
    max_file_size_mb: int = 10,
    backup_count: int = 5,
) -> None:
    """Configure logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        format: Format type (simple, detailed, json)
        log_file: Optional log file path
        max_file_size_mb: Max log file size in MB
        backup_count: Number of backup files to keep
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)

    if format == "json":
        console_handler.setFormatter(StructuredFormatter())
    elif format == "detailed":
        console_handler.setFormatter(DetailedFormatter())
    else:
        console_handler.setFormatter(SimpleFormatter())

    root_logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_file_size_mb * 1024 * 1024,
            backupCount=backup_count,
        )

        # Always use structured format for file logs
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    # Slow-callback and debug-mode chatter from the event loop
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def setup_logging_from_config(config: Optional["LoggingConfig"] = None) -> None:
    """Configure logging from a LoggingConfig (defaults to the loaded config)."""
    if config is None:
        from .config import get_config

        config = get_config().logging

    setup_logging(
        level=config.level,
        format=config.format,
        log_file=Path(config.file) if config.file else None,
    )


def get_logger(name: str) -> logging.Logger:
    """Get logger with structured logging support."""
    return logging.getLogger(name)


def short_repr(value: Any, limit: int) -> str:
    """repr() of a traced value, cut to ``limit`` characters."""
    text = repr(value)
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def trace_limit(logger: logging.Logger) -> Optional[int]:
    """Repr length for value tracing, or None when tracing is off.

    A configuration that fails to load turns tracing off rather than failing
    the join or pipeline that asked.
    """
    if not logger.isEnabledFor(logging.DEBUG):
        return None

    from .config import get_config
    from .errors import ConfigurationError

    try:
        settings = get_config().pipeline
    except ConfigurationError as e:
        logger.warning(
            f"Value tracing disabled: {e.message}",
            extra={"extra_fields": {"error_type": type(e).__name__, **e.context}},
        )
        return None
    return settings.max_repr_length if settings.trace_values else None
