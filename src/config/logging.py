"""Centralized logging configuration for the market data service.

Console output uses a colored formatter during development; production
deployments switch to one JSON object per line with LOG_FORMAT=json. File
logging, when enabled, is always JSON.
"""

import json
import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

# Third-party loggers that are chatty at INFO
_NOISY_LOGGERS = ("urllib3", "httpx", "uvicorn.access")


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON-formatted log string
        """
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Structured context passed via extra={"extra_fields": {...}}
        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Colored console formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
        "RESET": "\033[0m",
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with a colored level name.

        Args:
            record: Log record to format

        Returns:
            Colored formatted log string
        """
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = (
                f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"
            )

        formatted = super().format(record)

        # Other handlers share the record
        record.levelname = levelname

        return formatted


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[Path] = None,
    use_json: bool = False,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """Configure the root logger.

    Call once at process start (CLI callback or API startup).

    Args:
        level: Log level name. Defaults to the LOG_LEVEL environment
            variable, then INFO.
        log_file: Optional path for a rotating JSON log file.
        use_json: Use the JSON formatter on the console. LOG_FORMAT=json or
            LOG_FORMAT=console overrides this argument.
        max_bytes: Maximum size of the log file before rotation (10MB)
        backup_count: Number of rotated files to keep

    Raises:
        ValueError: If the level name is not a valid logging level
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    level = level.upper()

    numeric_level = getattr(logging, level, None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")

    log_format = os.getenv("LOG_FORMAT", "").lower()
    if log_format == "json":
        use_json = True
    elif log_format == "console":
        use_json = False

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)

    if use_json:
        console_formatter: logging.Formatter = JSONFormatter()
    else:
        console_formatter = ConsoleFormatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

    if numeric_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.debug(
        f"Logging initialized: level={level}, "
        f"format={'JSON' if use_json else 'console'}, "
        f"file={'enabled' if log_file else 'disabled'}"
    )


def log_context(**fields: Any) -> dict[str, Any]:
    """Build the ``extra`` argument carrying structured fields.

    JSONFormatter merges the fields into the emitted object; the console
    formatter ignores them.

    Example:
        >>> logger.warning("Provider failed", extra=log_context(provider="CoinGecko"))
    """
    return {"extra_fields": fields}
