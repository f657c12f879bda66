"""
Logging configuration for hexindex.

Console logging to stderr (stdout belongs to the MCP stdio transport), an
optional rotating log file, and optional JSON formatting.
"""

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are chatty at INFO
NOISY_LOGGERS = ("sentence_transformers", "httpx", "urllib3", "filelock")


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    json_format: bool = False,
    max_log_size_mb: int = 10,
    log_backups: int = 5,
) -> None:
    """
    Configure application-wide logging for hexindex.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to a rotating log file
        json_format: Use JSON formatting for logs
        max_log_size_mb: Maximum log file size in MB before rotation
        log_backups: Number of rotated log files to keep

    Example:
        setup_logging(level="DEBUG", log_file=Path("~/.hexindex/hexindex.log"))
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    if json_format:
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(fmt=TEXT_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(numeric_level)
    root_logger.addHandler(console_handler)

    if log_file:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                filename=str(log_file),
                maxBytes=max_log_size_mb * 1024 * 1024,
                backupCount=log_backups,
                encoding="utf-8",
            )
            file_handler.setFormatter(formatter)
            file_handler.setLevel(numeric_level)
            root_logger.addHandler(file_handler)
        except OSError as e:
            root_logger.warning(f"Failed to set up file logging: {e}. Using console only.")

    if numeric_level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.debug(
        f"Logging initialized: level={level}, "
        f"file={'enabled' if log_file else 'disabled'}, "
        f"format={'JSON' if json_format else 'text'}"
    )


def setup_logging_from_config(config, debug: bool = False) -> None:
    """
    Configure logging from the [logging] section of a Config.

    Args:
        config: hexindex Config instance
        debug: Force DEBUG level regardless of configuration
    """
    log_file = config.get("logging", "file")
    setup_logging(
        level="DEBUG" if debug else config.get("logging", "level", default="INFO"),
        log_file=Path(log_file).expanduser() if log_file else None,
        json_format=bool(config.get("logging", "json", default=False)),
    )


def set_log_level(level: str) -> None:
    """
    Dynamically change the log level for all handlers.

    Args:
        level: New log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers:
        handler.setLevel(numeric_level)

    root_logger.info(f"Log level changed to: {level}")
