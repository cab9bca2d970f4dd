"""
Logging configuration for the Dynamic Form Builder.

Console output is colored when attached to a terminal; with file logging on,
every record also goes to a rotating app.log and errors additionally to
error.log. Records logged with a `form_id` or `field_id` extra carry that
context into the formatted line.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Optional

import psutil

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
CONSOLE_FORMAT = "%(asctime)s - %(name)s - [%(levelname)s] - %(message)s%(form_context)s%(resource_info)s"
FILE_FORMAT = "%(asctime)s - %(name)s - [%(levelname)s] - [PID:%(pid)s] - %(message)s%(form_context)s"
ERROR_FORMAT = FILE_FORMAT + "\nLocation: %(pathname)s:%(lineno)d in %(funcName)s\n"

MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


class PerformanceLogger:
    """Process memory and CPU snapshots, attached to loggers as `.perf`."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.process = psutil.Process()

    def log_memory_usage(self, context: str = ""):
        memory_mb = self.process.memory_info().rss / 1024 / 1024
        self.logger.info(
            f"MEMORY - {context}: {memory_mb:.2f} MB",
            extra={"metric_type": "memory", "context": context, "memory_mb": memory_mb}
        )

    def log_cpu_usage(self, context: str = "", interval: float = 0.1):
        cpu_percent = self.process.cpu_percent(interval=interval)
        self.logger.info(
            f"CPU - {context}: {cpu_percent:.2f}%",
            extra={"metric_type": "cpu", "context": context, "cpu_percent": cpu_percent}
        )

    def log_performance_snapshot(self, context: str = ""):
        self.log_memory_usage(context)
        self.log_cpu_usage(context)


class ContextFilter(logging.Filter):
    """Fill in the pid, form context and resource fields the formats expect."""

    def filter(self, record):
        record.pid = os.getpid()

        context = []
        for key in ("form_id", "field_id"):
            value = getattr(record, key, None)
            if value:
                context.append(f"{key}={value}")
        record.form_context = f" [{' '.join(context)}]" if context else ""

        resources = []
        if hasattr(record, "memory_mb"):
            resources.append(f"MEM: {record.memory_mb:.2f}MB")
        if hasattr(record, "cpu_percent"):
            resources.append(f"CPU: {record.cpu_percent:.2f}%")
        record.resource_info = f" [{', '.join(resources)}]" if resources else ""

        return True


class ColoredFormatter(logging.Formatter):
    """Colors the level name on terminals."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record):
        if not sys.stdout.isatty():
            return super().format(record)
        original = record.levelname
        record.levelname = f"{self.COLORS.get(original, '')}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def _rotating_handler(path: Path, level: int, fmt: str) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=DATE_FORMAT))
    handler.addFilter(ContextFilter())
    return handler


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[str] = None,
    enable_file_logging: bool = True
) -> None:
    """
    Configure the root logger.

    Args:
        log_level: Logging level name
        log_dir: Directory for app.log and error.log (default: ./logs)
        enable_file_logging: Whether to write the rotating log files
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    console_handler.addFilter(ContextFilter())
    root_logger.addHandler(console_handler)

    if enable_file_logging:
        directory = Path(log_dir or "logs")
        directory.mkdir(parents=True, exist_ok=True)
        root_logger.addHandler(_rotating_handler(directory / "app.log", level, FILE_FORMAT))
        root_logger.addHandler(_rotating_handler(directory / "error.log", logging.ERROR, ERROR_FORMAT))

    for noisy in ("asyncio", "multipart", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging initialized - Level: {log_level}, File Logging: {enable_file_logging}"
    )


def get_logger(name: str) -> logging.Logger:
    """Module logger with a `.perf` PerformanceLogger attached."""
    logger = logging.getLogger(name)
    if not hasattr(logger, "perf"):
        logger.perf = PerformanceLogger(logger)
    return logger


def log_operation_start(logger: logging.Logger, operation: str, **kwargs):
    logger.info(
        f"Starting operation: {operation}",
        extra={"operation": operation, "phase": "start", **kwargs}
    )


def log_operation_end(logger: logging.Logger, operation: str, success: bool = True, **kwargs):
    status = "completed" if success else "failed"
    logger.log(
        logging.INFO if success else logging.ERROR,
        f"Operation {status}: {operation}",
        extra={"operation": operation, "phase": "end", "success": success, **kwargs}
    )


def log_api_request(logger: logging.Logger, method: str, path: str, status_code: int, duration_ms: float):
    """Log a completed API request; client errors and server errors log as warnings."""
    level = logging.WARNING if status_code >= 400 else logging.INFO
    logger.log(
        level,
        f"API {method} {path} - {status_code} - {duration_ms:.2f}ms",
        extra={
            "method": method,
            "path": path,
            "status_code": status_code,
            "duration_ms": duration_ms
        }
    )
