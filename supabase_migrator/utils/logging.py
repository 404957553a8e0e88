"""
Logging setup for the Supabase Migrator.

This module provides console logging through Rich, optional rotating file
logs, structured JSON output, and a stage-aware logger used by the
orchestrator.
"""

import json
import logging
import logging.handlers
import sys
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER_NAME = "supabase_migrator"

_PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# LogRecord attributes that are not user-supplied metadata
_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'taskName',
    'getMessage', 'exc_info', 'exc_text', 'stack_info', 'message', 'asctime',
    'category',
}


class LogCategory(str, Enum):
    """Categories for structured logging."""
    SYSTEM = "system"
    MIGRATION = "migration"
    DATABASE = "database"
    SECRETS = "secrets"
    TRANSFER = "transfer"
    CLI = "cli"


@dataclass
class LogEntry:
    """Structured log entry with metadata."""
    timestamp: datetime = field(default_factory=datetime.now)
    level: str = "INFO"
    category: LogCategory = LogCategory.SYSTEM
    logger: str = ROOT_LOGGER_NAME
    message: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert log entry to dictionary."""
        data = asdict(self)
        data['timestamp'] = self.timestamp.isoformat()
        data['category'] = self.category.value
        return data

    def to_json(self) -> str:
        """Convert log entry to JSON string."""
        return json.dumps(self.to_dict(), default=str)


class StructuredFormatter(logging.Formatter):
    """Formatter for structured JSON logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        category = getattr(record, 'category', LogCategory.SYSTEM)
        entry = LogEntry(
            timestamp=datetime.fromtimestamp(record.created),
            level=record.levelname,
            category=LogCategory(category),
            logger=record.name,
            message=record.getMessage(),
        )

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                entry.metadata[key] = value

        if record.exc_info:
            entry.metadata['exception'] = self.formatException(record.exc_info)

        return entry.to_json()


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    rich_console: bool = True,
    structured_logging: bool = False,
    log_rotation: bool = True,
    max_log_size: int = 50 * 1024 * 1024,  # 50MB
    backup_count: int = 5,
    console: Optional[Console] = None
) -> logging.Logger:
    """
    Set up logging for the Supabase Migrator.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path
        rich_console: Whether to use the Rich console handler
        structured_logging: Whether to emit one JSON object per record
        log_rotation: Whether to rotate the log file
        max_log_size: Maximum log file size before rotation
        backup_count: Number of rotated files to keep
        console: Rich console to log to (stderr by default)

    Returns:
        Configured package logger
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()

    if rich_console and not structured_logging:
        console_handler: logging.Handler = RichHandler(
            console=console or Console(stderr=True),
            show_time=True,
            show_path=False,
            rich_tracebacks=True
        )
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        if structured_logging:
            console_handler.setFormatter(StructuredFormatter())
        else:
            console_handler.setFormatter(logging.Formatter(fmt=_PLAIN_FORMAT, datefmt=_DATE_FORMAT))

    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        if log_rotation:
            file_handler: logging.Handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=max_log_size,
                backupCount=backup_count
            )
        else:
            file_handler = logging.FileHandler(log_file)

        if structured_logging:
            file_handler.setFormatter(StructuredFormatter())
        else:
            file_handler.setFormatter(logging.Formatter(fmt=_PLAIN_FORMAT, datefmt=_DATE_FORMAT))

        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a specific component."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class StageLogger:
    """Logger for migration runs that tags records with the current stage."""

    def __init__(self, run_id: str, logger: Optional[logging.Logger] = None):
        self.run_id = run_id
        self.logger = logger or get_logger("run")

    def _log(self, level: int, message: str, stage: Optional[str] = None, **metadata):
        extra = {
            'category': LogCategory.MIGRATION,
            'run_id': self.run_id,
            'stage': stage,
            **metadata
        }
        self.logger.log(level, message, extra=extra)

    def info(self, message: str, stage: Optional[str] = None, **metadata):
        self._log(logging.INFO, message, stage, **metadata)

    def warning(self, message: str, stage: Optional[str] = None, **metadata):
        self._log(logging.WARNING, message, stage, **metadata)

    def error(self, message: str, stage: Optional[str] = None, **metadata):
        self._log(logging.ERROR, message, stage, **metadata)

    def stage_start(self, stage: str, title: str):
        """Log stage start."""
        self.info(f"{title}...", stage=stage, stage_status='started')

    def stage_complete(self, stage: str, duration: float):
        """Log stage completion."""
        self.info(
            f"Completed stage: {stage} (took {duration:.2f}s)",
            stage=stage,
            stage_status='completed',
            duration=duration
        )

    def stage_skipped(self, stage: str):
        """Log a stage disabled by configuration."""
        self.info(f"Skipping stage: {stage}", stage=stage, stage_status='skipped')

    def stage_failed(self, stage: str, error: str, error_code: Optional[str] = None):
        """Log stage failure."""
        self.error(
            f"Failed stage: {stage} - {error}",
            stage=stage,
            stage_status='failed',
            error_code=error_code
        )
