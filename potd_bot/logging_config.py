"""Structured logging configuration for the Commons picture-of-the-day bot."""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

# Extra record attributes copied into the JSON log entry when present
CONTEXT_FIELDS = (
    "execution_id",
    "component",
    "feed_url",
    "item_title",
    "published_ms",
    "is_new",
    "image_id",
    "image_url",
    "field_name",
    "placeholder",
    "post_uri",
    "cid",
    "short_url",
    "state_file",
    "last_publish_timestamp",
    "interval_seconds",
    "status_code",
    "error",
    "execution_start",
    "execution_end",
    "execution_duration_seconds",
    "execution_success",
    "metrics",
)

COMPONENT_LOGGERS = (
    "potd_bot",
    "potd_bot.main",
    "potd_bot.poller",
    "potd_bot.feed_processor",
    "potd_bot.item_parser",
    "potd_bot.commons_client",
    "potd_bot.bluesky_session",
    "potd_bot.deduplicator",
    "potd_bot.secrets_manager",
)


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured JSON logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for name in CONTEXT_FIELDS:
            if hasattr(record, name):
                log_entry[name] = getattr(record, name)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class ExecutionLogger:
    """Logger with execution context and structured logging."""

    def __init__(self, execution_id: str, component: str = "main"):
        """Initialize execution logger.

        Args:
            execution_id: Unique identifier for this execution (process or cycle)
            component: Component name (e.g., 'poller', 'bluesky_session')
        """
        self.execution_id = execution_id
        self.component = component
        self.logger = logging.getLogger(f"potd_bot.{component}")
        self.start_time: datetime | None = None
        self.end_time: datetime | None = None

    def _log_with_context(
        self, level: int, message: str, exc_info: bool = False, **kwargs
    ) -> None:
        """Log message with execution context."""
        extra = {
            "execution_id": self.execution_id,
            "component": self.component,
            **kwargs,
        }
        self.logger.log(level, message, extra=extra, exc_info=exc_info)

    def info(self, message: str, **kwargs) -> None:
        """Log info message with context."""
        self._log_with_context(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        """Log warning message with context."""
        self._log_with_context(logging.WARNING, message, **kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs) -> None:
        """Log error message with context."""
        self._log_with_context(logging.ERROR, message, exc_info=exc_info, **kwargs)

    def debug(self, message: str, **kwargs) -> None:
        """Log debug message with context."""
        self._log_with_context(logging.DEBUG, message, **kwargs)

    def log_execution_start(self, **kwargs) -> None:
        """Log execution start with timestamp."""
        self.start_time = datetime.now(UTC)
        self.info(
            f"Starting {self.component} execution",
            execution_start=self.start_time.isoformat(),
            **kwargs,
        )

    def log_execution_end(self, success: bool = True, **kwargs) -> None:
        """Log execution end with timestamp and duration."""
        self.end_time = datetime.now(UTC)

        duration_seconds = None
        if self.start_time:
            duration_seconds = (self.end_time - self.start_time).total_seconds()

        self.info(
            f"Completed {self.component} execution",
            execution_end=self.end_time.isoformat(),
            execution_duration_seconds=duration_seconds,
            execution_success=success,
            **kwargs,
        )

    def log_placeholder(self, field_name: str, placeholder: str) -> None:
        """Log that an extraction fell back to its placeholder value."""
        self.warning(
            f"No match for {field_name}, using placeholder",
            field_name=field_name,
            placeholder=placeholder,
        )

    def log_metrics(self, metrics: dict[str, Any]) -> None:
        """Log execution metrics."""
        self.info("Execution metrics", metrics=metrics)


def setup_structured_logging(log_level: str = "INFO") -> None:
    """Setup structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    level = getattr(logging, log_level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(StructuredFormatter())
    root_logger.addHandler(console_handler)

    for logger_name in COMPONENT_LOGGERS:
        logger = logging.getLogger(logger_name)
        logger.setLevel(level)
        logger.propagate = True


def new_execution_id(prefix: str = "exec") -> str:
    return f"{prefix}_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S_%f')}"


def create_execution_logger(
    component: str, execution_id: str | None = None
) -> ExecutionLogger:
    """Create an execution logger for a component.

    Args:
        component: Component name
        execution_id: Optional execution ID (will generate one if not provided)

    Returns:
        ExecutionLogger instance
    """
    if not execution_id:
        execution_id = new_execution_id()

    return ExecutionLogger(execution_id, component)
