# ============================================================================
# STRUCTURED LOGGING
# ============================================================================
# STATUS: Core - Structured logging with context
# PURPOSE: Consistent, queryable logging across all components
# ============================================================================
"""
Structured Logging

Provides structured, JSON-formatted or human-readable logging for the
workflow scheduler.

Features:
- Component-based loggers
- Contextual fields (workflow_id, execution_id, job_id)
- JSON output for log aggregation

The context stack lives in a ContextVar: drains, dispatch loops and HTTP
handlers run as separate asyncio tasks and must not see each other's
context.

Usage:
    from core.logging import get_logger, log_context

    logger = get_logger("orchestrator.scheduler")

    with log_context(execution_id=42):
        logger.info("Processing execution")
"""

import json
import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union


class ComponentType(str, Enum):
    """Component types for logging categorization."""
    SCHEDULER = "scheduler"
    LIFECYCLE = "lifecycle"
    TRIGGER = "trigger"
    PROCESSOR = "processor"
    API = "api"
    REPOSITORY = "repository"
    SERVICE = "service"


@dataclass
class LogContext:
    """Contextual fields attached to every record logged inside log_context()."""
    workflow_id: Optional[int] = None
    execution_id: Optional[int] = None
    job_id: Optional[int] = None
    workflow_key: Optional[str] = None
    component: Optional[str] = None
    operation: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict, excluding None values."""
        result = {}
        for key, value in asdict(self).items():
            if value is not None and key != "extra":
                result[key] = value
        if self.extra:
            result.update(self.extra)
        return result


_context_stack: ContextVar[Tuple[LogContext, ...]] = ContextVar("log_context_stack", default=())


def get_current_context() -> LogContext:
    """Get current logging context."""
    stack = _context_stack.get()
    if stack:
        return stack[-1]
    return LogContext()


@contextmanager
def log_context(**kwargs):
    """
    Context manager for adding logging context.

    Example:
        with log_context(workflow_id=1, execution_id=7):
            logger.info("Processing execution")
    """
    parent = get_current_context()
    new_context = LogContext(
        workflow_id=kwargs.get("workflow_id", parent.workflow_id),
        execution_id=kwargs.get("execution_id", parent.execution_id),
        job_id=kwargs.get("job_id", parent.job_id),
        workflow_key=kwargs.get("workflow_key", parent.workflow_key),
        component=kwargs.get("component", parent.component),
        operation=kwargs.get("operation", parent.operation),
        extra={**parent.extra, **kwargs.get("extra", {})},
    )

    token = _context_stack.set(_context_stack.get() + (new_context,))
    try:
        yield new_context
    finally:
        _context_stack.reset(token)


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs log records as JSON for easy parsing by log aggregators.
    """

    def __init__(
        self,
        include_timestamp: bool = True,
        include_level: bool = True,
        include_logger: bool = True,
        include_context: bool = True,
    ):
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_level = include_level
        self.include_logger = include_logger
        self.include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {}

        if self.include_timestamp:
            log_data["timestamp"] = datetime.now(timezone.utc).isoformat(timespec="milliseconds")

        if self.include_level:
            log_data["level"] = record.levelname

        if self.include_logger:
            log_data["logger"] = record.name

        log_data["message"] = record.getMessage()

        if self.include_context:
            context_dict = get_current_context().to_dict()
            if context_dict:
                log_data["context"] = context_dict

        if hasattr(record, "extra") and record.extra:
            log_data["data"] = record.extra

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data["source"] = {
            "file": record.filename,
            "line": record.lineno,
            "function": record.funcName,
        }

        return json.dumps(log_data, default=str)


class HumanFormatter(logging.Formatter):
    """
    Human-readable formatter for development.

    Scheduler context is printed inline, e.g.
        2026-01-01 02:00:00 INFO     orchestrator.scheduler [nightly#3 exec=12 job=4]: Resuming ...
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for human reading."""
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        level = record.levelname.ljust(8)

        context_str = self._context_label(get_current_context())

        message = record.getMessage()

        extra_str = ""
        if hasattr(record, "extra") and record.extra:
            extra_str = f" {record.extra}"

        result = f"{timestamp} {level} {record.name}{context_str}: {message}{extra_str}"

        if record.exc_info:
            result += f"\n{self.formatException(record.exc_info)}"

        return result

    @staticmethod
    def _context_label(context: LogContext) -> str:
        """' [key#workflow exec=N job=N]', or '' outside any log_context()."""
        parts = []
        if context.workflow_key is not None and context.workflow_id is not None:
            parts.append(f"{context.workflow_key}#{context.workflow_id}")
        elif context.workflow_id is not None:
            parts.append(f"workflow={context.workflow_id}")
        elif context.workflow_key is not None:
            parts.append(context.workflow_key)
        if context.execution_id is not None:
            parts.append(f"exec={context.execution_id}")
        if context.job_id is not None:
            parts.append(f"job={context.job_id}")
        return f" [{' '.join(parts)}]" if parts else ""


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that includes context in log records.

    Automatically includes the current log_context() in all log messages.
    """

    def process(self, msg, kwargs):
        """Process log record to include context."""
        extra = dict(kwargs.get("extra", {}))
        extra.update(get_current_context().to_dict())
        if self.extra and self.extra.get("component"):
            extra.setdefault("component", self.extra["component"])

        kwargs["extra"] = {"extra": extra}

        return msg, kwargs


def get_logger(
    name: str,
    component: Optional[ComponentType] = None,
) -> ContextLogger:
    """
    Get a context-aware logger.

    Args:
        name: Logger name (e.g., "orchestrator.scheduler")
        component: Optional component type for categorization

    Returns:
        ContextLogger instance
    """
    base_logger = logging.getLogger(name)
    return ContextLogger(base_logger, {"component": component.value if component else None})


def configure_logging(
    level: Union[str, int] = "INFO",
    json_output: bool = False,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_output: Use JSON format (for production)
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    if json_output or os.getenv("LOG_FORMAT", "").lower() == "json":
        formatter = StructuredFormatter(include_context=True)
    else:
        formatter = HumanFormatter()

    root = logging.getLogger()
    root.setLevel(level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root.addHandler(handler)


__all__ = [
    "ComponentType",
    "LogContext",
    "StructuredFormatter",
    "HumanFormatter",
    "ContextLogger",
    "get_logger",
    "configure_logging",
    "log_context",
    "get_current_context",
]
