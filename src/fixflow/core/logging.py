"""Structured logging infrastructure for fixflow.

Provides structured logging using structlog with batch-specific context
such as batch_id, work_item_id and component names. Supports console
output on stderr and JSON output to stdout or a rotating file.

Example usage:
    from fixflow.core.logging import configure_logging, get_logger

    configure_logging(level="DEBUG", format="console")
    logger = get_logger("scheduler")
    logger.info("scheduler.item_started", index=3)

    # Correlate every entry of a batch run
    ctx = ExecutionContext(batch_id="nightly")
    with with_context(ctx):
        logger.info("batch.started")  # includes batch_id, run_id
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

if TYPE_CHECKING:
    from fixflow.core.config import LogConfig

# Field name fragments whose values are never written to logs
SENSITIVE_PATTERNS = frozenset({
    "api_key",
    "apikey",
    "token",
    "secret",
    "password",
    "credential",
    "authorization",
})


@dataclass(frozen=True)
class ExecutionContext:
    """Immutable correlation identifiers for one batch run.

    Attributes:
        batch_id: Caller supplied name of the batch.
        run_id: Unique id of this ``submit_batch`` invocation.
        work_item_id: Work item currently being processed, if any.
        component: Component emitting the entry.
    """

    batch_id: str
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    work_item_id: str | None = None
    component: str = "unknown"

    def with_item(self, work_item_id: str) -> ExecutionContext:
        """Return a copy scoped to a single work item."""
        return replace(self, work_item_id=work_item_id)

    def with_component(self, component: str) -> ExecutionContext:
        """Return a copy with a different component name."""
        return replace(self, component=component)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a dict for logging, leaving out unset fields."""
        result: dict[str, Any] = {
            "batch_id": self.batch_id,
            "run_id": self.run_id,
            "component": self.component,
        }
        if self.work_item_id is not None:
            result["work_item_id"] = self.work_item_id
        return result


# ContextVar values are copied into asyncio tasks at creation time, so a
# context set around create_task() stays attached to that task only.
_current_context: ContextVar[ExecutionContext | None] = ContextVar(
    "fixflow_context", default=None
)


def get_current_context() -> ExecutionContext | None:
    """Get the current ExecutionContext if set."""
    return _current_context.get()


@contextmanager
def with_context(ctx: ExecutionContext) -> Iterator[ExecutionContext]:
    """Set ``ctx`` as the current ExecutionContext for the block.

    Args:
        ctx: The context to install.

    Yields:
        The installed context.
    """
    token = _current_context.set(ctx)
    try:
        yield ctx
    finally:
        _current_context.reset(token)


def _sanitize_value(key: str, value: Any) -> Any:
    """Return "[REDACTED]" when ``key`` looks sensitive, else ``value``."""
    key_lower = key.lower()
    for pattern in SENSITIVE_PATTERNS:
        if pattern in key_lower:
            return "[REDACTED]"
    return value


def _sanitize_event_dict(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that redacts sensitive fields, one level deep."""
    sanitized: EventDict = {}
    for key, value in event_dict.items():
        if isinstance(value, dict):
            sanitized[key] = {k: _sanitize_value(k, v) for k, v in value.items()}
        else:
            sanitized[key] = _sanitize_value(key, value)
    return sanitized


def _add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that adds an ISO8601 UTC timestamp."""
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def _add_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that merges the current ExecutionContext.

    Explicitly bound keys take precedence over context fields.
    """
    ctx = get_current_context()
    if ctx is not None:
        for key, value in ctx.to_dict().items():
            event_dict.setdefault(key, value)
    return event_dict


class FixflowLogger:
    """Component logger wrapper around structlog.

    The underlying structlog logger is fetched on every call so that
    loggers created at import time still honour ``configure_logging()``
    calls made later.
    """

    def __init__(self, component: str, **initial_context: Any) -> None:
        self._component = component
        self._context: dict[str, Any] = {"component": component, **initial_context}

    def _get_logger(self) -> structlog.stdlib.BoundLogger:
        logger: structlog.stdlib.BoundLogger = structlog.get_logger().bind(**self._context)
        return logger

    def bind(self, **context: Any) -> FixflowLogger:
        """Return a new logger with additional bound context."""
        new_logger = FixflowLogger.__new__(FixflowLogger)
        new_logger._component = self._component
        new_logger._context = {**self._context, **context}
        return new_logger

    def debug(self, event: str, **kw: Any) -> None:
        self._get_logger().debug(event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._get_logger().info(event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._get_logger().warning(event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._get_logger().error(event, **kw)

    def exception(self, event: str, **kw: Any) -> None:
        """Log an error with traceback. Call from inside an except block."""
        self._get_logger().exception(event, **kw)


def _build_processors(
    renderer: Processor,
    include_timestamps: bool,
    include_context: bool,
) -> list[Processor]:
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        _sanitize_event_dict,
    ]
    if include_context:
        processors.append(_add_context)
    if include_timestamps:
        processors.append(_add_timestamp)
    processors.extend([
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ])
    return processors


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO",
    format: Literal["json", "console", "both"] = "console",  # noqa: A002
    file_path: Path | None = None,
    max_file_size_mb: int = 50,
    backup_count: int = 5,
    include_timestamps: bool = True,
    include_context: bool = True,
) -> None:
    """Configure fixflow structured logging.

    Call once at application startup. Library code only ever calls
    ``get_logger()``; without this call structlog's defaults apply.

    Args:
        level: Minimum log level to capture.
        format: "console" for human-readable stderr output, "json" for
            JSON lines (to ``file_path`` if given, otherwise stdout),
            "both" for console rendering on stderr and in ``file_path``.
        file_path: Log file, required when format="both".
        max_file_size_mb: Size at which the log file is rotated.
        backup_count: Number of rotated files to keep.
        include_timestamps: Add ISO8601 UTC timestamps.
        include_context: Add ExecutionContext fields when a context is set.

    Raises:
        ValueError: If format="both" but file_path is not provided.
    """
    if format == "both" and file_path is None:
        raise ValueError("file_path is required when format='both'")

    log_level = getattr(logging, level)
    handlers: list[logging.Handler] = []

    if format in ("console", "both"):
        handlers.append(logging.StreamHandler(sys.stderr))

    if format in ("json", "both"):
        if file_path is not None:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(
                RotatingFileHandler(
                    file_path,
                    maxBytes=max_file_size_mb * 1024 * 1024,
                    backupCount=backup_count,
                    encoding="utf-8",
                )
            )
        else:
            handlers.append(logging.StreamHandler(sys.stdout))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in handlers:
        handler.setLevel(log_level)
        root_logger.addHandler(handler)

    renderer: Processor
    if format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    # cache_logger_on_first_use=False keeps import-time loggers configurable
    structlog.configure(
        processors=_build_processors(renderer, include_timestamps, include_context),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def configure_logging_from(config: LogConfig) -> None:
    """Configure logging from a LogConfig (e.g. ``BatchConfig.logging``)."""
    configure_logging(
        level=config.level,
        format=config.format,
        file_path=config.file_path,
        max_file_size_mb=config.max_file_size_mb,
        backup_count=config.backup_count,
        include_timestamps=config.include_timestamps,
        include_context=config.include_context,
    )


def get_logger(component: str, **initial_context: Any) -> FixflowLogger:
    """Get a fixflow logger for a component.

    Args:
        component: Component name (e.g., "scheduler", "pipeline").
        **initial_context: Additional context to bind.
    """
    return FixflowLogger(component, **initial_context)


__all__ = [
    "ExecutionContext",
    "FixflowLogger",
    "SENSITIVE_PATTERNS",
    "configure_logging",
    "configure_logging_from",
    "get_current_context",
    "get_logger",
    "with_context",
]
