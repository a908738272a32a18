"""
Contextual logging for MDB_OPS.

Log records emitted through ``get_logger()`` carry the current correlation id
and entity context (entity type, collection, ...). Both live in context
variables, so concurrent tasks never see each other's values.
"""

import contextvars
import logging
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "mdb_ops_correlation_id", default=None
)

_entity_context: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar(
    "mdb_ops_entity_context", default=None
)


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """
    Set the correlation id of the current context.

    Args:
        correlation_id: Id to use; a new UUID4 is generated when None

    Returns:
        The correlation id that was set
    """
    correlation_id = correlation_id or str(uuid.uuid4())
    _correlation_id.set(correlation_id)
    return correlation_id


def clear_correlation_id() -> None:
    _correlation_id.set(None)


def set_entity_context(entity: str | None = None, **kwargs: Any) -> None:
    """
    Describe the entity being operated on.

    Args:
        entity: Entity type name
        **kwargs: Additional context (collection, database, ...)
    """
    _entity_context.set({"entity": entity, **kwargs})


def clear_entity_context() -> None:
    _entity_context.set(None)


@contextmanager
def entity_scope(entity: str | None = None, **kwargs: Any) -> Iterator[None]:
    """Set the entity context for the duration of a block, then restore the previous one."""
    token = _entity_context.set({"entity": entity, **kwargs})
    try:
        yield
    finally:
        _entity_context.reset(token)


def get_logging_context() -> dict[str, Any]:
    """Snapshot of the timestamp, correlation id and entity context."""
    context: dict[str, Any] = {"timestamp": datetime.now().isoformat()}

    correlation_id = _correlation_id.get()
    if correlation_id:
        context["correlation_id"] = correlation_id

    entity_context = _entity_context.get()
    if entity_context:
        context.update(entity_context)

    return context


class ContextualLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter merging the logging context into every record's ``extra``."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context = get_logging_context()
        context.update(kwargs.get("extra") or {})
        kwargs["extra"] = context
        return msg, kwargs


def get_logger(name: str) -> ContextualLoggerAdapter:
    """
    Get a contextual logger.

    Args:
        name: Logger name (typically __name__)
    """
    return ContextualLoggerAdapter(logging.getLogger(name), {})


def log_operation(
    logger: logging.Logger | logging.LoggerAdapter,
    operation: str,
    level: int = logging.DEBUG,
    success: bool = True,
    duration_ms: float | None = None,
    **context: Any,
) -> None:
    """
    Log the outcome of a store operation with structured context.

    Args:
        logger: Logger instance
        operation: Operation name
        level: Log level
        success: Whether the operation succeeded
        duration_ms: Operation duration in milliseconds
        **context: Additional context (collection, count, ...)
    """
    extra = get_logging_context()
    extra.update(operation=operation, success=success, **context)

    message = f"Operation: {operation}" if success else f"Operation failed: {operation}"
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)
        message += f" (duration: {duration_ms:.2f}ms)"

    logger.log(level, message, extra=extra)


@contextmanager
def timed_operation(
    logger: logging.Logger | logging.LoggerAdapter,
    operation: str,
    **context: Any,
) -> Iterator[None]:
    """
    Time a block and log its outcome.

    Success is logged at DEBUG. A failure is logged at ERROR and the
    exception is re-raised unchanged.

    Example:
        with timed_operation(logger, "bulk_write", collection="people", count=3):
            await collection.bulk_write(requests, ordered=True)
    """
    start_time = time.perf_counter()
    try:
        yield
    except Exception:
        log_operation(
            logger,
            operation,
            level=logging.ERROR,
            success=False,
            duration_ms=(time.perf_counter() - start_time) * 1000,
            **context,
        )
        raise
    log_operation(
        logger,
        operation,
        duration_ms=(time.perf_counter() - start_time) * 1000,
        **context,
    )
