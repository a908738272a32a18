"""
Observability components.

Provides contextual logging with correlation IDs and entity context.
"""

from .logging import (
    ContextualLoggerAdapter,
    clear_correlation_id,
    clear_entity_context,
    entity_scope,
    get_correlation_id,
    get_logger,
    get_logging_context,
    log_operation,
    set_correlation_id,
    set_entity_context,
    timed_operation,
)

__all__ = [
    "get_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
    "set_entity_context",
    "clear_entity_context",
    "entity_scope",
    "get_logging_context",
    "ContextualLoggerAdapter",
    "get_logger",
    "log_operation",
    "timed_operation",
]
