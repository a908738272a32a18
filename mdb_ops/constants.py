"""
Constants for MDB_OPS.

This module contains all shared constants used across the codebase to avoid
magic numbers and improve maintainability.
"""

from typing import Final

# ============================================================================
# DOCUMENT CONSTANTS
# ============================================================================

ID_KEY: Final[str] = "_id"
"""Identity key of every stored document."""

ID_ATTRIBUTE: Final[str] = "id"
"""Default entity attribute holding the identity value."""

DEFAULT_CLIENT_NAME: Final[str] = "<default>"
"""Entity group used when an entity does not declare a client name."""

# ============================================================================
# QUERY CONSTANTS
# ============================================================================

POSITIONAL_MARKER: Final[str] = "?"
"""Marker character of positional placeholders (?1, ?2, ...)."""

NAMED_MARKER: Final[str] = ":"
"""Marker character of named placeholders (:name)."""

NATIVE_QUERY_PREFIX: Final[str] = "{"
"""First significant character of a native (document literal) template."""

SET_OPERATOR: Final[str] = "$set"
"""Update operator wrapped around bare field-assignment documents."""

UPDATE_OPERATORS: Final[frozenset[str]] = frozenset(
    {
        "$set",
        "$unset",
        "$inc",
        "$mul",
        "$min",
        "$max",
        "$rename",
        "$currentDate",
        "$setOnInsert",
        "$push",
        "$pull",
        "$pullAll",
        "$addToSet",
        "$pop",
        "$bit",
    }
)
"""Top-level keys that mark a document as an update document already."""

# Object-query comparison operators mapped to MongoDB query operators.
# None means plain equality ({field: value}).
COMPARISON_OPERATORS: Final[dict[str, str | None]] = {
    "=": None,
    "==": None,
    "!=": "$ne",
    "<>": "$ne",
    "<": "$lt",
    "<=": "$lte",
    ">": "$gt",
    ">=": "$gte",
}

OBJECT_QUERY_KEYWORDS: Final[frozenset[str]] = frozenset(
    {"and", "or", "not", "in", "is", "null", "like"}
)
"""Reserved words of the object-query dialect (case-insensitive)."""

# ============================================================================
# CONNECTION DEFAULTS
# ============================================================================

DEFAULT_MAX_POOL_SIZE: Final[int] = 50
"""Default maximum MongoDB connection pool size."""

DEFAULT_MIN_POOL_SIZE: Final[int] = 10
"""Default minimum MongoDB connection pool size."""

DEFAULT_SERVER_SELECTION_TIMEOUT_MS: Final[int] = 5000
"""Default server selection timeout in milliseconds."""

DEFAULT_MAX_IDLE_TIME_MS: Final[int] = 45000
"""Default maximum idle time before closing connections (milliseconds)."""

APP_NAME: Final[str] = "MDB_OPS"
"""Application name reported to the server."""
