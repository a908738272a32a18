"""
Custom exceptions for MDB_OPS.

These exceptions provide more specific error types while maintaining
backward compatibility with RuntimeError. Errors raised by the store client
(pymongo.errors.*) are never wrapped and reach the caller unchanged.
"""

from typing import Any, Dict, Optional


class MongoOpsError(RuntimeError):
    """
    Base exception for MDB_OPS errors.

    Attributes:
        message: Error message
        context: Optional dictionary with additional context (entity,
                 collection_name, query, etc.)
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the exception.

        Args:
            message: Error message
            context: Optional dictionary with additional context information
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return formatted error message with context if available."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


class BindingError(MongoOpsError):
    """
    Raised when parameters cannot be bound into a query template.

    Covers placeholder/value count mismatches, missing named parameters,
    templates mixing positional and named placeholders, and values that have
    no document literal form.

    Attributes:
        message: Error message
        placeholder: The unresolved placeholder (e.g. "?3" or ":name")
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        placeholder: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if placeholder:
            context["placeholder"] = placeholder
        super().__init__(message, context=context)
        self.placeholder = placeholder


class QuerySyntaxError(MongoOpsError):
    """
    Raised when a filter or update template is malformed.

    Attributes:
        message: Error message
        fragment: The offending part of the template
        query: The full template (if available)
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        fragment: Optional[str] = None,
        query: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if fragment is not None:
            context["fragment"] = fragment
        if query is not None:
            context["query"] = query
        super().__init__(message, context=context)
        self.fragment = fragment
        self.query = query


class ConfigurationError(MongoOpsError):
    """
    Raised when configuration is invalid or missing.

    Attributes:
        message: Error message
        config_key: Configuration key that caused the error (if available)
        config_value: Configuration value that caused the error (if available)
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if config_key:
            context["config_key"] = config_key
        if config_value is not None:
            context["config_value"] = config_value
        super().__init__(message, context=context)
        self.config_key = config_key
        self.config_value = config_value


class EntityMappingError(MongoOpsError):
    """
    Raised when an entity type cannot be mapped to a stored document.

    Attributes:
        message: Error message
        entity_type: Name of the entity type involved (if available)
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        entity_type: Optional[type] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if entity_type is not None:
            context["entity_type"] = entity_type.__name__
        super().__init__(message, context=context)
        self.entity_type = entity_type


class NoResultError(MongoOpsError):
    """Raised by single_result() when no document matches."""


class NonUniqueResultError(MongoOpsError):
    """Raised by single_result() when more than one document matches."""
