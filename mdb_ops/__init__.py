"""
MDB_OPS - MongoDB operations for any entity type

Persist, update, delete and query dataclass or pydantic entities through one
entity-agnostic API. Filters and updates are written as native MongoDB
documents or in a small object-query language, with positional (``?1``) or
named (``:name``) parameters.
"""

# Configuration
from .config import OpsConfig
# Core operations
from .core import MongoOperations, Page, QueryHandle, UpdateHandle
# Exceptions
from .exceptions import (BindingError, ConfigurationError, EntityMappingError,
                         MongoOpsError, NonUniqueResultError, NoResultError,
                         QuerySyntaxError)
# Entity mapping
from .mapping import Entity, mongo_entity, mongo_field
# Query layer
from .query import Column, Direction, Parameters, Sort
# Repositories
from .repositories import MongoRepository, Repository

__version__ = "0.1.0"

__all__ = [
    # Core
    "MongoOperations",
    "OpsConfig",
    "QueryHandle",
    "UpdateHandle",
    "Page",
    # Mapping
    "Entity",
    "mongo_entity",
    "mongo_field",
    # Query
    "Parameters",
    "Sort",
    "Column",
    "Direction",
    # Repositories
    "Repository",
    "MongoRepository",
    # Exceptions
    "MongoOpsError",
    "BindingError",
    "QuerySyntaxError",
    "ConfigurationError",
    "EntityMappingError",
    "NoResultError",
    "NonUniqueResultError",
]
