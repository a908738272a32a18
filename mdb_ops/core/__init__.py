"""
Core operations.

Client management, collection resolution, write plans, query handles and the
entity-agnostic ``MongoOperations`` orchestrator.
"""

from .connection import ClientRegistry
from .handles import Page, QueryHandle, UpdateHandle
from .operations import MongoOperations, materialize
from .resolver import CollectionResolver, DatabaseNameCache
from .write_plan import Insert, ReplaceOrInsert, build_write_plan, to_write_models

__all__ = [
    "MongoOperations",
    "materialize",
    # Resolution
    "ClientRegistry",
    "CollectionResolver",
    "DatabaseNameCache",
    # Write plans
    "Insert",
    "ReplaceOrInsert",
    "build_write_plan",
    "to_write_models",
    # Handles
    "Page",
    "QueryHandle",
    "UpdateHandle",
]
