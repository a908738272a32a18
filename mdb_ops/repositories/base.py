"""
Abstract Repository Pattern

Defines the repository interface that abstracts data access for one entity
type. Domain services depend on this interface rather than on
``MongoOperations`` directly.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any, Generic, List, Optional, TypeVar

from ..core.handles import QueryHandle, UpdateHandle
from ..core.operations import Entities, Query, Template
from ..query.sort import SortSpec

T = TypeVar("T")


class Repository(ABC, Generic[T]):
    """
    Abstract repository interface for data access.

    Type parameter T is the entity type the repository stores.

    Example:
        class PersonRepository(MongoRepository[Person]):
            async def find_by_email(self, email: str) -> Optional[Person]:
                return await self.find("email", email).first_result()
    """

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @abstractmethod
    async def find_by_id(self, id: Any) -> Optional[T]:
        """
        Get a single entity by identity.

        Args:
            id: Entity identity

        Returns:
            Entity if found, None otherwise
        """
        pass

    @abstractmethod
    def find(self, query: Query = None, *params: Any, sort: SortSpec = None) -> QueryHandle[T]:
        """
        Build a lazy query over the repository's entities.

        Args:
            query: Object-query or native template, a raw filter, or None for all
            *params: Positional values, or a single mapping of named values
            sort: Sort order

        Returns:
            Query handle; nothing runs until a terminal method is awaited
        """
        pass

    @abstractmethod
    def find_all(self, sort: SortSpec = None) -> QueryHandle[T]:
        pass

    @abstractmethod
    async def list(self, query: Query = None, *params: Any, sort: SortSpec = None) -> List[T]:
        """Return every entity matching a query."""
        pass

    @abstractmethod
    async def list_all(self, sort: SortSpec = None) -> List[T]:
        pass

    @abstractmethod
    def stream(
        self, query: Query = None, *params: Any, sort: SortSpec = None
    ) -> AsyncIterator[T]:
        """Iterate over entities matching a query as the cursor delivers them."""
        pass

    @abstractmethod
    def stream_all(self, sort: SortSpec = None) -> AsyncIterator[T]:
        pass

    @abstractmethod
    async def count(self, query: Query = None, *params: Any) -> int:
        """Count entities matching a query."""
        pass

    async def exists(self, query: Template, *params: Any) -> bool:
        """Check whether any entity matches a query."""
        count = await self.count(query, *params)
        return count > 0

    # ------------------------------------------------------------------
    # Instance writes
    # ------------------------------------------------------------------

    @abstractmethod
    async def persist(self, entity: T, *entities: T) -> None:
        """Insert new entities, assigning a generated identity to those without one."""
        pass

    @abstractmethod
    async def persist_all(self, entities: Entities) -> None:
        pass

    @abstractmethod
    async def update(self, entity: T, *entities: T) -> None:
        """Replace the stored entities with the same identity."""
        pass

    @abstractmethod
    async def update_all(self, entities: Entities) -> None:
        pass

    @abstractmethod
    async def persist_or_update(self, entity: T, *entities: T) -> None:
        """Insert entities without identity and upsert the others, in order."""
        pass

    @abstractmethod
    async def persist_or_update_all(self, entities: Entities) -> None:
        pass

    @abstractmethod
    async def delete(self, entity: T) -> None:
        """Delete the stored entity with the same identity."""
        pass

    # ------------------------------------------------------------------
    # Type-level writes
    # ------------------------------------------------------------------

    @abstractmethod
    async def delete_by_id(self, id: Any) -> bool:
        """
        Delete an entity by identity.

        Returns:
            True if an entity was deleted
        """
        pass

    @abstractmethod
    async def delete_many(self, query: Template, *params: Any) -> int:
        """
        Delete entities matching a query.

        Returns:
            Number of deleted entities
        """
        pass

    @abstractmethod
    async def delete_all(self) -> int:
        pass

    @abstractmethod
    def update_fields(self, update: Template, *params: Any) -> UpdateHandle:
        """Build an update of several entities; apply it with ``where()`` or ``all()``."""
        pass
