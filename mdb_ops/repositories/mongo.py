"""
MongoDB Repository Implementation

Implements the Repository interface on top of ``MongoOperations`` for a
single entity type.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any, Generic, List, Optional, Type, TypeVar

from ..core.handles import QueryHandle, UpdateHandle
from ..core.operations import Entities, MongoOperations, Query, Template
from ..query.sort import SortSpec
from .base import Repository

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MongoRepository(Repository[T], Generic[T]):
    """
    MongoDB implementation of the Repository interface.

    Example:
        people = MongoRepository(ops, Person)

        ada = Person(name="Ada")
        await people.persist(ada)

        adults = await people.list("age >= ?1", 18, sort=Sort.by("name"))
    """

    def __init__(self, operations: MongoOperations, entity_type: Type[T]):
        """
        Initialize the MongoDB repository.

        Args:
            operations: Shared operations instance
            entity_type: Entity type stored by this repository
        """
        self._operations = operations
        self._entity_type = entity_type

    @property
    def entity_type(self) -> Type[T]:
        return self._entity_type

    async def find_by_id(self, id: Any) -> Optional[T]:
        return await self._operations.find_by_id(self._entity_type, id)

    def find(self, query: Query = None, *params: Any, sort: SortSpec = None) -> QueryHandle[T]:
        return self._operations.find(self._entity_type, query, *params, sort=sort)

    def find_all(self, sort: SortSpec = None) -> QueryHandle[T]:
        return self._operations.find_all(self._entity_type, sort=sort)

    async def list(self, query: Query = None, *params: Any, sort: SortSpec = None) -> List[T]:
        return await self._operations.list(self._entity_type, query, *params, sort=sort)

    async def list_all(self, sort: SortSpec = None) -> List[T]:
        return await self._operations.list_all(self._entity_type, sort=sort)

    def stream(
        self, query: Query = None, *params: Any, sort: SortSpec = None
    ) -> AsyncIterator[T]:
        return self._operations.stream(self._entity_type, query, *params, sort=sort)

    def stream_all(self, sort: SortSpec = None) -> AsyncIterator[T]:
        return self._operations.stream_all(self._entity_type, sort=sort)

    async def count(self, query: Query = None, *params: Any) -> int:
        return await self._operations.count(self._entity_type, query, *params)

    async def persist(self, entity: T, *entities: T) -> None:
        await self._operations.persist(entity, *entities)

    async def persist_all(self, entities: Entities) -> None:
        await self._operations.persist_all(entities)

    async def update(self, entity: T, *entities: T) -> None:
        await self._operations.update(entity, *entities)

    async def update_all(self, entities: Entities) -> None:
        await self._operations.update_all(entities)

    async def persist_or_update(self, entity: T, *entities: T) -> None:
        await self._operations.persist_or_update(entity, *entities)

    async def persist_or_update_all(self, entities: Entities) -> None:
        await self._operations.persist_or_update_all(entities)

    async def delete(self, entity: T) -> None:
        await self._operations.delete(entity)

    async def delete_by_id(self, id: Any) -> bool:
        deleted = await self._operations.delete_by_id(self._entity_type, id)
        logger.debug(f"Deleted {self._entity_type.__name__} id={id}: {deleted}")
        return deleted

    async def delete_many(self, query: Template, *params: Any) -> int:
        return await self._operations.delete_many(self._entity_type, query, *params)

    async def delete_all(self) -> int:
        return await self._operations.delete_all(self._entity_type)

    def update_fields(self, update: Template, *params: Any) -> UpdateHandle:
        return self._operations.update_fields(self._entity_type, update, *params)
