"""
MongoDB operations for any entity type.

``MongoOperations`` is the single entry point for persisting, updating,
deleting and querying entities. It knows nothing about a concrete entity:
collection and database come from the entity's descriptor, documents from its
codec, and identity from the encoded document.

Store errors (pymongo ``OperationFailure``, ``BulkWriteError``,
``DuplicateKeyError``, ...) propagate unmodified; nothing is retried.

Usage:
    ops = MongoOperations(OpsConfig(mongo_uri="mongodb://localhost:27017", db_name="crm"))

    await ops.persist(Person(name="Ada"))
    await ops.persist_or_update_all([ada, grace])
    people = await ops.list(Person, "name = ?1", "Ada", sort=Sort.by("name"))
    await ops.update_fields(Person, "status = ?1", "archived").where("age > ?1", 99)
"""

import logging
from collections.abc import AsyncIterable, AsyncIterator, Iterable, Mapping
from dataclasses import is_dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, TypeVar, Union

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pydantic import BaseModel

from ..config import OpsConfig
from ..constants import DEFAULT_CLIENT_NAME
from ..exceptions import EntityMappingError
from ..mapping.codecs import Codec, CodecRegistry
from ..mapping.entity import EntityDescriptor
from ..mapping.identity import extract_identity, identity_filter
from ..observability import entity_scope, timed_operation
from ..observability import get_logger as get_contextual_logger
from ..query import normalize_update, resolve_params, sort_to_document, translate_filter, translate_update
from ..query.sort import SortSpec
from .connection import ClientRegistry
from .handles import QueryHandle, UpdateHandle
from .resolver import CollectionResolver
from .write_plan import build_write_plan, to_write_models

logger = logging.getLogger(__name__)
contextual_logger = get_contextual_logger(__name__)

T = TypeVar("T")

Entities = Union[Iterable[Any], AsyncIterable[Any]]
Template = Union[str, Mapping[str, Any]]
Query = Optional[Template]


async def materialize(entities: Entities) -> List[Any]:
    """
    Consume an iterable or async iterable of entities exactly once.

    Raises:
        TypeError: If a single entity is passed instead of a collection
    """
    if isinstance(entities, BaseModel) or (
        is_dataclass(entities) and not isinstance(entities, type)
    ):
        raise TypeError(
            f"Expected an iterable of entities, got a single {type(entities).__name__}"
        )
    if isinstance(entities, AsyncIterable):
        return [entity async for entity in entities]
    return list(entities)


class MongoOperations:
    """
    Entity-agnostic persistence and query operations.

    Example:
        ops = MongoOperations(client=motor_client)
        await ops.persist(person)
        count = await ops.count(Person, "status = ?1", "active")
    """

    def __init__(
        self,
        config: Optional[OpsConfig] = None,
        client: Optional[AsyncIOMotorClient] = None,
        clients: Optional[Mapping[str, AsyncIOMotorClient]] = None,
        codecs: Optional[CodecRegistry] = None,
    ) -> None:
        """
        Initialize operations.

        Args:
            config: Connection configuration (defaults to environment variables)
            client: Pre-built default client
            clients: Pre-built clients by client name
            codecs: Codec registry (defaults to one building codecs on demand)
        """
        self.config = config or OpsConfig()
        registered = dict(clients or {})
        if client is not None:
            registered.setdefault(DEFAULT_CLIENT_NAME, client)
        self.clients = ClientRegistry(self.config, registered)
        self.codecs = codecs or CodecRegistry()
        self.resolver = CollectionResolver(self.clients, self.config, self.codecs)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def descriptor(self, entity_type: type) -> EntityDescriptor:
        return self.resolver.descriptor(entity_type)

    def _descriptor_of(self, entity: Any) -> EntityDescriptor:
        return self.resolver.descriptor(type(entity))

    def _codec_of(self, entity: Any) -> Codec:
        return self._descriptor_of(entity).codec

    def mongo_collection(self, entity_type: type) -> AsyncIOMotorCollection:
        """Get the raw motor collection of an entity type."""
        return self.resolver.collection(entity_type)

    def mongo_database(self, entity_type: type) -> AsyncIOMotorDatabase:
        """Get the raw motor database of an entity type."""
        return self.resolver.database(entity_type)

    def _resolve_batch(self, batch: Sequence[Any]) -> Tuple[EntityDescriptor, AsyncIOMotorCollection]:
        descriptors = [self._descriptor_of(entity) for entity in batch]
        first = descriptors[0]
        target = self.resolver.location(first)
        for descriptor in descriptors[1:]:
            if descriptor is first:
                continue
            location = self.resolver.location(descriptor)
            if location != target:
                raise EntityMappingError(
                    "A batch must target a single collection",
                    entity_type=descriptor.entity_type,
                    context={
                        "expected": ".".join(target[1:]),
                        "found": ".".join(location[1:]),
                    },
                )
        return first, self.resolver.collection_for(first)

    def _filter(
        self,
        descriptor: EntityDescriptor,
        query: Query,
        params: Sequence[Any],
    ) -> Optional[Dict[str, Any]]:
        if query is None:
            return None
        if isinstance(query, Mapping):
            return dict(query)
        return translate_filter(query, resolve_params(params), descriptor)

    # ------------------------------------------------------------------
    # Instance operations
    # ------------------------------------------------------------------

    async def persist(self, entity: Any, *entities: Any) -> None:
        """
        Insert one or more entities.

        Entities without identity get a generated ObjectId assigned.
        """
        if entities:
            await self.persist_all([entity, *entities])
            return

        descriptor = self._descriptor_of(entity)
        collection = self.resolver.collection_for(descriptor)
        document = descriptor.codec.document_for_insert(entity)
        await collection.insert_one(document)
        logger.debug(f"Inserted entity into '{descriptor.collection_name}'")

    async def persist_all(self, entities: Entities) -> None:
        """Insert a batch of entities with a single insert_many. An empty batch is a no-op."""
        batch = await materialize(entities)
        if not batch:
            return

        descriptor, collection = self._resolve_batch(batch)
        documents = [self._codec_of(entity).document_for_insert(entity) for entity in batch]
        with entity_scope(descriptor.entity_type.__name__), timed_operation(
            contextual_logger,
            "persist_all",
            collection=descriptor.collection_name,
            count=len(documents),
        ):
            await collection.insert_many(documents)

    async def update(self, entity: Any, *entities: Any) -> None:
        """Replace the stored document of one or more entities, matched by identity."""
        if entities:
            await self.update_all([entity, *entities])
            return

        descriptor = self._descriptor_of(entity)
        identity = extract_identity(entity, descriptor.codec)
        if identity is None:
            logger.warning(
                f"Updating a {descriptor.entity_type.__name__} without identity; "
                "no document will match"
            )
        collection = self.resolver.collection_for(descriptor)
        await collection.replace_one(identity_filter(identity), descriptor.codec.encode(entity))

    async def update_all(self, entities: Entities) -> None:
        """Replace each entity's stored document, one request per entity, in order."""
        batch = await materialize(entities)
        if not batch:
            return

        self._resolve_batch(batch)
        for entity in batch:
            await self.update(entity)

    async def persist_or_update(self, entity: Any, *entities: Any) -> None:
        """
        Insert entities without identity, upsert entities with one.

        Several entities are written with one ordered bulk write.
        """
        if entities:
            await self.persist_or_update_all([entity, *entities])
            return

        descriptor = self._descriptor_of(entity)
        collection = self.resolver.collection_for(descriptor)
        identity = extract_identity(entity, descriptor.codec)
        if identity is None:
            await collection.insert_one(descriptor.codec.document_for_insert(entity))
        else:
            await collection.replace_one(
                identity_filter(identity), descriptor.codec.encode(entity), upsert=True
            )

    async def persist_or_update_all(
        self, entities: Entities
    ) -> None:
        """
        Write a batch as a single ordered bulk write.

        The store applies requests in input order and stops at the first
        failure; the resulting ``BulkWriteError`` is raised unmodified and
        requests applied before the failure stay applied.
        """
        batch = await materialize(entities)
        if not batch:
            return

        descriptor, collection = self._resolve_batch(batch)
        plan = build_write_plan(batch, self._codec_of)
        requests = to_write_models(plan, self._codec_of)

        with entity_scope(descriptor.entity_type.__name__), timed_operation(
            contextual_logger,
            "persist_or_update_all",
            collection=descriptor.collection_name,
            count=len(requests),
        ):
            await collection.bulk_write(requests, ordered=True)

    async def delete(self, entity: Any) -> None:
        """Delete the stored document of an entity, matched by identity."""
        descriptor = self._descriptor_of(entity)
        identity = extract_identity(entity, descriptor.codec)
        collection = self.resolver.collection_for(descriptor)
        await collection.delete_one(identity_filter(identity))

    # ------------------------------------------------------------------
    # Type-level queries
    # ------------------------------------------------------------------

    def find(
        self,
        entity_type: Type[T],
        query: Query = None,
        *params: Any,
        sort: SortSpec = None,
    ) -> QueryHandle[T]:
        """
        Build a lazy query handle.

        Args:
            entity_type: Entity type to query
            query: Object-query or native template, a raw filter mapping, or None for all
            *params: Positional values, or a single mapping / Parameters of named values
            sort: Sort order

        Raises:
            BindingError: If parameters do not match the placeholders
            QuerySyntaxError: If the template is malformed
        """
        descriptor = self.resolver.descriptor(entity_type)
        return QueryHandle(
            self.resolver.collection_for(descriptor),
            descriptor,
            self._filter(descriptor, query, params),
            sort_to_document(sort, descriptor),
        )

    def find_all(self, entity_type: Type[T], sort: SortSpec = None) -> QueryHandle[T]:
        return self.find(entity_type, None, sort=sort)

    async def find_by_id(self, entity_type: Type[T], identity: Any) -> Optional[T]:
        descriptor = self.resolver.descriptor(entity_type)
        collection = self.resolver.collection_for(descriptor)
        document = await collection.find_one(identity_filter(identity))
        if document is None:
            return None
        return descriptor.codec.decode(document)

    async def list(
        self,
        entity_type: Type[T],
        query: Query = None,
        *params: Any,
        sort: SortSpec = None,
    ) -> List[T]:
        return await self.find(entity_type, query, *params, sort=sort).list()

    async def list_all(self, entity_type: Type[T], sort: SortSpec = None) -> List[T]:
        return await self.find_all(entity_type, sort=sort).list()

    def stream(
        self,
        entity_type: Type[T],
        query: Query = None,
        *params: Any,
        sort: SortSpec = None,
    ) -> AsyncIterator[T]:
        return self.find(entity_type, query, *params, sort=sort).stream()

    def stream_all(self, entity_type: Type[T], sort: SortSpec = None) -> AsyncIterator[T]:
        return self.find_all(entity_type, sort=sort).stream()

    async def count(self, entity_type: type, query: Query = None, *params: Any) -> int:
        descriptor = self.resolver.descriptor(entity_type)
        collection = self.resolver.collection_for(descriptor)
        return await collection.count_documents(self._filter(descriptor, query, params) or {})

    # ------------------------------------------------------------------
    # Type-level writes
    # ------------------------------------------------------------------

    async def delete_many(self, entity_type: type, query: Template, *params: Any) -> int:
        """
        Delete every document matching a filter.

        Returns:
            Number of deleted documents
        """
        descriptor = self.resolver.descriptor(entity_type)
        collection = self.resolver.collection_for(descriptor)
        filter = self._filter(descriptor, query, params) or {}
        result = await collection.delete_many(filter)
        logger.debug(
            f"Deleted {result.deleted_count} document(s) from '{descriptor.collection_name}'"
        )
        return result.deleted_count

    async def delete_all(self, entity_type: type) -> int:
        result = await self.mongo_collection(entity_type).delete_many({})
        return result.deleted_count

    async def delete_by_id(self, entity_type: type, identity: Any) -> bool:
        """Delete one document by identity; True if a document was deleted."""
        result = await self.mongo_collection(entity_type).delete_one(identity_filter(identity))
        return result.deleted_count == 1

    def update_fields(
        self,
        entity_type: type,
        update: Template,
        *params: Any,
    ) -> UpdateHandle:
        """
        Build an update handle.

        Bare field assignments are wrapped in ``$set``; documents holding
        update operators are used as is.
        """
        descriptor = self.resolver.descriptor(entity_type)
        if isinstance(update, Mapping):
            document = normalize_update(update)
        else:
            document = translate_update(update, resolve_params(params), descriptor)
        return UpdateHandle(self.resolver.collection_for(descriptor), descriptor, document)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """
        Close owned clients and clear cached descriptors and database names.

        This method is idempotent - it's safe to call multiple times.
        """
        self.resolver.close()
        self.clients.close()
