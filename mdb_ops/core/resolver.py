"""
Collection resolution.

Maps entity types to descriptors, databases and collections. Entities that do
not declare a database use their client's default database name, which is
computed once per entity group and cached for the resolver's lifetime.
"""

import logging
import threading
from collections.abc import Callable

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase

from ..config import OpsConfig
from ..mapping.codecs import CodecRegistry
from ..mapping.entity import EntityDescriptor
from .connection import ClientRegistry

logger = logging.getLogger(__name__)


class DatabaseNameCache:
    """
    Thread-safe cache of default database names by entity group.

    Computation happens outside the lock: it is deterministic for a given
    group, so concurrent first lookups may both compute, and the first stored
    value wins. Entries are never evicted; ``clear()`` is called at teardown.
    """

    def __init__(self) -> None:
        self._names: dict[str, str] = {}
        self._lock = threading.Lock()

    def get_or_compute(self, group: str, compute: Callable[[str], str]) -> str:
        name = self._names.get(group)
        if name is not None:
            return name

        name = compute(group)
        with self._lock:
            return self._names.setdefault(group, name)

    def clear(self) -> None:
        with self._lock:
            self._names.clear()

    def __contains__(self, group: object) -> bool:
        return group in self._names

    def __len__(self) -> int:
        return len(self._names)


class CollectionResolver:
    """
    Resolves entity types to their descriptor, database and collection.

    Example:
        resolver = CollectionResolver(clients, config, codecs)
        collection = resolver.collection(Person)
    """

    def __init__(
        self,
        clients: ClientRegistry,
        config: OpsConfig,
        codecs: CodecRegistry,
        database_names: DatabaseNameCache | None = None,
    ) -> None:
        self._clients = clients
        self._config = config
        self._codecs = codecs
        self.database_names = database_names or DatabaseNameCache()
        self._descriptors: dict[type, EntityDescriptor] = {}
        self._lock = threading.Lock()

    def descriptor(self, entity_type: type) -> EntityDescriptor:
        """
        Get the descriptor of an entity type, building it on first use.

        Raises:
            EntityMappingError: If the type has no codec
        """
        descriptor = self._descriptors.get(entity_type)
        if descriptor is not None:
            return descriptor

        descriptor = EntityDescriptor.of(entity_type, self._codecs)
        with self._lock:
            return self._descriptors.setdefault(entity_type, descriptor)

    def database_name(self, descriptor: EntityDescriptor) -> str:
        """
        Get the database an entity type is stored in.

        Raises:
            ConfigurationError: If no database is declared or configured
        """
        if descriptor.database_name:
            return descriptor.database_name
        return self.database_names.get_or_compute(
            descriptor.client_name, self._config.database_name_for
        )

    def location(self, descriptor: EntityDescriptor) -> tuple[str, str, str]:
        """Return the (client, database, collection) an entity type is stored in."""
        return (
            descriptor.client_name,
            self.database_name(descriptor),
            descriptor.collection_name,
        )

    def database_for(self, descriptor: EntityDescriptor) -> AsyncIOMotorDatabase:
        client = self._clients.get(descriptor.client_name)
        return client[self.database_name(descriptor)]

    def collection_for(self, descriptor: EntityDescriptor) -> AsyncIOMotorCollection:
        return self.database_for(descriptor)[descriptor.collection_name]

    def database(self, entity_type: type) -> AsyncIOMotorDatabase:
        return self.database_for(self.descriptor(entity_type))

    def collection(self, entity_type: type) -> AsyncIOMotorCollection:
        return self.collection_for(self.descriptor(entity_type))

    def close(self) -> None:
        """Forget cached descriptors and database names."""
        with self._lock:
            self._descriptors.clear()
        self.database_names.clear()
        logger.debug("Collection resolver caches cleared")
