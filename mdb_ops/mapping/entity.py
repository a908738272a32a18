"""
Entity declaration and descriptors.

Entities are dataclasses or pydantic models. Collection, database and client
are declared with the ``mongo_entity`` decorator; every operation works on an
``EntityDescriptor`` built once per entity type.

Example:
    @mongo_entity(collection="people", database="crm")
    @dataclass(kw_only=True)
    class Person(Entity):
        name: str
        birth_year: int = mongo_field("birth", default=0)
"""

import dataclasses
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from ..constants import DEFAULT_CLIENT_NAME
from .codecs import STORED_NAME_KEY, Codec, CodecRegistry

MONGO_ENTITY_ATTRIBUTE = "__mongo_entity__"

C = TypeVar("C", bound=type)


@dataclass(frozen=True)
class MongoEntityOptions:
    """Storage options declared on an entity class."""

    collection: str | None = None
    database: str | None = None
    client_name: str | None = None


def mongo_entity(
    collection: str | None = None,
    database: str | None = None,
    client_name: str | None = None,
) -> Callable[[C], C]:
    """
    Declare where an entity type is stored.

    Args:
        collection: Collection name (defaults to the class name)
        database: Database name (defaults to the client's default database)
        client_name: Named client the entity belongs to (defaults to the default client)
    """

    def decorate(entity_type: C) -> C:
        setattr(
            entity_type,
            MONGO_ENTITY_ATTRIBUTE,
            MongoEntityOptions(collection, database, client_name),
        )
        return entity_type

    return decorate


def mongo_field(name: str, **kwargs: Any) -> Any:
    """
    Dataclass field stored under a different name.

    Example:
        birth_year: int = mongo_field("birth", default=0)
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[STORED_NAME_KEY] = name
    return dataclasses.field(metadata=metadata, **kwargs)


@dataclass(kw_only=True)
class Entity:
    """
    Base class for dataclass entities.

    Provides an ``id`` attribute stored as ``_id``. When it is None on insert,
    an ObjectId is generated and assigned.

    Example:
        @dataclass(kw_only=True)
        class User(Entity):
            email: str
            name: str
            role: str = "user"
    """

    id: Any = None


@dataclass(frozen=True)
class EntityDescriptor:
    """
    Everything an operation needs to know about an entity type.

    Attributes:
        entity_type: The entity class
        collection_name: Collection the entities are stored in
        database_name: Declared database, or None to use the client's default
        client_name: Entity group used to pick the client and default database
        codec: Codec converting entities to documents
    """

    entity_type: type
    collection_name: str
    database_name: str | None
    client_name: str
    codec: Codec

    @classmethod
    def of(cls, entity_type: type, codecs: CodecRegistry) -> "EntityDescriptor":
        # Options are not inherited: a subclass needs its own declaration
        options = entity_type.__dict__.get(MONGO_ENTITY_ATTRIBUTE) or MongoEntityOptions()
        return cls(
            entity_type=entity_type,
            collection_name=options.collection or entity_type.__name__,
            database_name=options.database or None,
            client_name=options.client_name or DEFAULT_CLIENT_NAME,
            codec=codecs.get(entity_type),
        )

    @property
    def id_attribute(self) -> str | None:
        return self.codec.id_attribute

    @property
    def field_mapping(self) -> dict[str, str]:
        return self.codec.field_mapping

    def stored_field(self, name: str) -> str | None:
        """Map an attribute name to its stored name, or None if unknown."""
        return self.codec.stored_field(name)
