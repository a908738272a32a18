"""
Entity codecs.

A codec converts an entity instance into the document that is stored and
back. Every write path and the identity extractor go through the same codec,
so the identity read before a write is the identity the store will see.

Two entity styles are supported out of the box:

- dataclasses (stored names overridden with ``mongo_field("stored_name")``)
- pydantic models (stored names are field aliases)

An attribute named ``id`` is stored as ``_id`` unless it declares its own
stored name.
"""

import dataclasses
import enum
import functools
import logging
import threading
import types
import typing
from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from bson import ObjectId
from pydantic import BaseModel

from ..constants import ID_ATTRIBUTE, ID_KEY
from ..exceptions import EntityMappingError

logger = logging.getLogger(__name__)

T = TypeVar("T")

STORED_NAME_KEY = "bson_name"
"""Dataclass field metadata key holding the stored field name."""


def _encode_value(value: Any) -> Any:
    """Convert nested values into BSON-encodable ones."""
    if isinstance(value, enum.Enum):
        return value.value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _nested_codec(type(value)).encode(value)
    if isinstance(value, BaseModel):
        return _nested_codec(type(value)).encode(value)
    if isinstance(value, dict):
        return {key: _encode_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_encode_value(item) for item in value]
    return value


def _value_type(hint: Any) -> type | None:
    """Return the class a stored value decodes to, unwrapping Optional."""
    if typing.get_origin(hint) in (typing.Union, types.UnionType):
        args = [arg for arg in typing.get_args(hint) if arg is not type(None)]
        hint = args[0] if len(args) == 1 else None
    if isinstance(hint, type) and typing.get_origin(hint) is None:
        return hint
    return None


@functools.lru_cache(maxsize=None)
def _nested_codec(value_type: type) -> "Codec":
    return create_codec(value_type)


def _decode_value(value_type: type, value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, dict) and (
        dataclasses.is_dataclass(value_type) or issubclass(value_type, BaseModel)
    ):
        return _nested_codec(value_type).decode(value)
    if issubclass(value_type, enum.Enum) and not isinstance(value, value_type):
        return value_type(value)
    return value


class Codec(ABC, Generic[T]):
    """
    Converts entities of one type to stored documents and back.

    Attributes:
        entity_type: The entity class handled by this codec
        id_attribute: Attribute holding the identity (None if the type has none)
        field_mapping: Attribute name to stored field name
    """

    def __init__(self, entity_type: type[T], field_mapping: dict[str, str]):
        self.entity_type = entity_type
        self.field_mapping = field_mapping
        self.id_attribute = next(
            (name for name, stored in field_mapping.items() if stored == ID_KEY), None
        )
        self._stored_names = frozenset(field_mapping.values())

    @abstractmethod
    def encode(self, instance: T) -> dict[str, Any]:
        """
        Build the stored document of an entity.

        The identity key is omitted when the entity has no identity yet.
        Never mutates the instance.
        """

    @abstractmethod
    def decode(self, document: dict[str, Any]) -> T:
        """Build an entity from a stored document."""

    @abstractmethod
    def _is_frozen(self) -> bool:
        """Tell whether instances reject attribute assignment."""

    @property
    def known_fields(self) -> frozenset[str]:
        """Attribute names and stored names accepted in queries."""
        return frozenset(self.field_mapping) | self._stored_names

    def stored_field(self, name: str) -> str | None:
        """
        Map an attribute name (or dotted path) to its stored name.

        Returns:
            The stored name, or None if the first path segment is unknown
        """
        head, separator, rest = name.partition(".")
        if head in self.field_mapping:
            return self.field_mapping[head] + separator + rest
        if head in self._stored_names:
            return name
        return None

    def assign_identity(self, instance: T, identity: Any) -> None:
        """Write a store-generated identity back to the entity, when it can hold one."""
        if self.id_attribute is None or self._is_frozen():
            return
        setattr(instance, self.id_attribute, identity)

    def document_for_insert(self, instance: T) -> dict[str, Any]:
        """
        Build the document to insert, generating an ObjectId when the entity has none.

        The generated identity is assigned to the entity so callers can use it
        for later updates.
        """
        document = self.encode(instance)
        if ID_KEY not in document:
            identity = ObjectId()
            self.assign_identity(instance, identity)
            document = {ID_KEY: identity, **document}
        return document


class DataclassCodec(Codec[T]):
    """Codec for dataclass entities."""

    def __init__(self, entity_type: type[T]):
        if not (dataclasses.is_dataclass(entity_type) and isinstance(entity_type, type)):
            raise EntityMappingError(
                f"{entity_type!r} is not a dataclass", entity_type=entity_type
            )
        self._fields = dataclasses.fields(entity_type)
        mapping = {}
        for field in self._fields:
            stored = field.metadata.get(STORED_NAME_KEY)
            if stored is None:
                stored = ID_KEY if field.name == ID_ATTRIBUTE else field.name
            mapping[field.name] = stored
        super().__init__(entity_type, mapping)

        try:
            self._hints = typing.get_type_hints(entity_type)
        except (NameError, TypeError):
            logger.debug(f"Could not resolve type hints of {entity_type.__name__}")
            self._hints = {}

    def _is_frozen(self) -> bool:
        return self.entity_type.__dataclass_params__.frozen

    def encode(self, instance: T) -> dict[str, Any]:
        document: dict[str, Any] = {}
        for field in self._fields:
            value = getattr(instance, field.name)
            stored = self.field_mapping[field.name]
            if stored == ID_KEY and value is None:
                continue
            document[stored] = _encode_value(value)
        return document

    def decode(self, document: dict[str, Any]) -> T:
        by_stored_name = {stored: name for name, stored in self.field_mapping.items()}
        init_fields = {field.name for field in self._fields if field.init}
        kwargs: dict[str, Any] = {}

        for key, value in document.items():
            name = by_stored_name.get(key)
            if name is None or name not in init_fields:
                continue
            value_type = _value_type(self._hints.get(name))
            if value_type is not None:
                value = _decode_value(value_type, value)
            kwargs[name] = value

        try:
            return self.entity_type(**kwargs)
        except TypeError as e:
            raise EntityMappingError(
                f"Cannot build {self.entity_type.__name__} from document: {e}",
                entity_type=self.entity_type,
            ) from e


class PydanticCodec(Codec[T]):
    """Codec for pydantic model entities."""

    def __init__(self, entity_type: type[T]):
        if not (isinstance(entity_type, type) and issubclass(entity_type, BaseModel)):
            raise EntityMappingError(
                f"{entity_type!r} is not a pydantic model", entity_type=entity_type
            )
        self._dump_keys: dict[str, str] = {}
        mapping = {}
        for name, info in entity_type.model_fields.items():
            self._dump_keys[name] = info.alias or name
            if info.alias:
                mapping[name] = info.alias
            else:
                mapping[name] = ID_KEY if name == ID_ATTRIBUTE else name
        super().__init__(entity_type, mapping)

    def _is_frozen(self) -> bool:
        return bool(self.entity_type.model_config.get("frozen"))

    def encode(self, instance: T) -> dict[str, Any]:
        dumped = instance.model_dump(mode="python", by_alias=True)
        document: dict[str, Any] = {}
        for name, stored in self.field_mapping.items():
            key = self._dump_keys[name]
            if key not in dumped:
                continue
            value = dumped[key]
            if stored == ID_KEY and value is None:
                continue
            document[stored] = _encode_value(value)
        return document

    def decode(self, document: dict[str, Any]) -> T:
        by_stored_name = {stored: name for name, stored in self.field_mapping.items()}
        data = {}
        for key, value in document.items():
            name = by_stored_name.get(key)
            if name is not None:
                data[self._dump_keys[name]] = value
        return self.entity_type.model_validate(data)


def create_codec(entity_type: type) -> Codec:
    """
    Create the default codec for an entity type.

    Raises:
        EntityMappingError: If the type is neither a dataclass nor a pydantic model
    """
    if isinstance(entity_type, type) and issubclass(entity_type, BaseModel):
        return PydanticCodec(entity_type)
    if dataclasses.is_dataclass(entity_type):
        return DataclassCodec(entity_type)
    raise EntityMappingError(
        f"No codec for {getattr(entity_type, '__name__', entity_type)!r}: "
        "entities must be dataclasses or pydantic models, or have a registered codec",
        entity_type=entity_type if isinstance(entity_type, type) else None,
    )


class CodecRegistry:
    """
    Registry of one codec per entity type.

    Codecs are created on first use and cached for the registry's lifetime.

    Example:
        registry = CodecRegistry()
        registry.register(Invoice, InvoiceCodec(Invoice))
        codec = registry.get(Person)  # default DataclassCodec
    """

    def __init__(self, codecs: dict[type, Codec] | None = None):
        self._codecs: dict[type, Codec] = dict(codecs or {})
        self._lock = threading.Lock()

    def register(self, entity_type: type, codec: Codec) -> None:
        with self._lock:
            self._codecs[entity_type] = codec

    def get(self, entity_type: type) -> Codec:
        codec = self._codecs.get(entity_type)
        if codec is not None:
            return codec

        codec = create_codec(entity_type)
        with self._lock:
            return self._codecs.setdefault(entity_type, codec)
