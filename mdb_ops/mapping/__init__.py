"""
Entity mapping.

Entity declaration, codecs converting entities to stored documents, and
identity extraction.
"""

from .codecs import Codec, CodecRegistry, DataclassCodec, PydanticCodec, create_codec
from .entity import Entity, EntityDescriptor, MongoEntityOptions, mongo_entity, mongo_field
from .identity import extract_identity, identity_filter

__all__ = [
    # Entities
    "Entity",
    "EntityDescriptor",
    "MongoEntityOptions",
    "mongo_entity",
    "mongo_field",
    # Codecs
    "Codec",
    "CodecRegistry",
    "DataclassCodec",
    "PydanticCodec",
    "create_codec",
    # Identity
    "extract_identity",
    "identity_filter",
]
