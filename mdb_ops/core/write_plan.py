"""
Write plans for multi-entity upserts.

A write plan holds one element per entity, in input order: ``Insert`` for an
entity without identity, ``ReplaceOrInsert`` (replace with upsert) for an
entity with one. The plan is submitted as a single ordered bulk write, so the
store applies elements in sequence and stops at the first failure.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Union

from pymongo import InsertOne, ReplaceOne

from ..mapping.codecs import Codec
from ..mapping.identity import extract_identity, identity_filter


@dataclass(frozen=True)
class Insert:
    """Insert an entity; the store identity is generated."""

    entity: Any


@dataclass(frozen=True)
class ReplaceOrInsert:
    """Replace the document matching ``filter``, inserting it if missing."""

    filter: dict[str, Any] = field(hash=False)
    entity: Any
    upsert: bool = True


WritePlanElement = Union[Insert, ReplaceOrInsert]

CodecLookup = Callable[[Any], Codec]


def build_write_plan(entities: Iterable[Any], codec_of: CodecLookup) -> list[WritePlanElement]:
    """
    Build the ordered write plan of a batch.

    Args:
        entities: Entities in the order they must be written
        codec_of: Returns the codec of an entity

    Returns:
        One plan element per entity, in input order
    """
    plan: list[WritePlanElement] = []
    for entity in entities:
        identity = extract_identity(entity, codec_of(entity))
        if identity is None:
            plan.append(Insert(entity))
        else:
            plan.append(ReplaceOrInsert(identity_filter(identity), entity))
    return plan


def to_write_models(
    plan: Iterable[WritePlanElement], codec_of: CodecLookup
) -> list[InsertOne | ReplaceOne]:
    """Convert a write plan into pymongo bulk write requests, preserving order."""
    models: list[InsertOne | ReplaceOne] = []
    for element in plan:
        codec = codec_of(element.entity)
        if isinstance(element, Insert):
            models.append(InsertOne(codec.document_for_insert(element.entity)))
        else:
            models.append(
                ReplaceOne(element.filter, codec.encode(element.entity), upsert=element.upsert)
            )
    return models
