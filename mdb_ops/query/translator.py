"""
Query translation entry points.

A template is routed to a translator by its first significant character:
``{`` selects the native dialect (a MongoDB document literal), anything else
the object-query dialect. This is a textual rule, not a grammar: callers must
start native templates with ``{``.

Usage:
    translate_filter("name = :n and age > :a", {"n": "Ada", "a": 30})
    # {'name': 'Ada', 'age': {'$gt': 30}}

    translate_filter("{'status': ?1}", ["active"])
    # {'status': 'active'}

    translate_update("name = ?1", ["Ada"])
    # {'$set': {'name': 'Ada'}}
"""

import logging
import re
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from bson.json_util import dumps

from ..constants import NATIVE_QUERY_PREFIX, OBJECT_QUERY_KEYWORDS, SET_OPERATOR, UPDATE_OPERATORS
from ..exceptions import QuerySyntaxError
from .binder import bind_parameters
from .object_query import ObjectQueryParser
from .parser import JSON_OPTIONS, parse_document

if TYPE_CHECKING:
    from ..mapping.entity import EntityDescriptor

logger = logging.getLogger(__name__)

Params = Sequence[Any] | Mapping[str, Any]

_BARE_FIELD_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_.]*")


def is_native(query: str) -> bool:
    """
    Tell whether a template is in the native dialect.

    Raises:
        QuerySyntaxError: If the template is empty
    """
    stripped = query.lstrip()
    if not stripped:
        raise QuerySyntaxError("Query is empty", fragment="", query=query)
    return stripped[0] == NATIVE_QUERY_PREFIX


def _expand_shorthand(query: str, params: Params) -> str:
    # A lone field name with one positional value means "field = ?1"
    stripped = query.strip()
    if (
        not isinstance(params, Mapping)
        and len(params) == 1
        and _BARE_FIELD_RE.fullmatch(stripped)
        and stripped.lower() not in OBJECT_QUERY_KEYWORDS
    ):
        return f"{stripped} = ?1"
    return query


def _trace(kind: str, document: dict[str, Any]) -> None:
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"Bound {kind}: {dumps(document, json_options=JSON_OPTIONS)}")


def _parse(
    query: str,
    params: Params | None,
    descriptor: "EntityDescriptor | None",
    update: bool,
) -> dict[str, Any]:
    params = () if params is None else params
    native = is_native(query)

    if native:
        return parse_document(bind_parameters(query, params, native=True))

    bound = bind_parameters(_expand_shorthand(query, params), params, native=False)
    resolve_field = descriptor.stored_field if descriptor is not None else None
    parser = ObjectQueryParser(bound, resolve_field)
    return parser.parse_update() if update else parser.parse_filter()


def translate_filter(
    query: str,
    params: Params | None = None,
    descriptor: "EntityDescriptor | None" = None,
) -> dict[str, Any]:
    """
    Bind parameters into a filter template and build the filter document.

    Args:
        query: Native or object-query template
        params: Positional values or a name to value mapping
        descriptor: Entity descriptor used to map attribute names to stored names

    Returns:
        MongoDB filter document

    Raises:
        BindingError: If parameters do not match the placeholders
        QuerySyntaxError: If the template is malformed
    """
    document = _parse(query, params, descriptor, update=False)
    _trace("filter", document)
    return document


def translate_update(
    query: str,
    params: Params | None = None,
    descriptor: "EntityDescriptor | None" = None,
) -> dict[str, Any]:
    """
    Bind parameters into an update template and build the update document.

    Bare field assignments are wrapped in ``$set`` (see ``normalize_update``).

    Raises:
        BindingError: If parameters do not match the placeholders
        QuerySyntaxError: If the template is malformed
    """
    document = normalize_update(_parse(query, params, descriptor, update=True))
    _trace("update", document)
    return document


def normalize_update(fragment: Mapping[str, Any]) -> dict[str, Any]:
    """
    Wrap a field-assignment document in ``$set`` unless it already holds an operator.

    Only the top-level keys are inspected; a document containing any update
    operator is returned as is, even if it also contains plain fields.
    """
    if any(key in UPDATE_OPERATORS for key in fragment):
        return dict(fragment)
    return {SET_OPERATOR: dict(fragment)}
