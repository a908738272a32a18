"""
Query layer.

Parameter binding, dialect translation, update normalization and sort
translation for filter and update templates.
"""

from .binder import bind_parameters, encode_literal
from .object_query import ObjectQueryParser
from .parameters import Parameters, resolve_params
from .parser import parse_document
from .sort import Column, Direction, Sort, sort_to_document
from .translator import is_native, normalize_update, translate_filter, translate_update

__all__ = [
    # Binding
    "bind_parameters",
    "encode_literal",
    "Parameters",
    "resolve_params",
    # Translation
    "is_native",
    "parse_document",
    "ObjectQueryParser",
    "translate_filter",
    "translate_update",
    "normalize_update",
    # Sorting
    "Sort",
    "Column",
    "Direction",
    "sort_to_document",
]
