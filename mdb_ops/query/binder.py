"""
Parameter binding for query templates.

Substitutes positional (``?1``, ``?2``, ...) or named (``:name``) placeholders
with the extended JSON literal of the bound value. Binding is textual but
literal-aware: placeholders inside quoted strings are left untouched, and in
native templates a ``:`` only starts a named placeholder in value position, so
``{'active': true}`` is never read as the placeholder ``:true``.

Example:
    bind_parameters("{'status': ?1}", ["active"], native=True)
    # '{\\'status\\': "active"}'
"""

import datetime
import decimal
import enum
import re
from collections.abc import Mapping, Sequence
from typing import Any

from bson.decimal128 import Decimal128
from bson.json_util import dumps

from ..constants import NAMED_MARKER, POSITIONAL_MARKER
from ..exceptions import BindingError
from .parser import JSON_OPTIONS, scan_string

_POSITIONAL_RE = re.compile(r"\?(\d+)")
_NAMED_RE = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")

# Previous significant characters after which ':' starts a placeholder in a native template
_NATIVE_VALUE_POSITION = frozenset(":,[(")


def _to_literal_compatible(value: Any) -> Any:
    """Convert values json_util cannot render into their BSON counterparts."""
    if isinstance(value, enum.Enum):
        return _to_literal_compatible(value.value)
    if isinstance(value, decimal.Decimal):
        return Decimal128(value)
    if isinstance(value, datetime.datetime):
        # Stored dates are naive UTC with millisecond precision
        if value.tzinfo is not None:
            value = value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
        return value.replace(microsecond=value.microsecond // 1000 * 1000)
    if isinstance(value, datetime.date):
        return datetime.datetime(value.year, value.month, value.day)
    if isinstance(value, Mapping):
        return {key: _to_literal_compatible(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_to_literal_compatible(item) for item in value]
    return value


def encode_literal(value: Any) -> str:
    """
    Render a value as a document literal that parses back to an equal value.

    Args:
        value: None, bool, int, float, str, list/tuple/set, mapping, ObjectId,
            datetime, Decimal/Decimal128, UUID, Enum or any other value the
            extended JSON encoder supports

    Returns:
        Relaxed extended JSON text

    Raises:
        BindingError: If the value has no literal form
    """
    try:
        return dumps(_to_literal_compatible(value), json_options=JSON_OPTIONS)
    except (TypeError, ValueError) as e:
        raise BindingError(
            f"Cannot bind value of type {type(value).__name__}: {e}",
            context={"value_type": type(value).__name__},
        ) from e


def _previous_significant(template: str, position: int) -> str:
    index = position - 1
    while index >= 0 and template[index].isspace():
        index -= 1
    return template[index] if index >= 0 else ""


def find_placeholders(template: str, *, native: bool) -> list[tuple[int, int, str]]:
    """
    Locate placeholders outside string literals.

    Returns:
        List of (start, end, placeholder) tuples, e.g. (12, 14, "?1")

    Raises:
        QuerySyntaxError: If a string literal is not terminated
    """
    placeholders: list[tuple[int, int, str]] = []
    index = 0
    depth = 0

    while index < len(template):
        char = template[index]

        if char in ("'", '"'):
            index = scan_string(template, index)
            continue

        if char in "{}":
            depth += 1 if char == "{" else -1

        if char == POSITIONAL_MARKER:
            match = _POSITIONAL_RE.match(template, index)
            if match:
                placeholders.append((index, match.end(), match.group(0)))
                index = match.end()
                continue

        if char == NAMED_MARKER:
            match = _NAMED_RE.match(template, index)
            in_value_position = (
                (not native and depth <= 0)
                or _previous_significant(template, index) in _NATIVE_VALUE_POSITION
            )
            if match and in_value_position:
                placeholders.append((index, match.end(), match.group(0)))
                index = match.end()
                continue

        index += 1

    return placeholders


def _resolve(placeholder: str, params: Sequence[Any] | Mapping[str, Any]) -> Any:
    if placeholder.startswith(POSITIONAL_MARKER):
        if isinstance(params, Mapping):
            raise BindingError(
                f"Positional placeholder {placeholder} used with named parameters",
                placeholder=placeholder,
            )
        position = int(placeholder[1:])
        if position < 1 or position > len(params):
            raise BindingError(
                f"No value bound for placeholder {placeholder}: "
                f"{len(params)} positional parameter(s) supplied",
                placeholder=placeholder,
                context={"supplied": len(params)},
            )
        return params[position - 1]

    name = placeholder[1:]
    if not isinstance(params, Mapping):
        raise BindingError(
            f"Named placeholder {placeholder} used with positional parameters",
            placeholder=placeholder,
        )
    if name not in params:
        raise BindingError(
            f"Missing value for named parameter '{name}'",
            placeholder=placeholder,
            context={"supplied": sorted(params)},
        )
    return params[name]


def bind_parameters(
    template: str,
    params: Sequence[Any] | Mapping[str, Any] | None = None,
    *,
    native: bool,
) -> str:
    """
    Replace every placeholder in ``template`` with the literal of its value.

    Args:
        template: Filter or update template in either dialect
        params: Positional values (bound to ?1, ?2, ...) or a name to value mapping
        native: Whether the template is in the native document literal dialect

    Returns:
        The bound template

    Raises:
        BindingError: On a missing value, an index out of range, mixed
            placeholder styles, or a value with no literal form
    """
    if params is None:
        params = ()

    placeholders = find_placeholders(template, native=native)
    if not placeholders:
        return template

    styles = {placeholder[0] for _, _, placeholder in placeholders}
    if len(styles) > 1:
        raise BindingError(
            "Query mixes positional and named placeholders",
            placeholder=next(p for _, _, p in placeholders if p[0] == NAMED_MARKER),
        )

    parts: list[str] = []
    last = 0
    for start, end, placeholder in placeholders:
        parts.append(template[last:start])
        parts.append(encode_literal(_resolve(placeholder, params)))
        last = end
    parts.append(template[last:])
    return "".join(parts)
