"""
Sort orders.

Usage:
    Sort.by("last_name", "first_name")
    Sort.by("age", direction=Direction.DESCENDING).and_("name")
    Sort.descending("created_at")

    sort_to_document(Sort.by("name").and_("age", Direction.DESCENDING))
    # {'name': 1, 'age': -1}
"""

import enum
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    from ..mapping.entity import EntityDescriptor


class Direction(enum.IntEnum):
    """Sort direction, valued as MongoDB expects it."""

    ASCENDING = 1
    DESCENDING = -1


@dataclass(frozen=True)
class Column:
    name: str
    direction: Direction = Direction.ASCENDING


class Sort:
    """An ordered list of columns to sort on."""

    def __init__(self, columns: Sequence[Column] = ()):
        self._columns: list[Column] = list(columns)

    @classmethod
    def by(cls, *columns: str, direction: Direction = Direction.ASCENDING) -> "Sort":
        return cls([Column(name, direction) for name in columns])

    @classmethod
    def ascending(cls, *columns: str) -> "Sort":
        return cls.by(*columns, direction=Direction.ASCENDING)

    @classmethod
    def descending(cls, *columns: str) -> "Sort":
        return cls.by(*columns, direction=Direction.DESCENDING)

    def and_(self, column: str, direction: Direction = Direction.ASCENDING) -> "Sort":
        """Add a column after the existing ones."""
        self._columns.append(Column(column, direction))
        return self

    def direction(self, direction: Direction) -> "Sort":
        """Set the direction of every column."""
        self._columns = [Column(column.name, direction) for column in self._columns]
        return self

    @property
    def columns(self) -> list[Column]:
        return list(self._columns)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Sort) and self._columns == other._columns

    def __repr__(self) -> str:
        return f"Sort({self._columns!r})"


SortSpec = Union[Sort, Mapping[str, int], Sequence[tuple[str, int]], None]


def sort_to_document(
    sort: SortSpec,
    descriptor: "EntityDescriptor | None" = None,
) -> dict[str, int] | None:
    """
    Translate a sort order into an ordered MongoDB sort document.

    Args:
        sort: A Sort, a {field: direction} mapping, a list of (field, direction)
            tuples, or None
        descriptor: Entity descriptor used to map attribute names to stored names

    Returns:
        Ordered {field: 1 | -1} document, or None for the store's natural order
    """
    if sort is None:
        return None

    if isinstance(sort, Sort):
        pairs: list[tuple[str, Any]] = [(c.name, c.direction) for c in sort.columns]
    elif isinstance(sort, Mapping):
        pairs = list(sort.items())
    else:
        pairs = list(sort)

    document: dict[str, int] = {}
    for name, direction in pairs:
        field = name
        if descriptor is not None:
            field = descriptor.stored_field(name) or name
        document[field] = 1 if int(direction) >= 0 else -1
    return document
