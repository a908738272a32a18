"""
Named parameter sets.

Usage:
    params = Parameters.with_("name", "Ada").and_("age", 30)
    await ops.list(Person, "name = :name and age > :age", params)
"""

from collections.abc import Mapping, Sequence
from typing import Any


class Parameters:
    """Builder for named query parameters."""

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}

    @classmethod
    def with_(cls, name: str, value: Any) -> "Parameters":
        return cls().and_(name, value)

    def and_(self, name: str, value: Any) -> "Parameters":
        self._values[name] = value
        return self

    def map(self) -> dict[str, Any]:
        """Return the parameters as a name to value mapping."""
        return dict(self._values)

    def __repr__(self) -> str:
        return f"Parameters({self._values!r})"


def resolve_params(params: Sequence[Any]) -> Sequence[Any] | Mapping[str, Any]:
    """
    Interpret the trailing arguments of a query operation.

    A single ``Parameters`` or mapping argument supplies named values;
    anything else is the list of positional values.
    """
    if len(params) == 1:
        (only,) = params
        if isinstance(only, Parameters):
            return only.map()
        if isinstance(only, Mapping):
            return only
    return params
