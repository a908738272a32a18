"""
Object-query dialect translator.

Translates simplified comparison expressions written against entity
attribute names into MongoDB filter documents:

    name = 'Ada' and age > 30          ->  {'name': 'Ada', 'age': {'$gt': 30}}
    status in ('A', 'B') or vip = true ->  {'$or': [{'status': {'$in': [...]}}, {'vip': True}]}
    not (age < 18)                     ->  {'$nor': [{'age': {'$lt': 18}}]}
    email is not null                  ->  {'email': {'$ne': None}}
    name like '^Ad'                    ->  {'name': {'$regex': '^Ad'}}

Updates use the same literals but only accept ``field = value`` assignments,
separated by ``,`` or ``and``.

Values are expected to be already bound (see ``binder.bind_parameters``).
"""

from collections.abc import Callable
from typing import Any

from ..constants import COMPARISON_OPERATORS, OBJECT_QUERY_KEYWORDS
from ..exceptions import QuerySyntaxError
from .parser import (
    COMMA,
    EOF,
    LBRACKET,
    LPAREN,
    OPERATOR,
    RPAREN,
    WORD,
    DocumentParser,
    TokenStream,
)

FieldResolver = Callable[[str], "str | None"]


class ObjectQueryParser:
    """
    Recursive-descent parser for the object-query dialect.

    Grammar:
        expression := conjunction ('or' conjunction)*
        conjunction := unary ('and' unary)*
        unary := 'not' unary | '(' expression ')' | predicate
        predicate := field operator value
                   | field ['not'] 'in' list
                   | field 'like' string
                   | field 'is' ['not'] 'null'
    """

    def __init__(self, query: str, resolve_field: FieldResolver | None = None):
        self.query = query
        self.stream = TokenStream(query)
        self.values = DocumentParser(self.stream)
        self.resolve_field = resolve_field

    def parse_filter(self) -> dict[str, Any]:
        document = self._parse_disjunction()
        if not self.stream.at(EOF):
            raise self.stream.error("Unexpected token")
        return document

    def parse_update(self) -> dict[str, Any]:
        assignments: dict[str, Any] = {}

        while True:
            field_token = self.stream.peek()
            field = self._parse_field()
            operator = self.stream.peek()
            if operator.kind != OPERATOR or COMPARISON_OPERATORS[operator.value] is not None:
                raise self.stream.error(
                    "Only 'field = value' assignments are allowed in an update", operator
                )
            self.stream.advance()
            if field in assignments:
                raise self.stream.error(f"Field {field!r} is assigned twice", field_token)
            assignments[field] = self.values.parse_value()

            if self.stream.at(COMMA) or self._at_keyword("and"):
                self.stream.advance()
                continue
            break

        if not self.stream.at(EOF):
            raise self.stream.error("Unexpected token")
        return assignments

    def _at_keyword(self, keyword: str, offset: int = 0) -> bool:
        token = self.stream.peek(offset)
        return token.kind == WORD and token.value.lower() == keyword

    def _parse_disjunction(self) -> dict[str, Any]:
        operands = [self._parse_conjunction()]
        while self._at_keyword("or"):
            self.stream.advance()
            operands.append(self._parse_conjunction())

        if len(operands) == 1:
            return operands[0]

        clauses: list[dict[str, Any]] = []
        for operand in operands:
            if list(operand) == ["$or"]:
                clauses.extend(operand["$or"])
            else:
                clauses.append(operand)
        return {"$or": clauses}

    def _parse_conjunction(self) -> dict[str, Any]:
        operands = [self._parse_unary()]
        while self._at_keyword("and"):
            self.stream.advance()
            operands.append(self._parse_unary())
        return conjunction(operands)

    def _parse_unary(self) -> dict[str, Any]:
        if self._at_keyword("not"):
            self.stream.advance()
            return {"$nor": [self._parse_unary()]}

        if self.stream.at(LPAREN):
            opening = self.stream.advance()
            document = self._parse_disjunction()
            if not self.stream.at(RPAREN):
                raise self.stream.error("Unbalanced '('", opening)
            self.stream.advance()
            return document

        return self._parse_predicate()

    def _parse_predicate(self) -> dict[str, Any]:
        field = self._parse_field()
        token = self.stream.peek()

        if token.kind == OPERATOR:
            self.stream.advance()
            operator = COMPARISON_OPERATORS[token.value]
            value = self.values.parse_value()
            return {field: value} if operator is None else {field: {operator: value}}

        if self._at_keyword("in"):
            self.stream.advance()
            return {field: {"$in": self._parse_list()}}

        if self._at_keyword("not") and self._at_keyword("in", offset=1):
            self.stream.advance()
            self.stream.advance()
            return {field: {"$nin": self._parse_list()}}

        if self._at_keyword("like"):
            self.stream.advance()
            pattern_token = self.stream.peek()
            pattern = self.values.parse_value()
            if not isinstance(pattern, str):
                raise self.stream.error("'like' expects a string pattern", pattern_token)
            return {field: {"$regex": pattern}}

        if self._at_keyword("is"):
            self.stream.advance()
            negated = self._at_keyword("not")
            if negated:
                self.stream.advance()
            if not self._at_keyword("null"):
                raise self.stream.error("Expected 'null'")
            self.stream.advance()
            return {field: {"$ne": None}} if negated else {field: None}

        if token.kind == EOF:
            raise self.stream.error(f"Missing operator after field {field!r}", token)
        raise self.stream.error(f"Unknown operator {token.text!r}", token)

    def _parse_field(self) -> str:
        token = self.stream.peek()
        if (
            token.kind != WORD
            or token.value.lower() in OBJECT_QUERY_KEYWORDS
            or token.value in ("true", "false")
            or token.value.startswith("$")
        ):
            raise self.stream.error("Expected a field name", token)
        self.stream.advance()

        if self.resolve_field is None:
            return token.value
        stored = self.resolve_field(token.value)
        if stored is None:
            raise QuerySyntaxError(
                f"Unknown field {token.value!r}",
                fragment=token.value,
                query=self.query,
            )
        return stored

    def _parse_list(self) -> list[Any]:
        if self.stream.at(LPAREN):
            opening = self.stream.advance()
            items = [self.values.parse_value()]
            while self.stream.at(COMMA):
                self.stream.advance()
                items.append(self.values.parse_value())
            if not self.stream.at(RPAREN):
                raise self.stream.error("Unbalanced '('", opening)
            self.stream.advance()
            return items

        token = self.stream.peek()
        value = self.values.parse_value() if token.kind == LBRACKET else None
        if not isinstance(value, list):
            raise self.stream.error("Expected a list after 'in'", token)
        return value


def conjunction(operands: list[dict[str, Any]]) -> dict[str, Any]:
    """
    Combine filter documents with AND semantics.

    Operands are merged into one document when their keys are disjoint, which
    is how MongoDB reads an implicit AND. Otherwise an explicit ``$and`` keeps
    every clause, so no predicate is ever overwritten.
    """
    if len(operands) == 1:
        return operands[0]

    clauses: list[dict[str, Any]] = []
    for operand in operands:
        if list(operand) == ["$and"]:
            clauses.extend(operand["$and"])
        else:
            clauses.append(operand)

    keys = [key for clause in clauses for key in clause]
    if len(keys) != len(set(keys)):
        return {"$and": clauses}

    merged: dict[str, Any] = {}
    for clause in clauses:
        merged.update(clause)
    return merged
